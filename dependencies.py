"""
FastAPI 의존성 (설정, Provider, 저장소, 인증, 서비스)
"""

from typing import Optional
from fastapi import Depends, Header

from config.settings import Settings, get_settings
from providers.llm_provider import LLMProvider, LLMProviderFactory
from repositories.story_repository import StoryRepository, get_story_repository
from services.image_service import ImageService
from services.library_service import LibraryService
from services.quota_service import QuotaService
from services.speech_service import SpeechService
from services.story_engine import StoryEngine
from services.story_service import StoryService
from services.structured_flow_service import StructuredFlowService
from utils.errors import AuthenticationError
from utils.rate_limiter import RateLimiter

_rate_limiter: Optional[RateLimiter] = None


def get_app_settings() -> Settings:
    return get_settings()


def get_provider(settings: Settings = Depends(get_app_settings)) -> LLMProvider:
    return LLMProviderFactory.get_provider(settings)


async def get_repository(settings: Settings = Depends(get_app_settings)) -> StoryRepository:
    return await get_story_repository(settings)


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter(get_settings().REQUEST_LIMIT_PER_HOUR)
    return _rate_limiter


def extract_bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("Authorization header missing")

    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise AuthenticationError("Authorization header missing")
    return token


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
    repository: StoryRepository = Depends(get_repository),
) -> str:
    """Bearer 토큰 인증 -> user_id"""
    token = extract_bearer_token(authorization)
    return await repository.get_user_id(token)


def get_rate_limited_user_id(
    user_id: str = Depends(get_current_user_id),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> str:
    """AI 호출 엔드포인트용: 사용자별 시간당 제한"""
    rate_limiter.check_rate_limit(user_id)
    return user_id


def get_quota_service(
    repository: StoryRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> QuotaService:
    return QuotaService(repository, settings.FREE_TIER_MONTHLY_LIMIT)


def get_image_service(
    provider: LLMProvider = Depends(get_provider),
    repository: StoryRepository = Depends(get_repository),
    settings: Settings = Depends(get_app_settings),
) -> ImageService:
    return ImageService(provider, repository, settings)


def get_story_engine(
    provider: LLMProvider = Depends(get_provider),
    repository: StoryRepository = Depends(get_repository),
    image_service: ImageService = Depends(get_image_service),
    quota_service: QuotaService = Depends(get_quota_service),
) -> StoryEngine:
    return StoryEngine(provider, repository, image_service, quota_service)


def get_story_service(
    provider: LLMProvider = Depends(get_provider),
    repository: StoryRepository = Depends(get_repository),
    quota_service: QuotaService = Depends(get_quota_service),
    settings: Settings = Depends(get_app_settings),
) -> StoryService:
    return StoryService(provider, repository, quota_service, settings)


def get_structured_flow_service(
    provider: LLMProvider = Depends(get_provider),
    repository: StoryRepository = Depends(get_repository),
    quota_service: QuotaService = Depends(get_quota_service),
    settings: Settings = Depends(get_app_settings),
) -> StructuredFlowService:
    return StructuredFlowService(provider, repository, quota_service, settings)


def get_library_service(
    repository: StoryRepository = Depends(get_repository),
    quota_service: QuotaService = Depends(get_quota_service),
) -> LibraryService:
    return LibraryService(repository, quota_service)


def get_speech_service(provider: LLMProvider = Depends(get_provider)) -> SpeechService:
    return SpeechService(provider)
