"""
스토리 생성 서비스 (generate-story: 빌더/자유 입력 페이지용)
"""

from typing import Optional
import logging

from config.settings import Settings
from models.request_models import GenerateStoryRequest
from models.response_models import GenerateStoryResponse
from models.story_models import GenerationStatus
from prompt.prompt_manager import PromptManager, get_prompt_manager
from providers.llm_provider import LLMProvider
from repositories.story_repository import StoryRepository
from services.quota_service import QuotaService
from utils.errors import NotFoundError

logger = logging.getLogger(__name__)

TITLE_PREFIX_LENGTH = 50


class StoryService:
    """스토리 생성 서비스"""

    def __init__(self, provider: LLMProvider, repository: StoryRepository,
                 quota_service: QuotaService, settings: Settings,
                 prompt_manager: Optional[PromptManager] = None):
        self.provider = provider
        self.repository = repository
        self.quota_service = quota_service
        self.settings = settings
        self.prompt_manager = prompt_manager or get_prompt_manager()

    async def generate_story(self, request: GenerateStoryRequest, user_id: str) -> GenerateStoryResponse:
        """새 스토리 생성 또는 existing_story_id 스토리 재생성"""
        profile = await self.quota_service.check_quota(user_id)

        system_prompt = self.prompt_manager.build_bedtime_system_prompt(request.length.value)
        story_prompt = self.prompt_manager.build_bedtime_user_prompt(
            request.prompt, request.setting, request.characters, request.themes
        )

        logger.info(f"generate-story ({request.length.value}, {request.story_type.value}) for user: {user_id}")

        generated = await self.provider.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": story_prompt}
            ],
            temperature=0.8,
            max_tokens=self.prompt_manager.get_direct_max_tokens(request.length.value),
            model=self.settings.OPENAI_FAST_MODEL
        )

        if request.existing_story_id:
            story = await self.repository.update_story(user_id, request.existing_story_id, {
                "content": generated,
                "generation_status": GenerationStatus.COMPLETE.value
            })
            if not story:
                raise NotFoundError("Story not found")
        else:
            story = await self.repository.insert_story({
                "user_id": user_id,
                "title": f"Story: {request.prompt[:TITLE_PREFIX_LENGTH]}...",
                "content": generated,
                "prompt": request.prompt,
                "story_type": request.story_type.value,
                "length": request.length.value,
                "setting": request.setting,
                "characters": request.characters,
                "themes": request.themes,
                "parental_preferences": request.parental_preferences,
                "is_complete": True,
                "generation_status": GenerationStatus.COMPLETE.value
            })
            await self.quota_service.record_story(profile)

        return GenerateStoryResponse(success=True, story=story, content=generated)
