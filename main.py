from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from datetime import datetime

from config.settings import get_settings
from dependencies import (
    get_current_user_id, get_image_service, get_library_service, get_rate_limited_user_id,
    get_rate_limiter, get_speech_service, get_story_engine, get_story_service,
    get_structured_flow_service,
)
from models.request_models import (
    CharacterRequest, EngineRequest, GenerateStoryRequest, PlaceRequest, SpeechRequest,
    StoryImageRequest, StructuredFlowRequest,
)
from models.response_models import (
    CharacterResponse, EngineResponse, GenerateStoryResponse, LibraryResponse, PlaceResponse,
    SpeechResponse, StoryImageResponse, StoryImagesResponse, StructuredFlowResponse,
)
from providers.llm_provider import LLMProviderFactory
from services.image_service import ImageService
from services.library_service import LibraryService
from services.speech_service import SpeechService
from services.story_engine import StoryEngine
from services.story_service import StoryService
from services.structured_flow_service import StructuredFlowService
from utils.errors import DreamTalesError

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
logger = logging.getLogger(__name__)

for warning in settings.validate_settings():
    logger.warning(warning)

VERSION = "1.0.0"

app = FastAPI(
    title="DreamTales AI Server",
    description="Personalized bedtime story generation (text, illustrations, narration)",
    version=VERSION
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """서버 정보"""
    provider = LLMProviderFactory.get_provider()

    return {
        "message": "DreamTales AI Server",
        "status": "healthy",
        "provider": provider.get_provider_name(),
        "timestamp": datetime.now().isoformat(),
        "version": VERSION,
        "endpoints": [
            "story-engine", "generate-story", "generate-story-image", "structured-story-flow",
            "get-user-stories", "manage-characters", "manage-places", "text-to-speech"
        ]
    }


@app.get("/health")
async def health_check():
    """헬스 체크"""
    provider = LLMProviderFactory.get_provider()
    available_providers = LLMProviderFactory.get_available_providers()

    return {
        "status": "healthy",
        "current_provider": provider.get_provider_name(),
        "available_providers": available_providers,
        "database_configured": get_settings().database_configured(),
        "rate_limiter": get_rate_limiter().get_status(),
        "timestamp": datetime.now().isoformat()
    }


@app.get("/providers")
async def get_providers_status():
    """Provider 상태"""
    current_settings = get_settings()

    return {
        "current": LLMProviderFactory.get_provider().get_provider_name(),
        "available": LLMProviderFactory.get_available_providers(),
        "info": current_settings.get_current_provider_info(),
        "checks": {
            name: LLMProviderFactory.test_provider(name, current_settings)
            for name in ("openai", "mock")
        },
        "settings": {
            "ai_provider": current_settings.AI_PROVIDER,
            "openai_model": current_settings.OPENAI_MODEL,
            "openai_image_model": current_settings.OPENAI_IMAGE_MODEL,
            "openai_tts_model": current_settings.OPENAI_TTS_MODEL,
        }
    }


@app.get("/config")
async def get_config():
    """설정 요약 (비밀 값 제외)"""
    current_settings = get_settings()

    return {
        "ai_provider": current_settings.AI_PROVIDER,
        "openai_configured": bool(current_settings.OPENAI_API_KEY),
        "storage_backend": current_settings.STORAGE_BACKEND,
        "database_configured": current_settings.database_configured(),
        "free_tier_monthly_limit": current_settings.FREE_TIER_MONTHLY_LIMIT,
        "image_retry": {
            "max_attempts": current_settings.IMAGE_MAX_ATTEMPTS,
            "base_delay": current_settings.IMAGE_RETRY_BASE_DELAY,
            "request_delay": current_settings.IMAGE_REQUEST_DELAY
        },
        "request_limits": {
            "per_hour": current_settings.REQUEST_LIMIT_PER_HOUR
        },
        "warnings": current_settings.validate_settings()
    }


@app.post("/story-engine", response_model=EngineResponse, response_model_exclude_none=True)
async def story_engine(
    request: EngineRequest,
    user_id: str = Depends(get_rate_limited_user_id),
    engine: StoryEngine = Depends(get_story_engine),
):
    """generate / continue / edit / coach / illustrate"""
    return await engine.handle(request, user_id)


@app.post("/generate-story", response_model=GenerateStoryResponse, response_model_exclude_none=True)
async def generate_story(
    request: GenerateStoryRequest,
    user_id: str = Depends(get_rate_limited_user_id),
    service: StoryService = Depends(get_story_service),
):
    return await service.generate_story(request, user_id)


@app.post("/generate-story-image", response_model=StoryImageResponse)
async def generate_story_image(
    request: StoryImageRequest,
    user_id: str = Depends(get_rate_limited_user_id),
    service: ImageService = Depends(get_image_service),
):
    image = await service.generate_single_image(user_id, request.story_id, request.prompt)
    return StoryImageResponse(success=True, image_url=image.source, story_id=request.story_id)


@app.get("/stories/{story_id}/images", response_model=StoryImagesResponse, response_model_exclude_none=True)
async def list_story_images(
    story_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ImageService = Depends(get_image_service),
):
    """읽기 모드용: section_index 순"""
    return StoryImagesResponse(success=True, images=await service.list_images(user_id, story_id))


@app.delete("/story-images/{image_id}")
async def delete_story_image(
    image_id: str,
    user_id: str = Depends(get_current_user_id),
    service: ImageService = Depends(get_image_service),
):
    await service.delete_image(user_id, image_id)
    return {"success": True}


@app.post("/structured-story-flow", response_model=StructuredFlowResponse, response_model_exclude_none=True)
async def structured_story_flow(
    request: StructuredFlowRequest,
    user_id: str = Depends(get_rate_limited_user_id),
    service: StructuredFlowService = Depends(get_structured_flow_service),
):
    return await service.handle(request, user_id)


@app.api_route("/get-user-stories", methods=["GET", "POST"],
               response_model=LibraryResponse, response_model_exclude_none=True)
async def get_user_stories(
    user_id: str = Depends(get_current_user_id),
    service: LibraryService = Depends(get_library_service),
):
    return await service.get_user_library(user_id)


@app.post("/manage-characters", response_model=CharacterResponse, response_model_exclude_none=True)
async def manage_characters(
    request: CharacterRequest,
    user_id: str = Depends(get_current_user_id),
    service: LibraryService = Depends(get_library_service),
):
    return await service.manage_characters(request, user_id)


@app.post("/manage-places", response_model=PlaceResponse, response_model_exclude_none=True)
async def manage_places(
    request: PlaceRequest,
    user_id: str = Depends(get_current_user_id),
    service: LibraryService = Depends(get_library_service),
):
    return await service.manage_places(request, user_id)


@app.post("/text-to-speech", response_model=SpeechResponse)
async def text_to_speech(
    request: SpeechRequest,
    user_id: str = Depends(get_rate_limited_user_id),
    service: SpeechService = Depends(get_speech_service),
):
    return await service.synthesize(request)


@app.exception_handler(DreamTalesError)
async def dreamtales_exception_handler(request: Request, exc: DreamTalesError):
    if exc.status_code >= 500:
        logger.error(f"{request.url.path} failed ({exc.status_code}): {exc.message}")
    else:
        logger.info(f"{request.url.path} rejected ({exc.status_code}): {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
        for error in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": f"Invalid request format: {details}"}
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "An unexpected error occurred. Please try again."}
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
