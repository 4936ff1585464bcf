"""
스토리 엔진 - generate / continue / edit / coach / illustrate 라우터
"""

import logging
import uuid
from typing import List, Optional

from models.request_models import EngineRequest, StoryPrompt
from models.response_models import EngineResponse, StoryContent, StoryImage, StoryMetadata
from models.story_models import (
    EngineOperation, GenerationStatus, Story, StoryImageRecord, StoryStatus,
    StoredStoryType, StoryTone, StoryType,
)
from prompt.prompt_manager import PromptManager, get_prompt_manager
from providers.llm_provider import LLMProvider
from repositories.story_repository import StoryRepository, utc_now
from services.image_service import ImageGenerationError, ImageService
from services.quota_service import QuotaService
from utils.errors import DreamTalesError, NotFoundError, ValidationError
from utils.text import count_words, estimate_read_time, parse_generated_story

logger = logging.getLogger(__name__)

CONTINUE_MAX_TOKENS = 1000
EDIT_MAX_TOKENS = 2000
COACH_MAX_TOKENS = 500


def build_story_content(story: Story, status: StoryStatus, prompt: Optional[StoryPrompt] = None,
                        images: Optional[List[StoryImageRecord]] = None,
                        version: int = 1) -> StoryContent:
    """저장된 행 -> 엔진 응답 형식"""
    if prompt is None:
        prompt = StoryPrompt(
            text=story.prompt or story.title or "story",
            length=story.length,
            tone=_stored_tone(story.themes),
            type=StoryType.GUIDED if story.story_type == StoredStoryType.STRUCTURED else StoryType.FREEFORM,
            generate_images=False
        )

    now = utc_now()
    return StoryContent(
        id=story.id,
        title=story.title,
        content=story.content,
        status=status,
        prompt=prompt,
        metadata=StoryMetadata(
            word_count=count_words(story.content),
            estimated_read_time=estimate_read_time(story.content),
            created_at=story.created_at or now,
            updated_at=story.updated_at or now,
            version=version
        ),
        images=[
            StoryImage(
                id=image.id or str(uuid.uuid4()),
                url=image.source,
                prompt=image.prompt,
                section_index=image.section_index
            )
            for image in (images or [])
        ]
    )


def _stored_tone(themes: List[str]) -> Optional[StoryTone]:
    if not themes:
        return None
    try:
        return StoryTone(themes[0])
    except ValueError:
        return None


class StoryEngine:
    """스토리 엔진 (요청당 순차 처리)"""

    def __init__(self, provider: LLMProvider, repository: StoryRepository,
                 image_service: ImageService, quota_service: QuotaService,
                 prompt_manager: Optional[PromptManager] = None):
        self.provider = provider
        self.repository = repository
        self.image_service = image_service
        self.quota_service = quota_service
        self.prompt_manager = prompt_manager or get_prompt_manager()

        self.handlers = {
            EngineOperation.GENERATE.value: self.generate,
            EngineOperation.CONTINUE.value: self.continue_story,
            EngineOperation.EDIT.value: self.edit,
            EngineOperation.COACH.value: self.coach,
            EngineOperation.ILLUSTRATE.value: self.illustrate,
        }

    async def handle(self, request: EngineRequest, user_id: str) -> EngineResponse:
        handler = self.handlers.get(request.operation)
        if handler is None:
            raise ValidationError(f"Unknown operation: {request.operation}")

        logger.info(f"Story engine operation: {request.operation} for user: {user_id}")
        return await handler(request, user_id)

    async def _require_story(self, user_id: str, story_id: str) -> Story:
        story = await self.repository.get_story(user_id, story_id)
        if not story:
            raise NotFoundError("Story not found")
        return story

    async def generate(self, request: EngineRequest, user_id: str) -> EngineResponse:
        prompt = request.prompt
        if not prompt:
            raise ValidationError("Prompt is required for generation")

        profile = await self.quota_service.check_quota(user_id)

        characters = [c.model_dump() for c in await self.repository.get_characters(user_id, prompt.selected_characters)]
        places = [p.model_dump() for p in await self.repository.get_places(user_id, prompt.selected_places)]

        tone = prompt.tone.value if prompt.tone else None
        system_prompt = self.prompt_manager.build_system_prompt(prompt.type.value, prompt.length.value, tone)
        user_prompt = self.prompt_manager.build_user_prompt(
            prompt.text, characters, places, prompt.additional_context
        )

        generated = await self.provider.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            temperature=0.8,
            max_tokens=self.prompt_manager.get_max_tokens_for_length(prompt.length.value)
        )

        title, content = parse_generated_story(generated)
        now = utc_now()

        story = await self.repository.insert_story({
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "title": title,
            "content": content,
            "prompt": prompt.text,
            "story_type": StoredStoryType.STRUCTURED.value if prompt.type == StoryType.GUIDED else StoredStoryType.FREEFORM.value,
            "length": prompt.length.value,
            "generation_status": GenerationStatus.DRAFT.value,
            "is_complete": True,
            "characters": characters,
            "setting": ", ".join(p["name"] for p in places),
            "themes": [tone] if tone else [],
            "version": 1,
            "created_at": now,
            "updated_at": now
        })
        await self.quota_service.record_story(profile)

        images: List[StoryImageRecord] = []
        if prompt.generate_images:
            try:
                images = await self.image_service.illustrate_story(story.id, content, prompt.length.value)
            except ImageGenerationError as e:
                # 이미지 실패는 스토리 생성 실패가 아님 (스토리는 이미 저장됨)
                logger.warning(f"Image generation failed for story {story.id}: {e.message}")
                images = e.images
            except DreamTalesError as e:
                logger.warning(f"Image step failed for story {story.id}: {e.message}")

        return EngineResponse(
            success=True,
            story=build_story_content(story, StoryStatus.DRAFT, prompt=prompt, images=images, version=1)
        )

    async def continue_story(self, request: EngineRequest, user_id: str) -> EngineResponse:
        if not request.story_id or not request.content:
            raise ValidationError("Story ID and continuation prompt required")

        story = await self._require_story(user_id, request.story_id)

        continuation = await self.provider.complete(
            [
                {"role": "system", "content": self.prompt_manager.get("continue_system")},
                {"role": "user", "content": self.prompt_manager.build_continue_prompt(story.content, request.content)}
            ],
            temperature=0.8,
            max_tokens=CONTINUE_MAX_TOKENS
        )

        version = (story.version or 1) + 1
        updated = await self.repository.update_story(user_id, story.id, {
            "content": f"{story.content}\n\n{continuation}",
            "version": version
        })
        if not updated:
            raise NotFoundError("Story not found")

        return EngineResponse(success=True, story=build_story_content(updated, StoryStatus.DRAFT, version=version))

    async def edit(self, request: EngineRequest, user_id: str) -> EngineResponse:
        if not request.story_id or not request.edit_instructions:
            raise ValidationError("Story ID and edit instructions required")

        story = await self._require_story(user_id, request.story_id)

        edited = await self.provider.complete(
            [
                {"role": "system", "content": self.prompt_manager.get("edit_system")},
                {"role": "user", "content": self.prompt_manager.build_edit_prompt(story.content, request.edit_instructions)}
            ],
            temperature=0.7,
            max_tokens=EDIT_MAX_TOKENS
        )

        version = (story.version or 1) + 1
        updated = await self.repository.update_story(user_id, story.id, {
            "content": edited,
            "generation_status": GenerationStatus.DRAFT.value,
            "version": version
        })
        if not updated:
            raise NotFoundError("Story not found")

        return EngineResponse(success=True, story=build_story_content(updated, StoryStatus.EDITING, version=version))

    async def coach(self, request: EngineRequest, user_id: str) -> EngineResponse:
        if not request.content or not request.coach_request:
            raise ValidationError("Content and coach request required")

        response = await self.provider.complete(
            [
                {"role": "system", "content": self.prompt_manager.get("coach_system")},
                {"role": "user", "content": self.prompt_manager.build_coach_prompt(request.content, request.coach_request)}
            ],
            temperature=0.7,
            max_tokens=COACH_MAX_TOKENS
        )

        suggestions = [line.strip() for line in response.split("\n") if line.strip()]
        return EngineResponse(success=True, suggestions=suggestions)

    async def illustrate(self, request: EngineRequest, user_id: str) -> EngineResponse:
        if not request.story_id:
            raise ValidationError("Story ID required for illustration")

        story = await self._require_story(user_id, request.story_id)
        existing = await self.repository.list_story_images(story.id)
        start_index = max((img.section_index for img in existing), default=-1) + 1

        images = await self.image_service.illustrate_story(
            story.id,
            request.content or story.content,
            story.length.value,
            start_index=start_index
        )

        return EngineResponse(success=True, images=[image.source for image in images])

