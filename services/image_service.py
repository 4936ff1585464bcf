"""
스토리 삽화 파이프라인
- 길이별 이미지 개수, 구간 분할, 순차 생성
- 이미지 호출마다 지수 백오프 재시도 + 요청 간 고정 지연
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from config.settings import Settings
from models.story_models import Story, StoryImageRecord
from prompt.prompt_manager import PromptManager, get_prompt_manager
from providers.llm_provider import GeneratedImage, LLMProvider, ProviderError
from repositories.story_repository import StoryRepository
from utils.errors import DatabaseError, NotFoundError, UpstreamError
from utils.retry import retry_with_backoff
from utils.text import split_into_sections

logger = logging.getLogger(__name__)

IMAGE_COUNT_BY_LENGTH = {
    "short": 2,
    "medium": 3,
    "long": 4,
}
DEFAULT_IMAGE_COUNT = 1


def image_count_for_length(length: Optional[str]) -> int:
    return IMAGE_COUNT_BY_LENGTH.get(length or "", DEFAULT_IMAGE_COUNT)


class ImageGenerationError(UpstreamError):
    """재시도 소진. images: 실패 전까지 생성된 이미지"""

    def __init__(self, message: str, images: Optional[List[StoryImageRecord]] = None):
        super().__init__(message)
        self.images = images or []


class ImageService:
    """삽화 생성 서비스"""

    def __init__(self, provider: LLMProvider, repository: StoryRepository, settings: Settings,
                 prompt_manager: Optional[PromptManager] = None,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self.provider = provider
        self.repository = repository
        self.settings = settings
        self.prompt_manager = prompt_manager or get_prompt_manager()
        self.sleep = sleep

    async def _generate_with_retry(self, prompt: str, label: str) -> GeneratedImage:
        return await retry_with_backoff(
            lambda: self.provider.generate_image(prompt),
            max_attempts=self.settings.IMAGE_MAX_ATTEMPTS,
            base_delay=self.settings.IMAGE_RETRY_BASE_DELAY,
            retry_on=(ProviderError,),
            sleep=self.sleep,
            label=label
        )

    async def _save_image(self, story_id: str, image: GeneratedImage, prompt: str,
                    section_index: int) -> StoryImageRecord:
        row: Dict[str, Any] = {
            "story_id": story_id,
            "prompt": prompt,
            "section_index": section_index
        }
        if image.url:
            row["image_url"] = image.url
        else:
            row["image_data"] = image.b64_json

        return await self.repository.insert_story_image(row)

    async def illustrate_story(self, story_id: str, content: str,
                               length: Optional[str] = None,
                               start_index: int = 0) -> List[StoryImageRecord]:
        """구간별 삽화 생성 (순차). 재시도 소진 또는 저장 실패 시 ImageGenerationError"""
        count = image_count_for_length(length)
        sections = split_into_sections(content, count)
        images: List[StoryImageRecord] = []

        logger.info(f"Illustrating story {story_id}: {len(sections)} image(s)")

        for offset, section in enumerate(sections):
            if offset > 0 and self.settings.IMAGE_REQUEST_DELAY:
                await self.sleep(self.settings.IMAGE_REQUEST_DELAY)

            section_index = start_index + offset
            prompt = self.prompt_manager.build_scene_image_prompt(section)

            try:
                generated = await self._generate_with_retry(
                    prompt, label=f"image {section_index} for story {story_id}"
                )
            except ProviderError as e:
                raise ImageGenerationError(f"Image generation failed: {e.message}", images) from e

            try:
                images.append(await self._save_image(story_id, generated, prompt, section_index))
            except DatabaseError as e:
                raise ImageGenerationError(f"Image save failed: {e.message}", images) from e

        return images

    async def generate_single_image(self, user_id: str, story_id: str, prompt: str) -> StoryImageRecord:
        """generate-story-image: 소유권 확인 후 1장 생성, 다음 section_index에 저장"""
        await self._require_story(user_id, story_id)
        styled_prompt = self.prompt_manager.build_styled_image_prompt(prompt)

        try:
            generated = await self._generate_with_retry(styled_prompt, label=f"image for story {story_id}")
        except ProviderError as e:
            raise ImageGenerationError(f"Image generation failed: {e.message}") from e

        existing = await self.repository.list_story_images(story_id)
        next_index = max((img.section_index for img in existing), default=-1) + 1

        return await self._save_image(story_id, generated, styled_prompt, next_index)

    async def _require_story(self, user_id: str, story_id: str) -> Story:
        story = await self.repository.get_story(user_id, story_id)
        if not story:
            raise NotFoundError("Story not found or access denied")
        return story

    async def list_images(self, user_id: str, story_id: str) -> List[StoryImageRecord]:
        await self._require_story(user_id, story_id)
        return await self.repository.list_story_images(story_id)

    async def delete_image(self, user_id: str, image_id: str) -> None:
        image = await self.repository.get_story_image(image_id)
        if not image:
            raise NotFoundError("Image not found")

        # 이미지 소유권은 스토리 소유권으로 판단
        await self._require_story(user_id, image.story_id)
        await self.repository.delete_story_image(image_id)
        logger.info(f"Deleted image {image_id} from story {image.story_id}")
