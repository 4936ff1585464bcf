"""
단계별 스토리 마법사 (initialize -> continue -> finalize)
"""

import logging
from typing import Any, Dict, Optional

from config.settings import Settings
from models.request_models import StructuredFlowAnswers, StructuredFlowRequest
from models.response_models import FlowQuestion, StructuredFlowResponse
from models.story_models import GenerationStatus, StoredStoryType
from prompt.prompt_manager import PromptManager, get_prompt_manager
from providers.llm_provider import LLMProvider
from repositories.story_repository import StoryRepository
from services.quota_service import QuotaService
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

STORY_QUESTIONS = [
    FlowQuestion(
        id="length",
        question="How long would you like the story to be?",
        options=[
            "Short (perfect for a quick bedtime)",
            "Medium (just right for snuggling)",
            "Long (for extended storytelling)"
        ]
    ),
    FlowQuestion(
        id="setting",
        question="Where should the adventure take place?",
        options=["Magical forest", "Under the sea", "In outer space", "A cozy village", "Custom setting"]
    ),
    FlowQuestion(
        id="characters",
        question="Tell me about the main character. What are they like?",
        type="text"
    ),
    FlowQuestion(
        id="themes",
        question="What should this story teach or celebrate?",
        options=["Friendship", "Bravery", "Kindness", "Problem-solving", "Family love"]
    ),
]

PART_MAX_TOKENS = 400
AUTO_COMPLETE_LENGTH = 1500
ENDING_MARKERS = ("the end", "and they lived")
FIRST_NEXT_PROMPT = "What should happen next in the story?"
NEXT_PROMPT = "What happens next?"


def answered_count(answers: Optional[StructuredFlowAnswers]) -> int:
    if not answers:
        return 0
    values = answers.model_dump()
    return sum(1 for q in STORY_QUESTIONS if values.get(q.id) not in (None, "", []))


def is_story_complete(new_part: str, full_content: str) -> bool:
    lowered = new_part.lower()
    return any(marker in lowered for marker in ENDING_MARKERS) or len(full_content) > AUTO_COMPLETE_LENGTH


class StructuredFlowService:
    def __init__(self, provider: LLMProvider, repository: StoryRepository,
                 quota_service: QuotaService, settings: Settings,
                 prompt_manager: Optional[PromptManager] = None):
        self.provider = provider
        self.repository = repository
        self.quota_service = quota_service
        self.settings = settings
        self.prompt_manager = prompt_manager or get_prompt_manager()

    async def handle(self, request: StructuredFlowRequest, user_id: str) -> StructuredFlowResponse:
        if request.step == "initialize":
            return self.initialize()
        if request.step == "continue":
            return await self.continue_flow(request, user_id)
        if request.step == "finalize":
            return await self.finalize(request, user_id)
        raise ValidationError("Invalid step")

    def initialize(self) -> StructuredFlowResponse:
        return StructuredFlowResponse(question=STORY_QUESTIONS[0], progress=1, total=len(STORY_QUESTIONS))

    async def continue_flow(self, request: StructuredFlowRequest, user_id: str) -> StructuredFlowResponse:
        progress = answered_count(request.answers)
        answers_dump: Dict[str, Any] = request.answers.model_dump(by_alias=True, exclude_none=True) if request.answers else {}

        if progress < len(STORY_QUESTIONS):
            return StructuredFlowResponse(
                question=STORY_QUESTIONS[progress],
                progress=progress + 1,
                total=len(STORY_QUESTIONS),
                answers=answers_dump
            )

        return await self._start_story(request.answers, user_id)

    async def _start_story(self, answers: StructuredFlowAnswers, user_id: str) -> StructuredFlowResponse:
        """모든 질문 완료: 첫 파트 생성 후 저장"""
        profile = await self.quota_service.check_quota(user_id)

        length = answers.length.value if answers.length else "medium"
        story_prompt = self.prompt_manager.build_structured_story_prompt(
            length, answers.setting, answers.characters, answers.themes
        )

        partial = await self.provider.complete(
            [
                {"role": "system", "content": self.prompt_manager.get("structured_opening_system")},
                {"role": "user", "content": story_prompt}
            ],
            temperature=0.8,
            max_tokens=PART_MAX_TOKENS,
            model=self.settings.OPENAI_FAST_MODEL
        )

        story = await self.repository.insert_story({
            "user_id": user_id,
            "title": f"Interactive Story: {answers.characters or 'Adventure'}",
            "content": partial,
            "prompt": story_prompt,
            "story_type": StoredStoryType.STRUCTURED.value,
            "length": length,
            "setting": answers.setting,
            "characters": [{"name": answers.characters}] if answers.characters else [],
            "themes": answers.themes or [],
            "parental_preferences": answers.parental_preferences or {},
            "is_complete": False,
            "generation_status": GenerationStatus.GENERATING.value
        })
        await self.quota_service.record_story(profile)

        logger.info(f"Structured story {story.id} started for user: {user_id}")

        return StructuredFlowResponse(
            story_id=story.id,
            content=partial,
            is_complete=False,
            next_prompt=FIRST_NEXT_PROMPT
        )

    async def finalize(self, request: StructuredFlowRequest, user_id: str) -> StructuredFlowResponse:
        if not request.story_id or not request.user_response:
            raise ValidationError("Story ID and user response required")

        story = await self.repository.get_story(user_id, request.story_id)
        if not story:
            raise NotFoundError("Story not found")

        new_part = await self.provider.complete(
            [
                {"role": "system", "content": self.prompt_manager.get("structured_next_system")},
                {"role": "user", "content": self.prompt_manager.build_structured_next_prompt(story.content, request.user_response)}
            ],
            temperature=0.8,
            max_tokens=PART_MAX_TOKENS,
            model=self.settings.OPENAI_FAST_MODEL
        )

        full_content = f"{story.content}\n\n{new_part}"
        complete = is_story_complete(new_part, full_content)

        await self.repository.update_story(user_id, story.id, {
            "content": full_content,
            "is_complete": complete,
            "generation_status": (GenerationStatus.COMPLETE if complete else GenerationStatus.GENERATING).value
        })

        return StructuredFlowResponse(
            content=full_content,
            is_complete=complete,
            next_prompt=None if complete else NEXT_PROMPT
        )
