"""
도메인 모델 (Supabase 테이블 행 + 스토리 엔진 타입)
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EngineOperation(str, Enum):
    GENERATE = "generate"
    CONTINUE = "continue"
    EDIT = "edit"
    COACH = "coach"
    ILLUSTRATE = "illustrate"


class StoryStatus(str, Enum):
    """엔진 응답용 상태"""
    PROMPT = "prompt"
    GENERATING = "generating"
    DRAFT = "draft"
    EDITING = "editing"
    FINAL = "final"
    BOOK_READY = "book-ready"


class GenerationStatus(str, Enum):
    """stories.generation_status 컬럼 값"""
    DRAFT = "draft"
    GENERATING = "generating"
    PAUSED = "paused"
    COMPLETE = "complete"


class StoryLength(str, Enum):
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"


class StoryTone(str, Enum):
    CALM = "calm"
    FUNNY = "funny"
    MAGICAL = "magical"
    ADVENTURE = "adventure"
    EDUCATIONAL = "educational"


class StoryType(str, Enum):
    """엔진 프롬프트 모드"""
    GUIDED = "guided"
    FREEFORM = "freeform"


class StoredStoryType(str, Enum):
    """stories.story_type 컬럼 값"""
    STRUCTURED = "structured"
    FREEFORM = "freeform"


class SubscriptionTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    DREAMBOOK = "dreambook"


class Profile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    subscription_tier: SubscriptionTier = SubscriptionTier.FREE
    stories_this_month: int = 0


class Character(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str
    description: Optional[str] = None
    traits: List[str] = Field(default_factory=list)
    age: Optional[str] = None
    appearance: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Place(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    user_id: Optional[str] = None
    name: str
    location_type: str = "other"
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Story(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    title: str = ""
    content: str = ""
    prompt: str = ""
    story_type: StoredStoryType = StoredStoryType.FREEFORM
    length: StoryLength = StoryLength.MEDIUM
    setting: Optional[str] = None
    characters: List[Dict[str, Any]] = Field(default_factory=list)
    themes: List[str] = Field(default_factory=list)
    parental_preferences: Dict[str, Any] = Field(default_factory=dict)
    is_complete: bool = False
    generation_status: GenerationStatus = GenerationStatus.DRAFT
    version: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class StoryImageRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    story_id: str
    image_url: Optional[str] = None
    image_data: Optional[str] = None
    section_index: int = 0
    prompt: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def source(self) -> str:
        """<img src>에 바로 쓸 수 있는 값 (URL 또는 data URI)"""
        if self.image_url:
            return self.image_url
        return f"data:image/png;base64,{self.image_data or ''}"
