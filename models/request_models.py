"""
요청 모델 정의 (프론트엔드 camelCase 필드와 호환)
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.story_models import StoredStoryType, StoryLength, StoryTone, StoryType


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StoryPrompt(CamelModel):
    text: str = Field(..., min_length=1, description="스토리 아이디어")
    length: StoryLength = Field(StoryLength.MEDIUM, description="길이 (short/medium/long)")
    tone: Optional[StoryTone] = Field(None, description="분위기")
    type: StoryType = Field(StoryType.FREEFORM, description="프롬프트 모드 (guided/freeform)")
    selected_characters: List[str] = Field(default_factory=list, alias="selectedCharacters")
    selected_places: List[str] = Field(default_factory=list, alias="selectedPlaces")
    generate_images: bool = Field(False, alias="generateImages")
    additional_context: Optional[str] = Field(None, alias="additionalContext")


class EngineRequest(CamelModel):
    operation: str = Field(..., description="generate/continue/edit/coach/illustrate")
    story_id: Optional[str] = Field(None, alias="storyId")
    prompt: Optional[StoryPrompt] = None
    content: Optional[str] = Field(None, description="continue 방향 / coach 대상 본문 / illustrate 장면")
    edit_instructions: Optional[str] = Field(None, alias="editInstructions")
    coach_request: Optional[str] = Field(None, alias="coachRequest")


class GenerateStoryRequest(CamelModel):
    prompt: str = Field(..., min_length=1, description="스토리 프롬프트")
    story_type: StoredStoryType = Field(StoredStoryType.FREEFORM, alias="storyType")
    length: StoryLength = Field(StoryLength.MEDIUM)
    setting: Optional[str] = None
    characters: List[Dict[str, Any]] = Field(default_factory=list)
    themes: List[str] = Field(default_factory=list)
    parental_preferences: Dict[str, Any] = Field(default_factory=dict, alias="parentalPreferences")
    existing_story_id: Optional[str] = Field(None, alias="existingStoryId")


class StoryImageRequest(CamelModel):
    story_id: str = Field(..., alias="storyId")
    prompt: str = Field(..., min_length=1, description="장면 설명")


class StructuredFlowAnswers(CamelModel):
    length: Optional[StoryLength] = None
    setting: Optional[str] = None
    characters: Optional[str] = None
    themes: Optional[List[str]] = None
    parental_preferences: Optional[Dict[str, Any]] = Field(None, alias="parentalPreferences")


class StructuredFlowRequest(CamelModel):
    step: str = Field(..., description="initialize/continue/finalize")
    story_id: Optional[str] = Field(None, alias="storyId")
    answers: Optional[StructuredFlowAnswers] = None
    user_response: Optional[str] = Field(None, alias="userResponse")


class CharacterData(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    traits: Optional[List[str]] = None
    age: Optional[str] = None
    appearance: Optional[str] = None


class CharacterRequest(CamelModel):
    action: str = Field(..., description="list/create/update/delete")
    character: Optional[CharacterData] = None


class PlaceData(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    location_type: Optional[str] = Field(None, alias="locationType")
    description: Optional[str] = None


class PlaceRequest(CamelModel):
    action: str = Field(..., description="list/create/update/delete")
    place: Optional[PlaceData] = None


class SpeechRequest(CamelModel):
    text: Optional[str] = None
    voice: str = "alloy"
