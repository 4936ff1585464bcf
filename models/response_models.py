"""
응답 모델 정의 ({success, ...payload} 형식)
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.request_models import StoryPrompt
from models.story_models import Character, Place, Profile, Story, StoryImageRecord, StoryStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class StoryImage(CamelModel):
    id: str
    url: str
    prompt: str
    section_index: int = Field(..., alias="sectionIndex")


class StoryMetadata(CamelModel):
    word_count: int = Field(..., alias="wordCount")
    estimated_read_time: int = Field(..., alias="estimatedReadTime")
    created_at: str = Field(..., alias="createdAt")
    updated_at: str = Field(..., alias="updatedAt")
    version: int = 1


class StoryContent(CamelModel):
    id: str
    title: str
    content: str
    status: StoryStatus
    prompt: StoryPrompt
    metadata: StoryMetadata
    images: List[StoryImage] = Field(default_factory=list)


class EngineResponse(CamelModel):
    success: bool = True
    story: Optional[StoryContent] = None
    suggestions: Optional[List[str]] = None
    images: Optional[List[str]] = None
    error: Optional[str] = None


class GenerateStoryResponse(CamelModel):
    success: bool = True
    story: Story
    content: str


class StoryImageResponse(CamelModel):
    success: bool = True
    image_url: str = Field(..., alias="imageUrl")
    story_id: str = Field(..., alias="storyId")


class StoryImagesResponse(CamelModel):
    success: bool = True
    images: List[StoryImageRecord] = Field(default_factory=list)


class FlowQuestion(CamelModel):
    id: str
    question: str
    options: Optional[List[str]] = None
    type: Optional[str] = None


class StructuredFlowResponse(CamelModel):
    success: bool = True
    question: Optional[FlowQuestion] = None
    progress: Optional[int] = None
    total: Optional[int] = None
    answers: Optional[Dict[str, Any]] = None
    story_id: Optional[str] = Field(None, alias="storyId")
    content: Optional[str] = None
    is_complete: Optional[bool] = Field(None, alias="isComplete")
    next_prompt: Optional[str] = Field(None, alias="nextPrompt")


class LibraryResponse(CamelModel):
    success: bool = True
    profile: Optional[Profile] = None
    stories: List[Story] = Field(default_factory=list)
    characters: List[Character] = Field(default_factory=list)
    places: List[Place] = Field(default_factory=list)
    stories_remaining: Optional[int] = Field(None, alias="storiesRemaining")


class CharacterResponse(CamelModel):
    success: bool = True
    character: Optional[Character] = None
    characters: Optional[List[Character]] = None


class PlaceResponse(CamelModel):
    success: bool = True
    place: Optional[Place] = None
    places: Optional[List[Place]] = None


class SpeechResponse(CamelModel):
    success: bool = True
    audio_content: str = Field(..., alias="audioContent")


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
