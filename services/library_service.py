"""
사용자 라이브러리 (스토리/캐릭터/장소 조회 및 관리)
"""

import logging
from typing import Any, Dict

from models.request_models import CharacterData, CharacterRequest, PlaceData, PlaceRequest
from models.response_models import CharacterResponse, LibraryResponse, PlaceResponse
from repositories.story_repository import StoryRepository
from services.quota_service import QuotaService
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _character_fields(character: CharacterData) -> Dict[str, Any]:
    return {
        "name": character.name,
        "description": character.description,
        "traits": character.traits or [],
        "age": character.age,
        "appearance": character.appearance
    }


def _place_fields(place: PlaceData) -> Dict[str, Any]:
    return {
        "name": place.name,
        "location_type": place.location_type or "other",
        "description": place.description
    }


class LibraryService:
    def __init__(self, repository: StoryRepository, quota_service: QuotaService):
        self.repository = repository
        self.quota_service = quota_service

    async def get_user_library(self, user_id: str) -> LibraryResponse:
        """get-user-stories: 프로필 + 스토리 + 캐릭터 + 장소 (최신순)"""
        profile = await self.repository.get_profile(user_id)

        return LibraryResponse(
            success=True,
            profile=profile,
            stories=await self.repository.list_stories(user_id),
            characters=await self.repository.list_characters(user_id),
            places=await self.repository.list_places(user_id),
            stories_remaining=self.quota_service.remaining(profile) if profile else None
        )

    async def manage_characters(self, request: CharacterRequest, user_id: str) -> CharacterResponse:
        action = request.action
        character = request.character

        if action == "list":
            return CharacterResponse(characters=await self.repository.list_characters(user_id))

        if action == "create":
            if not character or not character.name:
                raise ValidationError("Character data required")
            created = await self.repository.create_character(user_id, _character_fields(character))
            logger.info(f"Character {created.id} created for user: {user_id}")
            return CharacterResponse(character=created)

        if action == "update":
            if not character or not character.id:
                raise ValidationError("Character ID required for update")
            if not character.name:
                raise ValidationError("Character name required")
            updated = await self.repository.update_character(user_id, character.id, _character_fields(character))
            if not updated:
                raise NotFoundError("Character not found")
            return CharacterResponse(character=updated)

        if action == "delete":
            if not character or not character.id:
                raise ValidationError("Character ID required for deletion")
            await self.repository.delete_character(user_id, character.id)
            return CharacterResponse()

        raise ValidationError("Invalid action")

    async def manage_places(self, request: PlaceRequest, user_id: str) -> PlaceResponse:
        action = request.action
        place = request.place

        if action == "list":
            return PlaceResponse(places=await self.repository.list_places(user_id))

        if action == "create":
            if not place or not place.name:
                raise ValidationError("Place data required")
            created = await self.repository.create_place(user_id, _place_fields(place))
            logger.info(f"Place {created.id} created for user: {user_id}")
            return PlaceResponse(place=created)

        if action == "update":
            if not place or not place.id:
                raise ValidationError("Place ID required for update")
            if not place.name:
                raise ValidationError("Place name required")
            updated = await self.repository.update_place(user_id, place.id, _place_fields(place))
            if not updated:
                raise NotFoundError("Place not found")
            return PlaceResponse(place=updated)

        if action == "delete":
            if not place or not place.id:
                raise ValidationError("Place ID required for deletion")
            await self.repository.delete_place(user_id, place.id)
            return PlaceResponse()

        raise ValidationError("Invalid action")
