"""
스토리 저장소 (Supabase 테이블 + 인증)
모든 조회는 user_id로 범위 제한
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging
import uuid

from postgrest.exceptions import APIError
from supabase import AsyncClient, acreate_client

from config.settings import Settings, get_settings
from models.story_models import Character, Place, Profile, Story, StoryImageRecord
from utils.errors import AuthenticationError, DatabaseError, ServiceUnavailableError

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class StoryRepository(ABC):
    """저장소 인터페이스"""

    @abstractmethod
    async def get_user_id(self, token: str) -> str:
        """Bearer 토큰 -> user_id (실패 시 AuthenticationError)"""
        pass

    # profiles
    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        pass

    @abstractmethod
    async def set_story_count(self, user_id: str, count: int) -> None:
        pass

    # characters
    @abstractmethod
    async def list_characters(self, user_id: str) -> List[Character]:
        pass

    @abstractmethod
    async def get_characters(self, user_id: str, ids: List[str]) -> List[Character]:
        pass

    @abstractmethod
    async def create_character(self, user_id: str, data: Dict[str, Any]) -> Character:
        pass

    @abstractmethod
    async def update_character(self, user_id: str, character_id: str, data: Dict[str, Any]) -> Optional[Character]:
        pass

    @abstractmethod
    async def delete_character(self, user_id: str, character_id: str) -> None:
        pass

    # places
    @abstractmethod
    async def list_places(self, user_id: str) -> List[Place]:
        pass

    @abstractmethod
    async def get_places(self, user_id: str, ids: List[str]) -> List[Place]:
        pass

    @abstractmethod
    async def create_place(self, user_id: str, data: Dict[str, Any]) -> Place:
        pass

    @abstractmethod
    async def update_place(self, user_id: str, place_id: str, data: Dict[str, Any]) -> Optional[Place]:
        pass

    @abstractmethod
    async def delete_place(self, user_id: str, place_id: str) -> None:
        pass

    # stories
    @abstractmethod
    async def list_stories(self, user_id: str) -> List[Story]:
        pass

    @abstractmethod
    async def get_story(self, user_id: str, story_id: str) -> Optional[Story]:
        pass

    @abstractmethod
    async def insert_story(self, row: Dict[str, Any]) -> Story:
        pass

    @abstractmethod
    async def update_story(self, user_id: str, story_id: str, fields: Dict[str, Any]) -> Optional[Story]:
        pass

    # story_images
    @abstractmethod
    async def list_story_images(self, story_id: str) -> List[StoryImageRecord]:
        pass

    @abstractmethod
    async def get_story_image(self, image_id: str) -> Optional[StoryImageRecord]:
        pass

    @abstractmethod
    async def insert_story_image(self, row: Dict[str, Any]) -> StoryImageRecord:
        pass

    @abstractmethod
    async def delete_story_image(self, image_id: str) -> None:
        pass


class SupabaseStoryRepository(StoryRepository):
    """Supabase (PostgREST) 구현"""

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def from_settings(cls, settings: Settings) -> "SupabaseStoryRepository":
        client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        logger.info("Supabase client initialized")
        return cls(client)

    async def _execute(self, query, action: str):
        try:
            return await query.execute()
        except APIError as e:
            logger.error(f"Supabase {action} failed: {e.message}")
            raise DatabaseError(f"Database error: {e.message}")

    async def get_user_id(self, token: str) -> str:
        try:
            response = await self.client.auth.get_user(token)
        except Exception as e:
            logger.warning(f"Token validation failed: {type(e).__name__}")
            raise AuthenticationError("User not authenticated") from e

        user = getattr(response, "user", None)
        if not user:
            raise AuthenticationError("User not authenticated")
        return user.id

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        response = await self._execute(
            self.client.table("profiles")
            .select("*")
            .eq("user_id", user_id)
            .limit(1),
            "get_profile"
        )
        return Profile(**response.data[0]) if response.data else None

    async def set_story_count(self, user_id: str, count: int) -> None:
        await self._execute(
            self.client.table("profiles")
            .update({"stories_this_month": count, "updated_at": utc_now()})
            .eq("user_id", user_id),
            "set_story_count"
        )

    async def list_characters(self, user_id: str) -> List[Character]:
        response = await self._execute(
            self.client.table("characters")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True),
            "list_characters"
        )
        return [Character(**row) for row in response.data]

    async def get_characters(self, user_id: str, ids: List[str]) -> List[Character]:
        if not ids:
            return []
        response = await self._execute(
            self.client.table("characters")
            .select("*")
            .in_("id", ids)
            .eq("user_id", user_id),
            "get_characters"
        )
        return [Character(**row) for row in response.data]

    async def create_character(self, user_id: str, data: Dict[str, Any]) -> Character:
        response = await self._execute(
            self.client.table("characters").insert({**data, "user_id": user_id}),
            "create_character"
        )
        return Character(**response.data[0])

    async def update_character(self, user_id: str, character_id: str, data: Dict[str, Any]) -> Optional[Character]:
        response = await self._execute(
            self.client.table("characters")
            .update({**data, "updated_at": utc_now()})
            .eq("id", character_id)
            .eq("user_id", user_id),
            "update_character"
        )
        return Character(**response.data[0]) if response.data else None

    async def delete_character(self, user_id: str, character_id: str) -> None:
        await self._execute(
            self.client.table("characters")
            .delete()
            .eq("id", character_id)
            .eq("user_id", user_id),
            "delete_character"
        )

    async def list_places(self, user_id: str) -> List[Place]:
        response = await self._execute(
            self.client.table("places")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True),
            "list_places"
        )
        return [Place(**row) for row in response.data]

    async def get_places(self, user_id: str, ids: List[str]) -> List[Place]:
        if not ids:
            return []
        response = await self._execute(
            self.client.table("places")
            .select("*")
            .in_("id", ids)
            .eq("user_id", user_id),
            "get_places"
        )
        return [Place(**row) for row in response.data]

    async def create_place(self, user_id: str, data: Dict[str, Any]) -> Place:
        response = await self._execute(
            self.client.table("places").insert({**data, "user_id": user_id}),
            "create_place"
        )
        return Place(**response.data[0])

    async def update_place(self, user_id: str, place_id: str, data: Dict[str, Any]) -> Optional[Place]:
        response = await self._execute(
            self.client.table("places")
            .update({**data, "updated_at": utc_now()})
            .eq("id", place_id)
            .eq("user_id", user_id),
            "update_place"
        )
        return Place(**response.data[0]) if response.data else None

    async def delete_place(self, user_id: str, place_id: str) -> None:
        await self._execute(
            self.client.table("places")
            .delete()
            .eq("id", place_id)
            .eq("user_id", user_id),
            "delete_place"
        )

    async def list_stories(self, user_id: str) -> List[Story]:
        response = await self._execute(
            self.client.table("stories")
            .select("*")
            .eq("user_id", user_id)
            .order("created_at", desc=True),
            "list_stories"
        )
        return [Story(**row) for row in response.data]

    async def get_story(self, user_id: str, story_id: str) -> Optional[Story]:
        response = await self._execute(
            self.client.table("stories")
            .select("*")
            .eq("id", story_id)
            .eq("user_id", user_id)
            .limit(1),
            "get_story"
        )
        return Story(**response.data[0]) if response.data else None

    async def insert_story(self, row: Dict[str, Any]) -> Story:
        response = await self._execute(self.client.table("stories").insert(row), "insert_story")
        return Story(**response.data[0])

    async def update_story(self, user_id: str, story_id: str, fields: Dict[str, Any]) -> Optional[Story]:
        response = await self._execute(
            self.client.table("stories")
            .update({**fields, "updated_at": fields.get("updated_at") or utc_now()})
            .eq("id", story_id)
            .eq("user_id", user_id),
            "update_story"
        )
        return Story(**response.data[0]) if response.data else None

    async def list_story_images(self, story_id: str) -> List[StoryImageRecord]:
        response = await self._execute(
            self.client.table("story_images")
            .select("*")
            .eq("story_id", story_id)
            .order("section_index"),
            "list_story_images"
        )
        return [StoryImageRecord(**row) for row in response.data]

    async def get_story_image(self, image_id: str) -> Optional[StoryImageRecord]:
        response = await self._execute(
            self.client.table("story_images")
            .select("*")
            .eq("id", image_id)
            .limit(1),
            "get_story_image"
        )
        return StoryImageRecord(**response.data[0]) if response.data else None

    async def insert_story_image(self, row: Dict[str, Any]) -> StoryImageRecord:
        response = await self._execute(self.client.table("story_images").insert(row), "insert_story_image")
        return StoryImageRecord(**response.data[0])

    async def delete_story_image(self, image_id: str) -> None:
        await self._execute(
            self.client.table("story_images").delete().eq("id", image_id),
            "delete_story_image"
        )


class InMemoryStoryRepository(StoryRepository):
    """로컬 개발용 메모리 저장소 (STORAGE_BACKEND=memory)

    tokens가 주어지면 토큰 -> user_id 매핑을 사용하고,
    없으면 토큰 문자열 자체를 user_id로 사용
    """

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self.tokens = tokens
        self.profiles: Dict[str, Dict[str, Any]] = {}
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {
            "characters": {},
            "places": {},
            "stories": {},
            "story_images": {},
        }

    def _insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        now = utc_now()
        stored = {"created_at": now, "updated_at": now, **row}
        stored["id"] = stored.get("id") or str(uuid.uuid4())
        self.tables[table][stored["id"]] = stored
        return dict(stored)

    def _owned(self, table: str, user_id: str) -> List[Dict[str, Any]]:
        rows = [r for r in self.tables[table].values() if r.get("user_id") == user_id]
        return sorted(rows, key=lambda r: r["created_at"], reverse=True)

    def _update(self, table: str, user_id: str, row_id: str, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        row = self.tables[table].get(row_id)
        if not row or row.get("user_id") != user_id:
            return None
        row.update(data)
        row["updated_at"] = data.get("updated_at") or utc_now()
        return dict(row)

    def _delete(self, table: str, user_id: str, row_id: str) -> None:
        row = self.tables[table].get(row_id)
        if row and row.get("user_id") == user_id:
            del self.tables[table][row_id]

    def add_profile(self, user_id: str, **fields) -> Profile:
        self.profiles[user_id] = {"user_id": user_id, **fields}
        return Profile(**self.profiles[user_id])

    async def get_user_id(self, token: str) -> str:
        if not token:
            raise AuthenticationError("User not authenticated")
        if self.tokens is None:
            return token
        if token not in self.tokens:
            raise AuthenticationError("User not authenticated")
        return self.tokens[token]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        if user_id not in self.profiles and self.tokens is None:
            # 개발 모드: 프로필 자동 생성
            self.add_profile(user_id)
        row = self.profiles.get(user_id)
        return Profile(**row) if row else None

    async def set_story_count(self, user_id: str, count: int) -> None:
        if user_id in self.profiles:
            self.profiles[user_id]["stories_this_month"] = count

    async def list_characters(self, user_id: str) -> List[Character]:
        return [Character(**r) for r in self._owned("characters", user_id)]

    async def get_characters(self, user_id: str, ids: List[str]) -> List[Character]:
        return [c for c in await self.list_characters(user_id) if c.id in ids]

    async def create_character(self, user_id: str, data: Dict[str, Any]) -> Character:
        return Character(**self._insert("characters", {**data, "user_id": user_id}))

    async def update_character(self, user_id: str, character_id: str, data: Dict[str, Any]) -> Optional[Character]:
        row = self._update("characters", user_id, character_id, data)
        return Character(**row) if row else None

    async def delete_character(self, user_id: str, character_id: str) -> None:
        self._delete("characters", user_id, character_id)

    async def list_places(self, user_id: str) -> List[Place]:
        return [Place(**r) for r in self._owned("places", user_id)]

    async def get_places(self, user_id: str, ids: List[str]) -> List[Place]:
        return [p for p in await self.list_places(user_id) if p.id in ids]

    async def create_place(self, user_id: str, data: Dict[str, Any]) -> Place:
        return Place(**self._insert("places", {**data, "user_id": user_id}))

    async def update_place(self, user_id: str, place_id: str, data: Dict[str, Any]) -> Optional[Place]:
        row = self._update("places", user_id, place_id, data)
        return Place(**row) if row else None

    async def delete_place(self, user_id: str, place_id: str) -> None:
        self._delete("places", user_id, place_id)

    async def list_stories(self, user_id: str) -> List[Story]:
        return [Story(**r) for r in self._owned("stories", user_id)]

    async def get_story(self, user_id: str, story_id: str) -> Optional[Story]:
        row = self.tables["stories"].get(story_id)
        if not row or row.get("user_id") != user_id:
            return None
        return Story(**row)

    async def insert_story(self, row: Dict[str, Any]) -> Story:
        return Story(**self._insert("stories", row))

    async def update_story(self, user_id: str, story_id: str, fields: Dict[str, Any]) -> Optional[Story]:
        row = self._update("stories", user_id, story_id, fields)
        return Story(**row) if row else None

    async def list_story_images(self, story_id: str) -> List[StoryImageRecord]:
        rows = [r for r in self.tables["story_images"].values() if r["story_id"] == story_id]
        return [StoryImageRecord(**r) for r in sorted(rows, key=lambda r: r["section_index"])]

    async def get_story_image(self, image_id: str) -> Optional[StoryImageRecord]:
        row = self.tables["story_images"].get(image_id)
        return StoryImageRecord(**row) if row else None

    async def insert_story_image(self, row: Dict[str, Any]) -> StoryImageRecord:
        return StoryImageRecord(**self._insert("story_images", row))

    async def delete_story_image(self, image_id: str) -> None:
        self.tables["story_images"].pop(image_id, None)


_repository: Optional[StoryRepository] = None


async def build_story_repository(settings: Settings) -> StoryRepository:
    """STORAGE_BACKEND에 따라 저장소 생성. 메모리 저장소는 명시적으로 선택해야 함"""
    if settings.memory_storage():
        logger.warning("STORAGE_BACKEND=memory: using in-memory repository, tokens are not verified (development only)")
        return InMemoryStoryRepository()

    if not settings.database_configured():
        logger.error("Supabase not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
        raise ServiceUnavailableError("Database not configured")

    return await SupabaseStoryRepository.from_settings(settings)


async def get_story_repository(settings: Optional[Settings] = None) -> StoryRepository:
    """프로세스당 1개. 미설정이면 호출 시점에 ServiceUnavailableError"""
    global _repository
    if _repository is None:
        _repository = await build_story_repository(settings or get_settings())
    return _repository
