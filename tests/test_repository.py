"""
저장소 테스트 (Supabase 쿼리 체인 / 메모리 저장소 / 저장소 선택)
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from postgrest.exceptions import APIError

from config.settings import Settings
from repositories import story_repository
from repositories.story_repository import (
    InMemoryStoryRepository, SupabaseStoryRepository, build_story_repository, get_story_repository,
)
from utils.errors import AuthenticationError, DatabaseError, ServiceUnavailableError


def _client_returning(data):
    """table(...).<체인>.execute() 가 data를 돌려주는 Mock 비동기 클라이언트"""
    client = MagicMock()
    query = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "in_", "order", "limit"):
        getattr(query, method).return_value = query
    query.execute = AsyncMock(return_value=MagicMock(data=data))
    client.table.return_value = query
    return client, query


def _auth_client(**get_user):
    client = MagicMock()
    client.auth.get_user = AsyncMock(**get_user)
    return client


@pytest.mark.unit
class TestSupabaseRepository:
    """PostgREST 호출 형태"""

    def test_get_user_id(self):
        client = _auth_client(return_value=MagicMock(user=MagicMock(id="user-1")))

        assert asyncio.run(SupabaseStoryRepository(client).get_user_id("jwt")) == "user-1"
        client.auth.get_user.assert_awaited_once_with("jwt")

    def test_invalid_token(self):
        client = _auth_client(side_effect=RuntimeError("invalid JWT"))

        with pytest.raises(AuthenticationError):
            asyncio.run(SupabaseStoryRepository(client).get_user_id("bad"))

    def test_no_user_in_response(self):
        client = _auth_client(return_value=MagicMock(user=None))

        with pytest.raises(AuthenticationError):
            asyncio.run(SupabaseStoryRepository(client).get_user_id("jwt"))

    def test_get_story_scoped_by_user(self):
        client, query = _client_returning([{"id": "s1", "user_id": "u1", "title": "Stars"}])

        story = asyncio.run(SupabaseStoryRepository(client).get_story("u1", "s1"))

        assert story.title == "Stars"
        client.table.assert_called_with("stories")
        query.eq.assert_any_call("id", "s1")
        query.eq.assert_any_call("user_id", "u1")
        query.execute.assert_awaited_once()

    def test_get_story_missing(self):
        client, _ = _client_returning([])
        assert asyncio.run(SupabaseStoryRepository(client).get_story("u1", "s1")) is None

    def test_list_characters_newest_first(self):
        client, query = _client_returning([{"id": "c1", "user_id": "u1", "name": "Pip"}])

        characters = asyncio.run(SupabaseStoryRepository(client).list_characters("u1"))

        assert [c.name for c in characters] == ["Pip"]
        query.order.assert_called_with("created_at", desc=True)

    def test_get_characters_skips_empty_ids(self):
        client, _ = _client_returning([])

        assert asyncio.run(SupabaseStoryRepository(client).get_characters("u1", [])) == []
        client.table.assert_not_called()

    def test_set_story_count(self):
        client, query = _client_returning([])

        asyncio.run(SupabaseStoryRepository(client).set_story_count("u1", 7))

        client.table.assert_called_with("profiles")
        update_fields = query.update.call_args[0][0]
        assert update_fields["stories_this_month"] == 7

    def test_list_images_ordered_by_section(self):
        client, query = _client_returning([
            {"id": "i1", "story_id": "s1", "image_data": "abc", "section_index": 0}
        ])

        images = asyncio.run(SupabaseStoryRepository(client).list_story_images("s1"))

        assert images[0].source == "data:image/png;base64,abc"
        query.order.assert_called_with("section_index")

    def test_api_error_wrapped(self):
        client, query = _client_returning([])
        query.execute.side_effect = APIError({"message": "relation does not exist", "code": "42P01"})

        with pytest.raises(DatabaseError) as exc_info:
            asyncio.run(SupabaseStoryRepository(client).list_stories("u1"))

        assert exc_info.value.status_code == 500


@pytest.mark.unit
class TestInMemoryRepository:
    """개발용 메모리 저장소"""

    def test_token_is_user_id_without_token_map(self):
        repo = InMemoryStoryRepository()

        assert asyncio.run(repo.get_user_id("dev-user")) == "dev-user"
        assert asyncio.run(repo.get_profile("dev-user")).stories_this_month == 0

    def test_token_map_required(self, repository):
        with pytest.raises(AuthenticationError):
            asyncio.run(repository.get_user_id("unknown"))
        assert asyncio.run(repository.get_profile("carol")) is None

    def test_rows_scoped_by_owner(self, repository):
        story = asyncio.run(repository.insert_story({"user_id": "alice", "title": "Mine"}))

        assert asyncio.run(repository.get_story("bob", story.id)) is None
        assert asyncio.run(repository.update_story("bob", story.id, {"title": "Stolen"})) is None
        assert asyncio.run(repository.get_story("alice", story.id)).title == "Mine"

        character = asyncio.run(repository.create_character("alice", {"name": "Pip"}))
        asyncio.run(repository.delete_character("bob", character.id))
        assert len(asyncio.run(repository.list_characters("alice"))) == 1


@pytest.mark.unit
class TestRepositorySelection:
    """STORAGE_BACKEND / Supabase 설정에 따른 저장소 선택"""

    @pytest.fixture(autouse=True)
    def fresh_repository(self, monkeypatch):
        monkeypatch.setattr(story_repository, "_repository", None)

    def test_missing_database_config_is_unavailable(self):
        settings = Settings(_env_file=None)

        with pytest.raises(ServiceUnavailableError) as exc_info:
            asyncio.run(get_story_repository(settings))

        assert exc_info.value.status_code == 503
        assert story_repository._repository is None

    def test_memory_backend_requires_opt_in(self):
        repo = asyncio.run(build_story_repository(Settings(_env_file=None, STORAGE_BACKEND="memory")))
        assert isinstance(repo, InMemoryStoryRepository)

    def test_supabase_async_client(self, monkeypatch):
        client = MagicMock()
        create = AsyncMock(return_value=client)
        monkeypatch.setattr(story_repository, "acreate_client", create)
        settings = Settings(
            _env_file=None,
            SUPABASE_URL="https://project.supabase.co",
            SUPABASE_SERVICE_ROLE_KEY="service-role"
        )

        repo = asyncio.run(get_story_repository(settings))

        assert isinstance(repo, SupabaseStoryRepository)
        assert repo.client is client
        create.assert_awaited_once_with("https://project.supabase.co", "service-role")
        assert asyncio.run(get_story_repository(settings)) is repo

    def test_settings_warn_about_memory_backend(self):
        warnings = Settings(_env_file=None, STORAGE_BACKEND="memory").validate_settings()
        assert any("tokens are not verified" in w for w in warnings)
