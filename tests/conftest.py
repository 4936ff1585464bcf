"""
Pytest 설정 및 공통 Fixtures
"""
import pytest
from fastapi.testclient import TestClient
import sys
import os

# 경로 추가 - 프로젝트 루트 모듈을 import할 수 있도록
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from config.settings import Settings
from dependencies import get_app_settings, get_provider, get_rate_limiter, get_repository
from main import app
from providers.llm_provider import MockProvider, ProviderError
from repositories.story_repository import InMemoryStoryRepository
from utils.errors import DatabaseError
from utils.rate_limiter import RateLimiter


class RecordingProvider(MockProvider):
    """호출 기록 + 지정한 이미지 호출 번호에서 실패하는 Mock Provider"""

    def __init__(self, failing_image_calls=None):
        super().__init__(latency=0)
        self.failing_image_calls = set(failing_image_calls or [])
        self.image_calls = 0
        self.completions = []
        self.image_prompts = []

    async def complete(self, messages, temperature=0.8, max_tokens=1000, model=None):
        self.completions.append({
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "model": model
        })
        return await super().complete(messages, temperature, max_tokens, model)

    async def generate_image(self, prompt, size="1024x1024", quality=None, model=None):
        self.image_calls += 1
        self.image_prompts.append(prompt)
        if self.image_calls in self.failing_image_calls:
            raise ProviderError("OpenAI API error: 500", upstream_status=500)
        return await super().generate_image(prompt, size, quality, model)


class RecordingRepository(InMemoryStoryRepository):
    """지정한 story_images 저장 번호에서 DatabaseError를 내는 메모리 저장소"""

    def __init__(self, tokens=None, failing_image_inserts=None):
        super().__init__(tokens)
        self.failing_image_inserts = set(failing_image_inserts or [])
        self.image_inserts = 0

    async def insert_story_image(self, row):
        self.image_inserts += 1
        if self.image_inserts in self.failing_image_inserts:
            raise DatabaseError("Database error: insert failed")
        return await super().insert_story_image(row)


class RecordingSleep:
    """asyncio.sleep 대체 (대기 없이 지연값만 기록)"""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def settings():
    """대기 시간 0 설정 (.env 무시)"""
    return Settings(
        _env_file=None,
        AI_PROVIDER="mock",
        IMAGE_RETRY_BASE_DELAY=0,
        IMAGE_REQUEST_DELAY=0,
    )


@pytest.fixture
def repository():
    """토큰 2개 (alice, bob), 무료 등급 프로필"""
    repo = RecordingRepository(tokens={"token-alice": "alice", "token-bob": "bob"})
    repo.add_profile("alice", display_name="Alice", subscription_tier="free", stories_this_month=0)
    repo.add_profile("bob", display_name="Bob", subscription_tier="free", stories_this_month=0)
    return repo


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def rate_limiter():
    return RateLimiter(limit_per_hour=1000)


@pytest.fixture
def client(settings, repository, provider, rate_limiter):
    """FastAPI 테스트 클라이언트 (의존성 교체)"""
    app.dependency_overrides[get_app_settings] = lambda: settings
    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_provider] = lambda: provider
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer token-alice"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": "Bearer token-bob"}


@pytest.fixture
def story_prompt():
    """엔진 generate 요청용 프롬프트"""
    return {
        "text": "a little dragon who is afraid of the dark",
        "length": "short",
        "tone": "calm",
        "type": "freeform"
    }


@pytest.fixture
def multi_paragraph_story():
    return "\n\n".join([
        "Once upon a time a small fox lived at the edge of a quiet wood.",
        "Every night the fox counted the stars before falling asleep.",
        "One night a star was missing, so the fox set out to find it.",
        "With help from an owl, the fox found the star hiding in a pond.",
        "The fox gently lifted it back to the sky and went home to bed.",
    ])
