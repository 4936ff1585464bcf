"""
Provider 테스트 (OpenAI HTTP 호출 / Mock / 팩토리)
"""
import asyncio

import aiohttp
import pytest

from config.settings import Settings
from providers.llm_provider import (
    LLMProviderFactory, MockProvider, OpenAIProvider, ProviderError,
)
from utils.errors import ServiceUnavailableError


class FakeResponse:
    def __init__(self, status=200, json_body=None, body=b"", text=""):
        self.status = status
        self._json = json_body or {}
        self._body = body
        self._text = text

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False

    async def json(self):
        return self._json

    async def read(self):
        return self._body

    async def text(self):
        return self._text


class FakeSession:
    """aiohttp.ClientSession 대체 (요청 기록)"""

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        return False

    def post(self, url, headers=None, json=None, timeout=None):
        self.requests.append({"url": url, "headers": headers, "json": json})
        if self.error:
            raise self.error
        return self.response


def _provider(session, api_key="sk-test"):
    return OpenAIProvider(api_key=api_key, base_url="https://api.test/v1/", session_factory=session)


@pytest.mark.unit
class TestOpenAIProvider:
    """OpenAI REST 호출"""

    def test_complete(self):
        session = FakeSession(FakeResponse(json_body={
            "choices": [{"message": {"content": "# Title\n\nOnce upon a time"}}]
        }))

        result = asyncio.run(_provider(session).complete(
            [{"role": "user", "content": "hi"}], temperature=0.7, max_tokens=500, model="gpt-4o-mini"
        ))

        assert result == "# Title\n\nOnce upon a time"
        request = session.requests[0]
        assert request["url"] == "https://api.test/v1/chat/completions"
        assert request["headers"]["Authorization"] == "Bearer sk-test"
        assert request["json"]["model"] == "gpt-4o-mini"
        assert request["json"]["max_tokens"] == 500
        assert request["json"]["temperature"] == 0.7

    def test_complete_without_choices(self):
        session = FakeSession(FakeResponse(json_body={"choices": []}))

        with pytest.raises(ProviderError):
            asyncio.run(_provider(session).complete([{"role": "user", "content": "hi"}]))

    def test_http_error_keeps_upstream_status(self):
        session = FakeSession(FakeResponse(status=429, text="rate limited"))

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(_provider(session).complete([{"role": "user", "content": "hi"}]))

        assert exc_info.value.upstream_status == 429
        assert exc_info.value.status_code == 502

    def test_client_error_wrapped(self):
        session = FakeSession(error=aiohttp.ClientConnectionError("refused"))

        with pytest.raises(ProviderError):
            asyncio.run(_provider(session).complete([{"role": "user", "content": "hi"}]))

    def test_timeout_wrapped(self):
        session = FakeSession(error=asyncio.TimeoutError())

        with pytest.raises(ProviderError) as exc_info:
            asyncio.run(_provider(session).generate_image("a fox"))

        assert "timed out" in exc_info.value.message

    def test_generate_image_b64(self):
        session = FakeSession(FakeResponse(json_body={"data": [{"b64_json": "aGVsbG8="}]}))

        image = asyncio.run(_provider(session).generate_image("a fox"))

        assert image.source == "data:image/png;base64,aGVsbG8="
        payload = session.requests[0]["json"]
        assert payload["model"] == "gpt-image-1"
        assert payload["size"] == "1024x1024"
        assert payload["quality"] == "high"
        assert payload["n"] == 1

    def test_generate_image_url(self):
        session = FakeSession(FakeResponse(json_body={"data": [{"url": "https://img.test/a.png"}]}))

        image = asyncio.run(_provider(session).generate_image("a fox"))
        assert image.source == "https://img.test/a.png"

    def test_generate_image_empty(self):
        session = FakeSession(FakeResponse(json_body={"data": [{}]}))

        with pytest.raises(ProviderError):
            asyncio.run(_provider(session).generate_image("a fox"))

    def test_synthesize_speech(self):
        session = FakeSession(FakeResponse(body=b"ID3audio"))

        audio = asyncio.run(_provider(session).synthesize_speech("Goodnight", voice="shimmer"))

        assert audio == b"ID3audio"
        request = session.requests[0]
        assert request["url"] == "https://api.test/v1/audio/speech"
        assert request["json"] == {
            "model": "tts-1",
            "input": "Goodnight",
            "voice": "shimmer",
            "response_format": "mp3"
        }

    def test_missing_api_key(self):
        session = FakeSession(FakeResponse())
        provider = _provider(session, api_key="")

        assert provider.is_available() is False
        with pytest.raises(ServiceUnavailableError):
            asyncio.run(provider.synthesize_speech("hi"))
        assert session.requests == []


@pytest.mark.unit
class TestMockProvider:
    """네트워크 없는 Mock"""

    def test_story_has_title_line(self):
        provider = MockProvider(latency=0)

        result = asyncio.run(provider.complete([
            {"role": "system", "content": "Write a story. The story should have a magical tone."},
            {"role": "user", "content": "Create a story based on: a lost kite"}
        ]))

        first_line, _, body = result.partition("\n")
        assert first_line == "# The Starlight Key"
        assert "a lost kite" in body
        assert "The End." in body

    def test_coach_suggestions(self):
        provider = MockProvider(latency=0)

        result = asyncio.run(provider.complete([
            {"role": "system", "content": "You are a helpful writing coach."},
            {"role": "user", "content": "Help"}
        ]))

        assert len(result.split("\n")) == 4


@pytest.mark.unit
class TestProviderFactory:
    """AI_PROVIDER 설정별 Provider"""

    def test_mock_by_default(self):
        provider = LLMProviderFactory.get_provider(Settings(_env_file=None))
        assert isinstance(provider, MockProvider)

    def test_openai_selected(self):
        settings = Settings(_env_file=None, AI_PROVIDER="openai", OPENAI_API_KEY="sk-test")
        provider = LLMProviderFactory.get_provider(settings)

        assert isinstance(provider, OpenAIProvider)
        assert provider.is_available()

    def test_openai_without_key_is_unavailable(self):
        settings = Settings(_env_file=None, AI_PROVIDER="openai", OPENAI_API_KEY="")
        provider = LLMProviderFactory.get_provider(settings)

        assert isinstance(provider, OpenAIProvider)
        assert not provider.is_available()

    def test_unknown_provider_falls_back_to_mock(self):
        provider = LLMProviderFactory.get_provider(Settings(_env_file=None, AI_PROVIDER="claude"))
        assert isinstance(provider, MockProvider)

    def test_available_providers(self):
        available = LLMProviderFactory.get_available_providers(Settings(_env_file=None, OPENAI_API_KEY=""))
        assert available == {"openai": False, "mock": True}
