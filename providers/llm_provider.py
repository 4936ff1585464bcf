"""
AI Provider (텍스트 / 이미지 / 음성)
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional
import asyncio
import aiohttp
import logging
from dataclasses import dataclass
import time

from config.settings import Settings, get_settings
from utils.errors import ServiceUnavailableError, UpstreamError

logger = logging.getLogger(__name__)


class ProviderError(UpstreamError):
    """Provider HTTP 오류 (upstream_status: Provider가 돌려준 상태코드)"""

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        super().__init__(message)
        self.upstream_status = upstream_status


@dataclass
class GeneratedImage:
    """이미지 생성 결과 (호스팅 URL 또는 base64)"""
    url: Optional[str] = None
    b64_json: Optional[str] = None
    revised_prompt: Optional[str] = None

    @property
    def source(self) -> str:
        if self.url:
            return self.url
        return f"data:image/png;base64,{self.b64_json or ''}"


class LLMProvider(ABC):
    def __init__(self):
        pass

    @abstractmethod
    async def complete(self, messages: List[Dict[str, str]], temperature: float = 0.8,
                       max_tokens: int = 1000, model: Optional[str] = None) -> str:
        """chat completion 결과 텍스트"""
        pass

    @abstractmethod
    async def generate_image(self, prompt: str, size: str = "1024x1024",
                             quality: Optional[str] = None, model: Optional[str] = None) -> GeneratedImage:
        pass

    @abstractmethod
    async def synthesize_speech(self, text: str, voice: str = "alloy",
                                response_format: str = "mp3") -> bytes:
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """프로바이더 사용 가능 여부"""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI Provider (chat / images / audio)"""

    def __init__(self, api_key: str, model: str = "gpt-4.1-2025-04-14",
                 image_model: str = "gpt-image-1", image_quality: str = "high",
                 tts_model: str = "tts-1", base_url: str = "https://api.openai.com/v1",
                 timeout: int = 60, session_factory: Callable[..., Any] = aiohttp.ClientSession):
        super().__init__()
        self.api_key = api_key
        self.model = model
        self.image_model = image_model
        self.image_quality = image_quality
        self.tts_model = tts_model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_factory = session_factory

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _ensure_available(self):
        if not self.is_available():
            logger.error("OpenAIProvider unavailable: OPENAI_API_KEY is not set")
            raise ServiceUnavailableError("OpenAI API key not configured")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    async def _post(self, path: str, payload: Dict[str, Any], expect_json: bool = True):
        """POST 요청. JSON 또는 바이트 본문 반환"""
        url = f"{self.base_url}{path}"
        start_time = time.time()

        try:
            async with self.session_factory() as session:
                async with session.post(url, headers=self._headers(), json=payload,
                                        timeout=aiohttp.ClientTimeout(total=self.timeout)) as response:
                    elapsed = time.time() - start_time

                    if response.status != 200:
                        error_text = await response.text()
                        logger.error(f"OpenAI API error on {path}:")
                        logger.error(f"  status: {response.status}")
                        logger.error(f"  body: {error_text[:500]}")

                        if response.status == 401:
                            logger.error("  authentication failed - check OPENAI_API_KEY")

                        raise ProviderError(
                            f"OpenAI API error: {response.status}",
                            upstream_status=response.status
                        )

                    logger.info(f"OpenAI {path} completed in {elapsed:.2f}s")

                    if expect_json:
                        return await response.json()
                    return await response.read()

        except asyncio.TimeoutError:
            logger.error(f"OpenAI API timeout on {path} ({self.timeout}s)")
            raise ProviderError("OpenAI API request timed out")
        except aiohttp.ClientError as e:
            logger.error(f"HTTP client error on {path}: {type(e).__name__}: {e}")
            raise ProviderError(f"HTTP client error: {e}")

    async def complete(self, messages: List[Dict[str, str]], temperature: float = 0.8,
                       max_tokens: int = 1000, model: Optional[str] = None) -> str:
        self._ensure_available()

        payload = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens
        }

        result = await self._post("/chat/completions", payload)

        choices = result.get("choices") or []
        if not choices:
            logger.error(f"OpenAI response has no choices: {result}")
            raise ProviderError("No content generated")

        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise ProviderError("No content generated")

        return content

    async def generate_image(self, prompt: str, size: str = "1024x1024",
                             quality: Optional[str] = None, model: Optional[str] = None) -> GeneratedImage:
        self._ensure_available()

        payload = {
            "model": model or self.image_model,
            "prompt": prompt,
            "n": 1,
            "size": size,
            "quality": quality or self.image_quality
        }

        result = await self._post("/images/generations", payload)

        data = result.get("data") or []
        if not data:
            raise ProviderError("Image generation returned no data")

        image = data[0]
        if not image.get("url") and not image.get("b64_json"):
            raise ProviderError("Image generation returned no image")

        return GeneratedImage(
            url=image.get("url"),
            b64_json=image.get("b64_json"),
            revised_prompt=image.get("revised_prompt")
        )

    async def synthesize_speech(self, text: str, voice: str = "alloy",
                                response_format: str = "mp3") -> bytes:
        self._ensure_available()

        payload = {
            "model": self.tts_model,
            "input": text,
            "voice": voice,
            "response_format": response_format
        }

        return await self._post("/audio/speech", payload, expect_json=False)

    def get_provider_name(self) -> str:
        return f"OpenAI {self.model}"


class MockProvider(LLMProvider):
    """Mock 데이터 제공자 (네트워크 없음)"""

    def __init__(self, latency: float = 0.3):
        super().__init__()
        from templates.mock_templates import MockStoryGenerator
        self.generator = MockStoryGenerator()
        self.latency = latency

    def is_available(self) -> bool:
        return True

    async def _simulate_latency(self):
        if self.latency:
            await asyncio.sleep(self.latency)

    async def complete(self, messages: List[Dict[str, str]], temperature: float = 0.8,
                       max_tokens: int = 1000, model: Optional[str] = None) -> str:
        await self._simulate_latency()
        return self.generator.respond(messages)

    async def generate_image(self, prompt: str, size: str = "1024x1024",
                             quality: Optional[str] = None, model: Optional[str] = None) -> GeneratedImage:
        await self._simulate_latency()
        return GeneratedImage(b64_json=self.generator.placeholder_image(), revised_prompt=prompt)

    async def synthesize_speech(self, text: str, voice: str = "alloy",
                                response_format: str = "mp3") -> bytes:
        await self._simulate_latency()
        return self.generator.placeholder_audio(text)

    def get_provider_name(self) -> str:
        return "Mock Provider"


class LLMProviderFactory:
    """LLM Provider 팩토리"""

    @staticmethod
    def get_provider(settings: Optional[Settings] = None) -> LLMProvider:
        settings = settings or get_settings()
        provider_name = settings.AI_PROVIDER.lower()

        if provider_name == "openai":
            provider = OpenAIProvider(
                api_key=settings.OPENAI_API_KEY,
                model=settings.OPENAI_MODEL,
                image_model=settings.OPENAI_IMAGE_MODEL,
                image_quality=settings.OPENAI_IMAGE_QUALITY,
                tts_model=settings.OPENAI_TTS_MODEL,
                base_url=settings.OPENAI_BASE_URL,
                timeout=settings.OPENAI_TIMEOUT
            )

            if not provider.is_available():
                # 키 없이 선택된 경우: 호출 시점에 503
                logger.error("OpenAI provider selected but OPENAI_API_KEY is empty")

            return provider

        if provider_name != "mock":
            logger.warning(f"Unknown AI_PROVIDER '{settings.AI_PROVIDER}', using mock provider")

        return MockProvider()

    @staticmethod
    def get_available_providers(settings: Optional[Settings] = None) -> Dict[str, bool]:
        """사용 가능한 Provider 목록"""
        settings = settings or get_settings()

        return {
            "openai": bool(settings.OPENAI_API_KEY),
            "mock": True
        }

    @staticmethod
    def test_provider(provider_name: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
        """특정 Provider 테스트"""
        settings = settings or get_settings()

        if provider_name == "openai":
            provider = OpenAIProvider(settings.OPENAI_API_KEY, settings.OPENAI_MODEL)
        elif provider_name == "mock":
            provider = MockProvider()
        else:
            return {"status": "error", "message": f"Unknown provider: {provider_name}"}

        return {
            "status": "available" if provider.is_available() else "unavailable",
            "provider": provider.get_provider_name(),
            "message": "ready" if provider.is_available() else "API key missing"
        }
