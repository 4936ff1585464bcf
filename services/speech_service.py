"""
스토리 낭독 (text-to-speech)
"""

import base64
import logging

from models.request_models import SpeechRequest
from models.response_models import SpeechResponse
from providers.llm_provider import LLMProvider, ProviderError
from utils.errors import (
    DreamTalesError, RateLimitError, ServiceUnavailableError, ValidationError,
)

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4096
SUPPORTED_VOICES = {"alloy", "echo", "fable", "onyx", "nova", "shimmer"}


class SpeechService:
    def __init__(self, provider: LLMProvider):
        self.provider = provider

    def validate(self, request: SpeechRequest) -> None:
        text = request.text
        if not text or not text.strip():
            raise ValidationError("Text content is required for speech generation.")

        if len(text) > MAX_TEXT_LENGTH:
            raise ValidationError(f"Text is too long. Maximum {MAX_TEXT_LENGTH} characters allowed.")

        if request.voice not in SUPPORTED_VOICES:
            raise ValidationError(f"Unsupported voice: {request.voice}")

    async def synthesize(self, request: SpeechRequest) -> SpeechResponse:
        self.validate(request)

        if not self.provider.is_available():
            logger.error("Speech provider not configured")
            raise ServiceUnavailableError("Speech service is temporarily unavailable. Please try again later.")

        try:
            audio = await self.provider.synthesize_speech(request.text, voice=request.voice)
        except ProviderError as e:
            logger.error(f"TTS provider error: {e.upstream_status} {e.message}")
            if e.upstream_status == 429:
                raise RateLimitError("Speech service is busy. Please try again in a moment.")
            raise DreamTalesError("Failed to generate speech. Please try again.", status_code=500)

        if not audio:
            logger.error("Received empty audio response")
            raise DreamTalesError("Received empty audio response. Please try again.", status_code=500)

        return SpeechResponse(success=True, audio_content=base64.b64encode(audio).decode("ascii"))
