"""
환경 설정 관리 (OpenAI + Supabase)
"""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # AI Provider 설정
    AI_PROVIDER: str = "mock"

    # OpenAI 설정
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = "https://api.openai.com/v1"
    OPENAI_MODEL: str = "gpt-4.1-2025-04-14"
    OPENAI_FAST_MODEL: str = "gpt-4o-mini"
    OPENAI_IMAGE_MODEL: str = "gpt-image-1"
    OPENAI_IMAGE_QUALITY: str = "high"
    OPENAI_TTS_MODEL: str = "tts-1"
    OPENAI_TIMEOUT: int = 60

    # 저장소 설정 ("supabase" | "memory")
    STORAGE_BACKEND: str = "supabase"

    # Supabase 설정
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_ROLE_KEY: str = ""

    # 구독 한도
    FREE_TIER_MONTHLY_LIMIT: int = 30

    # 이미지 생성 재시도
    IMAGE_MAX_ATTEMPTS: int = 3
    IMAGE_RETRY_BASE_DELAY: float = 1.0
    IMAGE_REQUEST_DELAY: float = 2.0

    # Rate Limiting
    REQUEST_LIMIT_PER_HOUR: int = 100

    # 로깅 설정
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def get_current_provider_info(self) -> dict:
        """현재 Provider 정보"""
        if self.AI_PROVIDER == "openai" and self.OPENAI_API_KEY:
            return {
                "provider": "openai",
                "model": self.OPENAI_MODEL,
                "image_model": self.OPENAI_IMAGE_MODEL,
                "tts_model": self.OPENAI_TTS_MODEL,
                "status": "configured"
            }
        elif self.AI_PROVIDER == "openai":
            return {
                "provider": "openai",
                "model": self.OPENAI_MODEL,
                "status": "missing_api_key"
            }
        else:
            return {
                "provider": "mock",
                "model": "mock_generator",
                "status": "fallback"
            }

    def memory_storage(self) -> bool:
        return self.STORAGE_BACKEND == "memory"

    def database_configured(self) -> bool:
        return bool(self.SUPABASE_URL and self.SUPABASE_SERVICE_ROLE_KEY)

    def validate_settings(self) -> list:
        """설정 검증 및 경고 반환"""
        warnings = []

        if self.AI_PROVIDER not in ["mock", "openai"]:
            warnings.append(f"Unknown AI_PROVIDER: {self.AI_PROVIDER}")

        if self.AI_PROVIDER == "openai" and not self.OPENAI_API_KEY:
            warnings.append("OpenAI selected but OPENAI_API_KEY is not set.")

        if self.STORAGE_BACKEND not in ["supabase", "memory"]:
            warnings.append(f"Unknown STORAGE_BACKEND: {self.STORAGE_BACKEND}")

        if self.memory_storage():
            warnings.append("STORAGE_BACKEND=memory: tokens are not verified (development only).")
        elif not self.database_configured():
            warnings.append("Supabase configuration missing (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY).")

        if self.IMAGE_MAX_ATTEMPTS < 1:
            warnings.append("IMAGE_MAX_ATTEMPTS must be at least 1.")

        if self.REQUEST_LIMIT_PER_HOUR > 1000:
            warnings.append("REQUEST_LIMIT_PER_HOUR is very high.")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    return Settings()
