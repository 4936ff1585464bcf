"""
서비스 예외 정의 (HTTP 상태코드 포함)
"""

from typing import Optional


class DreamTalesError(Exception):
    """모든 서비스 예외의 기본 클래스"""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class AuthenticationError(DreamTalesError):
    status_code = 401


class ValidationError(DreamTalesError):
    status_code = 400


class QuotaExceededError(DreamTalesError):
    status_code = 403


class NotFoundError(DreamTalesError):
    status_code = 404


class RateLimitError(DreamTalesError):
    status_code = 429


class DatabaseError(DreamTalesError):
    status_code = 500


class UpstreamError(DreamTalesError):
    """AI Provider 호출 실패"""
    status_code = 502


class ServiceUnavailableError(DreamTalesError):
    status_code = 503
