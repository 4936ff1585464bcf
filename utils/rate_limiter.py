"""
요청 제한 서비스 (사용자별 시간당 AI 호출 제한)
"""

import time
from typing import Dict, List

from utils.errors import RateLimitError


class RateLimiter:
    def __init__(self, limit_per_hour: int = 100):
        self.limit_per_hour = limit_per_hour
        self._requests: Dict[str, List[float]] = {}
        self._total_requests = 0

    def _evict_idle_clients(self, hour_ago: float):
        """최근 1시간 요청이 없는 사용자 제거"""
        idle = [client_id for client_id, window in self._requests.items() if not window or window[-1] <= hour_ago]
        for client_id in idle:
            del self._requests[client_id]

    def check_rate_limit(self, client_id: str = "default") -> bool:
        """요청 제한 체크"""
        current_time = time.time()
        hour_ago = current_time - 3600

        self._evict_idle_clients(hour_ago)

        window = [
            req_time for req_time in self._requests.get(client_id, [])
            if req_time > hour_ago
        ]

        if len(window) >= self.limit_per_hour:
            self._requests[client_id] = window
            raise RateLimitError("Hourly request limit exceeded. Please try again later.")

        window.append(current_time)
        self._requests[client_id] = window
        self._total_requests += 1

        return True

    def get_status(self) -> Dict:
        """제한 상태 반환"""
        return {
            "active_clients": len(self._requests),
            "total_requests": self._total_requests,
            "limit_per_hour": self.limit_per_hour
        }

    def get_total_requests(self) -> int:
        return self._total_requests

    def reset(self):
        self._requests.clear()
        self._total_requests = 0
