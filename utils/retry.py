"""
재시도 유틸리티 (지수 백오프)
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Tuple, Type

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_delay: float = 1.0) -> float:
    """attempt 0 -> base, 1 -> 2*base, 2 -> 4*base ..."""
    return (2 ** attempt) * base_delay


async def retry_with_backoff(
    func: Callable[[], Awaitable[Any]],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "request",
) -> Any:
    """func를 최대 max_attempts번 호출. 마지막 실패는 그대로 전파"""
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return await func()
        except retry_on as e:
            if attempt == max_attempts - 1:
                logger.error(f"{label} failed after {max_attempts} attempts: {e}")
                raise

            delay = backoff_delay(attempt, base_delay)
            logger.warning(
                f"{label} attempt {attempt + 1}/{max_attempts} failed ({e}), retrying in {delay:.1f}s"
            )
            await sleep(delay)
