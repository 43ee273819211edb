"""제한된 재시도 유틸리티.

외부 저장소/브로커 호출처럼 일시적으로 실패할 수 있는 작업을
지수 백오프로 재시도한다.

    attempts=4, delay=0.1, backoff=2.0
    → 호출 → 0.1s → 호출 → 0.2s → 호출 → 0.4s → 호출 → 마지막 예외 전파
"""

import time
from collections.abc import Callable
from typing import TypeVar

from loguru import logger
from pydantic import BaseModel, Field

T = TypeVar("T")


class RetryStrategy(BaseModel):
    """재시도 정책. attempts는 첫 호출을 포함한 총 시도 횟수."""

    attempts: int = Field(default=3, ge=1)
    delay: float = Field(default=0.2, ge=0)
    backoff: float = Field(default=2.0, ge=1)

    def delays(self) -> list[float]:
        """시도 사이에 대기할 시간 목록 (길이 attempts - 1)."""
        return [self.delay * self.backoff**i for i in range(self.attempts - 1)]


def retry_call(
    fn: Callable[[], T],
    strategy: RetryStrategy,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    label: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """fn을 strategy에 따라 호출한다.

    retry_on에 해당하지 않는 예외는 즉시 전파된다.
    모든 시도가 실패하면 마지막 예외를 그대로 다시 발생시킨다.
    """
    waits = strategy.delays()
    for attempt in range(1, strategy.attempts + 1):
        try:
            return fn()
        except retry_on as e:
            if attempt == strategy.attempts:
                logger.warning(f"[{label or fn}] {attempt}회 시도 모두 실패: {e}")
                raise
            wait = waits[attempt - 1]
            logger.debug(
                f"[{label or fn}] 시도 {attempt}/{strategy.attempts} 실패, "
                f"{wait:.2f}s 후 재시도: {e}"
            )
            sleep(wait)
    raise AssertionError("unreachable")
