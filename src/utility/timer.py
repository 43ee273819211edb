"""처리 시간 측정 유틸리티."""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from loguru import logger


@dataclass
class Elapsed:
    seconds: float = 0.0

    @property
    def ms(self) -> float:
        return self.seconds * 1000


@contextmanager
def timer(label: str = "", slow_ms: float | None = None) -> Iterator[Elapsed]:
    """블록 실행 시간을 잰다.

        with timer("resize", slow_ms=500) as t:
            ...
        t.ms

    label이 있으면 끝날 때 DEBUG로, slow_ms를 넘기면 WARNING으로 기록한다.
    """
    elapsed = Elapsed()
    start = time.perf_counter()
    try:
        yield elapsed
    finally:
        elapsed.seconds = time.perf_counter() - start
        if label and slow_ms is not None and elapsed.ms > slow_ms:
            logger.warning(f"[{label}] {elapsed.ms:.0f}ms (slow)")
        elif label:
            logger.debug(f"[{label}] {elapsed.ms:.0f}ms")
