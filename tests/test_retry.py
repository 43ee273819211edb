"""재시도 정책 단위 테스트."""

import pytest

from core.exceptions import BrokerError, InvalidAction
from utility.retry import RetryStrategy, retry_call


class _Flaky:
    """처음 failures번은 예외를 던지고 그 다음부터 성공하는 호출."""

    def __init__(self, failures: int, error: Exception | None = None):
        self.failures = failures
        self.error = error or BrokerError("broker down")
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def test_delays_grow_by_backoff():
    strategy = RetryStrategy(attempts=4, delay=0.5, backoff=2.0)

    assert strategy.delays() == [0.5, 1.0, 2.0]


def test_succeeds_after_transient_failures():
    fn = _Flaky(failures=2)
    sleeps: list[float] = []

    result = retry_call(fn, RetryStrategy(attempts=4, delay=0.1, backoff=3), sleep=sleeps.append)

    assert result == "ok"
    assert fn.calls == 3
    assert sleeps == pytest.approx([0.1, 0.3])


def test_exhausted_raises_last_error():
    fn = _Flaky(failures=10)
    sleeps: list[float] = []

    with pytest.raises(BrokerError):
        retry_call(fn, RetryStrategy(attempts=3, delay=0.1), sleep=sleeps.append)

    assert fn.calls == 3
    assert len(sleeps) == 2


def test_unlisted_errors_are_not_retried():
    fn = _Flaky(failures=1, error=InvalidAction())

    with pytest.raises(InvalidAction):
        retry_call(fn, RetryStrategy(attempts=5, delay=0), retry_on=(BrokerError,))

    assert fn.calls == 1


def test_single_attempt_never_sleeps():
    sleeps: list[float] = []

    with pytest.raises(BrokerError):
        retry_call(_Flaky(failures=1), RetryStrategy(attempts=1, delay=1), sleep=sleeps.append)

    assert sleeps == []
