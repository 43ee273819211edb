"""컨슈머 루프 테스트: 커밋, 재전달, dead-letter, fetch 실패, 중지."""

import threading

import pytest

from broker.consumer import ImageConsumer
from broker.sql_broker import SqlBroker
from core.exceptions import ArtifactNotFound, BrokerError, ImageDecodeError, StorageError
from utility.retry import RetryStrategy

NO_WAIT = RetryStrategy(attempts=2, delay=0, backoff=1)


class ScriptedHandler:
    """errors 목록을 앞에서부터 하나씩 던지고, 다 쓰면 성공한다."""

    def __init__(self, *errors: Exception):
        self.errors = list(errors)
        self.seen: list[str] = []

    def handle(self, message):
        self.seen.append(message.value)
        if self.errors:
            raise self.errors.pop(0)


class BrokenFetchBroker:
    def __init__(self, inner: SqlBroker, failures: int):
        self.inner = inner
        self.failures = failures

    def fetch(self):
        if self.failures:
            self.failures -= 1
            raise BrokerError("fetch timeout")
        return self.inner.fetch()

    def __getattr__(self, name):
        return getattr(self.inner, name)


class BrokenCommitBroker:
    def __init__(self, inner: SqlBroker):
        self.inner = inner

    def commit(self, message):
        raise BrokerError("commit rejected")

    def __getattr__(self, name):
        return getattr(self.inner, name)


@pytest.fixture()
def broker(db_engine):
    return SqlBroker(db_engine, topic="images", group_id="workers")


def _consumer(broker, handler, max_deliveries=3):
    return ImageConsumer(
        broker, handler, NO_WAIT, idle_interval=0, fetch_backoff=0, max_deliveries=max_deliveries
    )


def test_success_commits(broker):
    broker.send("a", "job-1")
    handler = ScriptedHandler()
    consumer = _consumer(broker, handler)

    assert consumer.poll_once() is True
    assert handler.seen == ["job-1"]
    assert broker.committed() == 2
    assert consumer.poll_once() is False


def test_permanent_failure_is_dead_lettered_and_committed(broker):
    broker.send("a", "broken-job")
    broker.send("b", "good-job")
    handler = ScriptedHandler(ImageDecodeError("cannot decode"))
    consumer = _consumer(broker, handler)

    consumer.poll_once()
    consumer.poll_once()

    assert handler.seen == ["broken-job", "good-job"]
    assert [d.value for d in broker.dead_letters()] == ["broken-job"]
    assert consumer.stats.dead_lettered == 1
    assert broker.committed() == 3


def test_unexpected_error_does_not_stop_the_loop(broker):
    broker.send("a", "job")
    consumer = _consumer(broker, ScriptedHandler(RuntimeError("boom")))

    assert consumer.poll_once() is False
    assert consumer.stats.dead_lettered == 1


def test_transient_failure_is_redelivered(broker):
    broker.send("a", "job")
    handler = ScriptedHandler(StorageError("disk busy"))
    consumer = _consumer(broker, handler)

    assert consumer.poll_once() is False
    assert broker.committed() == 0
    assert consumer.poll_once() is True

    assert handler.seen == ["job", "job"]
    assert consumer.stats.redelivered == 1
    assert broker.dead_letters() == []


def test_transient_failure_gives_up_after_max_deliveries(broker):
    broker.send("a", "job")
    handler = ScriptedHandler(*[StorageError("disk gone")] * 5)
    consumer = _consumer(broker, handler, max_deliveries=3)

    for _ in range(5):
        consumer.poll_once()

    assert handler.seen == ["job"] * 3
    assert len(broker.dead_letters()) == 1
    assert broker.committed() == 2


def test_missing_artifact_is_not_redelivered(broker):
    """원본 파일이 없으면 재전달하지 않고 바로 dead-letter."""
    broker.send("a", "job")
    handler = ScriptedHandler(ArtifactNotFound("original/gone.png"))
    consumer = _consumer(broker, handler, max_deliveries=3)

    consumer.poll_once()
    consumer.poll_once()

    assert handler.seen == ["job"]
    assert consumer.stats.redelivered == 0
    assert len(broker.dead_letters()) == 1
    assert broker.committed() == 2


def test_fetch_failures_are_not_fatal(broker):
    broker.send("a", "job")
    flaky = BrokenFetchBroker(broker, failures=2)  # NO_WAIT: 2회 시도 → 한 번의 반복이 실패
    handler = ScriptedHandler()
    consumer = _consumer(flaky, handler)

    assert consumer.poll_once() is False
    assert consumer.stats.fetch_failures == 1
    assert consumer.poll_once() is True
    assert handler.seen == ["job"]


def test_commit_failure_is_only_logged(broker):
    broker.send("a", "job-1")
    broker.send("b", "job-2")
    handler = ScriptedHandler()
    consumer = _consumer(BrokenCommitBroker(broker), handler)

    consumer.poll_once()
    consumer.poll_once()

    assert handler.seen == ["job-1", "job-2"]
    assert consumer.stats.commit_failures == 2
    assert broker.committed() == 0


def test_stop_before_run_fetches_nothing(broker):
    broker.send("a", "job")
    handler = ScriptedHandler()
    consumer = _consumer(broker, handler)

    consumer.stop()
    consumer.run()

    assert handler.seen == []


def test_run_until_stopped(broker):
    for i in range(3):
        broker.send(str(i), f"job-{i}")
    done = threading.Event()

    class StopAfterThree(ScriptedHandler):
        def handle(self, message):
            super().handle(message)
            if len(self.seen) == 3:
                done.set()

    handler = StopAfterThree()
    consumer = ImageConsumer(broker, handler, NO_WAIT, idle_interval=0.01, fetch_backoff=0)
    worker = threading.Thread(target=consumer.run, daemon=True)
    worker.start()

    assert done.wait(timeout=5)
    consumer.stop()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert handler.seen == ["job-0", "job-1", "job-2"]
