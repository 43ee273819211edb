"""단일 컨슈머 루프: fetch → 처리 → commit.

한 번에 하나의 메시지만 처리하며, 중지 신호는 반복마다 한 번 확인한다.
진행 중인 fetch/처리/commit은 중간에 끊지 않는다.

처리 실패 시 동작 (at-least-once):
- 일시적 오류(retryable): seek으로 위치를 되돌려 같은 메시지를 다시 받는다.
  max_deliveries 회 전달 후에도 실패하면 dead-letter 후 커밋한다.
- 영구적 오류(검증/디코딩/알 수 없는 예외): 즉시 dead-letter 후 커밋한다.
커밋 전에 프로세스가 죽으면 같은 메시지가 재전달될 수 있으므로
핸들러는 멱등이어야 한다.
"""

import threading
from dataclasses import dataclass
from typing import Protocol

from loguru import logger

from broker.base import Broker, Message
from core.exceptions import BrokerError
from utility.retry import RetryStrategy, retry_call


class MessageHandler(Protocol):
    def handle(self, message: Message) -> object: ...


@dataclass
class ConsumerStats:
    handled: int = 0
    redelivered: int = 0
    dead_lettered: int = 0
    fetch_failures: int = 0
    commit_failures: int = 0


class ImageConsumer:
    def __init__(
        self,
        broker: Broker,
        handler: MessageHandler,
        strategy: RetryStrategy,
        idle_interval: float = 0.5,
        fetch_backoff: float = 0.5,
        max_deliveries: int = 3,
    ):
        self.broker = broker
        self.handler = handler
        self.strategy = strategy
        self.idle_interval = idle_interval
        self.fetch_backoff = fetch_backoff
        self.max_deliveries = max(1, max_deliveries)
        self.stop_event = threading.Event()
        self.stats = ConsumerStats()
        self._deliveries: dict[int, int] = {}
        self._log = logger.bind(component="consumer")

    def run(self) -> None:
        """stop()이 호출될 때까지 메시지를 처리한다."""
        self._log.info("starting consumer")
        while not self.stop_event.is_set():
            self.poll_once()
        self._log.info("shutdown signal received, consumer stopped")

    def stop(self) -> None:
        self.stop_event.set()

    def poll_once(self) -> bool:
        """한 번의 반복. 메시지를 처리하고 커밋했으면 True."""
        try:
            message = retry_call(
                self.broker.fetch, self.strategy, retry_on=(BrokerError,), label="fetch"
            )
        except BrokerError as e:
            # fetch 실패는 치명적이지 않다. 잠시 쉬고 다음 반복에서 다시 시도
            self.stats.fetch_failures += 1
            self._log.error(f"failed to fetch message: {e}")
            self.stop_event.wait(self.fetch_backoff)
            return False

        if message is None:
            self.stop_event.wait(self.idle_interval)
            return False

        try:
            self.handler.handle(message)
        except Exception as e:  # 핸들러 오류로 루프가 죽으면 안 된다
            self._on_failure(message, e)
            return False

        self._deliveries.pop(message.offset, None)
        self.stats.handled += 1
        self._commit(message)
        self._log.info(f"message handled (offset={message.offset}, key={message.key})")
        return True

    def _on_failure(self, message: Message, error: Exception) -> None:
        deliveries = self._deliveries.get(message.offset, 0) + 1
        self._deliveries[message.offset] = deliveries
        retryable = getattr(error, "retryable", False)

        if retryable and deliveries < self.max_deliveries:
            self.stats.redelivered += 1
            self._log.warning(
                f"failed to process offset={message.offset} "
                f"(delivery {deliveries}/{self.max_deliveries}), will redeliver: {error}"
            )
            self.broker.seek(message.offset)
            self.stop_event.wait(self.strategy.delay)
            return

        reason = f"{type(error).__name__}: {error}"
        self._log.error(
            f"failed to process image, dropping offset={message.offset} "
            f"after {deliveries} deliveries: {reason} | message={message.value}"
        )
        try:
            retry_call(
                lambda: self.broker.dead_letter(message, reason),
                self.strategy,
                retry_on=(BrokerError,),
                label="dead_letter",
            )
        except BrokerError as e:
            # 기록하지 못한 메시지는 버리지 않고 다음 반복에서 다시 받는다
            self._log.error(f"failed to dead-letter offset={message.offset}: {e}")
            self.broker.seek(message.offset)
            return

        self._deliveries.pop(message.offset, None)
        self.stats.dead_lettered += 1
        self._commit(message)

    def _commit(self, message: Message) -> None:
        try:
            retry_call(
                lambda: self.broker.commit(message),
                self.strategy,
                retry_on=(BrokerError,),
                label="commit",
            )
        except BrokerError as e:
            # 다음 커밋이 성공하기 전에 죽으면 재전달된다 (핸들러는 멱등)
            self.stats.commit_failures += 1
            self._log.error(f"failed to commit message after retries: {e}")
