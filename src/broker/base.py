from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Message:
    offset: int
    key: str
    value: str


class Broker(Protocol):
    """순서가 보장되는 영속 메시지 로그.

    fetch()는 위치를 즉시 전진시킨다. 커밋은 별도로 해야 하며,
    실패한 메시지를 다시 받으려면 seek()로 위치를 되돌린다.
    """

    def send(self, key: str, value: str) -> int: ...

    def fetch(self) -> Message | None: ...

    def commit(self, message: Message) -> None: ...

    def seek(self, offset: int) -> None: ...

    def dead_letter(self, message: Message, reason: str) -> None: ...

    def close(self) -> None: ...
