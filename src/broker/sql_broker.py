"""DB 테이블 위에 구현한 영속 메시지 로그.

Kafka 토픽 하나 + 컨슈머 그룹 하나와 같은 의미를 갖는다.

- send:   topic_sequence에서 seq를 발급받아 queue_message에 append, seq가 오프셋이 된다
          (카운터 행 UPDATE가 커밋까지 잠금을 쥐므로 seq 순서 = 커밋 순서)
- fetch:  메모리상의 위치 이후 첫 메시지를 돌려주고 위치를 전진시킨다
          (첫 fetch 때 consumer_offset에서 커밋된 위치를 읽어온다)
- commit: consumer_offset.next_seq = seq + 1 (뒤로 가지 않음)
- seek:   메모리상의 위치만 되돌린다 (재전달용)

로그 전체가 seq 순서이므로 같은 key의 메시지끼리도 순서가 보장된다.
"""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import Engine, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from broker.base import Message
from core.exceptions import BrokerError
from model.message import ConsumerOffset, DeadLetter, QueueMessage, TopicSequence


class SqlBroker:
    def __init__(self, engine: Engine, topic: str, group_id: str):
        self.engine = engine
        self.topic = topic
        self.group_id = group_id
        self._position: int | None = None
        self._log = logger.bind(component="broker", topic=topic)

    def send(self, key: str, value: str) -> int:
        try:
            with Session(self.engine) as session:
                seq = self._next_seq(session)
                session.add(QueueMessage(topic=self.topic, seq=seq, key=key, value=value))
                session.commit()
        except SQLAlchemyError as e:
            raise BrokerError(f"메시지 전송 실패: {e}") from e
        self._log.debug(f"sent seq={seq} key={key}")
        return seq

    def _next_seq(self, session: Session) -> int:
        # 먼저 쓰기(UPDATE)로 행 잠금을 잡아야 동시 send가 커밋 순서대로 번호를 받는다
        result = session.execute(
            update(TopicSequence)
            .where(col(TopicSequence.topic) == self.topic)
            .values(last_seq=col(TopicSequence.last_seq) + 1)
        )
        if result.rowcount == 0:
            # 토픽의 첫 메시지. 동시에 만들면 PK 충돌로 실패하고 프로듀서가 재시도한다
            session.add(TopicSequence(topic=self.topic, last_seq=1))
            session.flush()
            return 1
        return session.get(TopicSequence, self.topic).last_seq

    def committed(self) -> int:
        """커밋된 다음 읽기 위치."""
        try:
            with Session(self.engine) as session:
                row = session.get(ConsumerOffset, (self.group_id, self.topic))
        except SQLAlchemyError as e:
            raise BrokerError(f"오프셋 조회 실패: {e}") from e
        return row.next_seq if row else 0

    def fetch(self) -> Message | None:
        if self._position is None:
            self._position = self.committed()

        try:
            with Session(self.engine) as session:
                row = session.exec(
                    select(QueueMessage)
                    .where(QueueMessage.topic == self.topic)
                    .where(col(QueueMessage.seq) >= self._position)
                    .order_by(col(QueueMessage.seq))
                    .limit(1)
                ).first()
        except SQLAlchemyError as e:
            raise BrokerError(f"메시지 조회 실패: {e}") from e

        if row is None:
            return None
        self._position = row.seq + 1
        return Message(offset=row.seq, key=row.key, value=row.value)

    def commit(self, message: Message) -> None:
        next_seq = message.offset + 1
        try:
            with Session(self.engine) as session:
                row = session.get(ConsumerOffset, (self.group_id, self.topic))
                if row is None:
                    row = ConsumerOffset(group_id=self.group_id, topic=self.topic)
                if next_seq > row.next_seq:
                    row.next_seq = next_seq
                    row.updated_at = datetime.now(UTC)
                    session.add(row)
                    session.commit()
        except SQLAlchemyError as e:
            raise BrokerError(f"커밋 실패 (seq={message.offset}): {e}") from e

    def seek(self, offset: int) -> None:
        self._position = offset

    def dead_letter(self, message: Message, reason: str) -> None:
        try:
            with Session(self.engine) as session:
                session.add(
                    DeadLetter(
                        topic=self.topic,
                        seq=message.offset,
                        key=message.key,
                        value=message.value,
                        reason=reason,
                    )
                )
                session.commit()
        except SQLAlchemyError as e:
            raise BrokerError(f"dead-letter 기록 실패 (seq={message.offset}): {e}") from e
        self._log.warning(f"dead-lettered seq={message.offset} key={message.key}: {reason}")

    def dead_letters(self) -> list[DeadLetter]:
        with Session(self.engine) as session:
            return list(
                session.exec(
                    select(DeadLetter)
                    .where(DeadLetter.topic == self.topic)
                    .order_by(col(DeadLetter.id))
                ).all()
            )

    def close(self) -> None:
        self._position = None
        self._log.info("broker closed")
