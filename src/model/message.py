"""큐(메시지 로그) 테이블.

- queue_message:   토픽별 append-only 로그 (topic, seq)
- topic_sequence:  토픽별 마지막으로 발급한 seq
- consumer_offset: 컨슈머 그룹별 커밋 위치
- dead_letter:     처리를 포기한 메시지 보관소
"""

from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class QueueMessage(SQLModel, table=True):
    __tablename__ = "queue_message"

    topic: str = Field(primary_key=True)
    seq: int = Field(primary_key=True)
    key: str
    value: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class TopicSequence(SQLModel, table=True):
    __tablename__ = "topic_sequence"

    topic: str = Field(primary_key=True)
    last_seq: int = 0


class ConsumerOffset(SQLModel, table=True):
    __tablename__ = "consumer_offset"

    group_id: str = Field(primary_key=True)
    topic: str = Field(primary_key=True)
    next_seq: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DeadLetter(SQLModel, table=True):
    __tablename__ = "dead_letter"

    id: int | None = Field(default=None, primary_key=True)
    topic: str = Field(index=True)
    seq: int
    key: str
    value: str
    reason: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
