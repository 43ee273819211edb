import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from model.action import Action


class ImageStatus(StrEnum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class ImageRecord(SQLModel, table=True):
    __tablename__ = "image"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    # 파생 레코드에만 존재 (원본은 None)
    original_id: uuid.UUID | None = Field(
        default=None, foreign_key="image.id", ondelete="SET NULL", index=True
    )
    filename: str
    path: str
    action: str
    params: dict[str, str] = Field(default_factory=dict, sa_column=Column(JSON))
    status: str = Field(default=ImageStatus.PENDING)  # pending, processed, failed
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def get_action(self) -> Action:
        return Action(name=self.action, params=self.params or {})


class ImageSchema(BaseModel):
    """레코드의 JSON 표현. 큐 메시지 본문과 메타데이터 응답에 함께 쓰인다."""

    id: uuid.UUID
    original_id: uuid.UUID | None = None
    filename: str
    path: str
    action: Action
    status: ImageStatus
    created_at: datetime

    @classmethod
    def from_record(cls, record: ImageRecord) -> "ImageSchema":
        return cls(
            id=record.id,
            original_id=record.original_id,
            filename=record.filename,
            path=record.path,
            action=record.get_action(),
            status=ImageStatus(record.status),
            created_at=record.created_at,
        )

    def to_record(self) -> ImageRecord:
        return ImageRecord(
            id=self.id,
            original_id=self.original_id,
            filename=self.filename,
            path=self.path,
            action=self.action.name,
            params=dict(self.action.params),
            status=self.status.value,
            created_at=self.created_at,
        )


class UploadResponse(BaseModel):
    id: uuid.UUID
    filename: str
    path: str
