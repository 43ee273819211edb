"""이미지 메타데이터 저장소.

메서드 호출마다 Session을 새로 열기 때문에 API 스레드와 컨슈머 스레드에서
같은 인스턴스를 공유해도 된다.
"""

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

from loguru import logger
from sqlalchemy import Engine, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased
from sqlmodel import Session, col, select

from core.exceptions import ImageNotFound, PersistenceError
from model.image import ImageRecord, ImageStatus


class ImageRepository(Protocol):
    def insert(self, record: ImageRecord) -> uuid.UUID: ...

    def get(self, image_id: uuid.UUID) -> ImageRecord: ...

    def delete(self, image_id: uuid.UUID) -> None: ...

    def set_status(self, image_id: uuid.UUID, status: ImageStatus) -> None: ...

    def find_derived(self, original_id: uuid.UUID) -> ImageRecord | None: ...

    def list_derived(self, original_id: uuid.UUID) -> list[ImageRecord]: ...

    def list_unfinished(self, before: datetime) -> list[ImageRecord]: ...


class SqlImageRepository:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._log = logger.bind(component="repository")

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self.engine, expire_on_commit=False) as session:
                yield session
        except SQLAlchemyError as e:
            raise PersistenceError(f"DB 작업 실패: {e}") from e

    def insert(self, record: ImageRecord) -> uuid.UUID:
        with self._session() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
        self._log.debug(f"inserted image {record.id} ({record.status})")
        return record.id

    def get(self, image_id: uuid.UUID) -> ImageRecord:
        with self._session() as session:
            record = session.get(ImageRecord, image_id)
        if record is None:
            raise ImageNotFound(f"이미지를 찾을 수 없습니다: {image_id}")
        return record

    def delete(self, image_id: uuid.UUID) -> None:
        with self._session() as session:
            record = session.get(ImageRecord, image_id)
            if record is None:
                raise ImageNotFound(f"이미지를 찾을 수 없습니다: {image_id}")
            # 파생 레코드는 남기고 원본 참조만 끊는다
            session.execute(
                update(ImageRecord)
                .where(col(ImageRecord.original_id) == image_id)
                .values(original_id=None)
            )
            session.delete(record)
            session.commit()

    def set_status(self, image_id: uuid.UUID, status: ImageStatus) -> None:
        with self._session() as session:
            record = session.get(ImageRecord, image_id)
            if record is None:
                raise ImageNotFound(f"이미지를 찾을 수 없습니다: {image_id}")
            record.status = status.value
            session.add(record)
            session.commit()

    def find_derived(self, original_id: uuid.UUID) -> ImageRecord | None:
        with self._session() as session:
            return session.exec(
                select(ImageRecord)
                .where(ImageRecord.original_id == original_id)
                .order_by(col(ImageRecord.created_at))
            ).first()

    def list_derived(self, original_id: uuid.UUID) -> list[ImageRecord]:
        with self._session() as session:
            return list(
                session.exec(
                    select(ImageRecord)
                    .where(ImageRecord.original_id == original_id)
                    .order_by(col(ImageRecord.created_at))
                ).all()
            )

    def list_unfinished(self, before: datetime) -> list[ImageRecord]:
        """파생 레코드가 아직 없는 원본(pending/failed) 중 before 이전에 생성된 것."""
        derived = aliased(ImageRecord)
        has_derived = select(derived.id).where(derived.original_id == ImageRecord.id).exists()
        with self._session() as session:
            return list(
                session.exec(
                    select(ImageRecord)
                    .where(col(ImageRecord.original_id).is_(None))
                    .where(
                        col(ImageRecord.status).in_(
                            [ImageStatus.PENDING.value, ImageStatus.FAILED.value]
                        )
                    )
                    .where(ImageRecord.created_at < before)
                    .where(~has_derived)
                    .order_by(col(ImageRecord.created_at))
                ).all()
            )
