"""이미지 수명주기 서비스.

업로드 → 원본 저장 → pending 레코드 → 큐 등록,
컨슈머 → process_image → 파생 레코드(processed) 생성.

원본 pending 레코드는 processed로 바뀌지 않는다.
처리 완료는 original_id로 연결된 파생 레코드가 존재하는 것으로 표현한다.
"""

import io
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import PurePosixPath
from typing import Protocol

from loguru import logger
from PIL import Image, UnidentifiedImageError

from core.exceptions import ArtifactNotFound, InvalidUpload, QueueUnavailable
from model.action import Action, parse_action
from model.image import ImageRecord, ImageStatus
from processor.engine import TransformEngine
from repository.image_repository import ImageRepository
from storage.file_storage import ArtifactStore


class JobProducer(Protocol):
    def enqueue(self, record: ImageRecord) -> int: ...


class ImageService:
    def __init__(
        self,
        storage: ArtifactStore,
        repository: ImageRepository,
        producer: JobProducer,
        engine: TransformEngine,
    ):
        self.storage = storage
        self.repository = repository
        self.producer = producer
        self.engine = engine
        self._log = logger.bind(component="service")

    def save_image(self, filename: str, data: bytes, action: Action) -> ImageRecord:
        """원본을 저장하고 pending 레코드를 만든 뒤 처리 작업을 큐에 넣는다.

        1. 작업 파라미터와 이미지 형식을 먼저 검증 (실패 시 아무것도 쓰지 않음)
        2. 원본 바이트를 original 네임스페이스에 저장
        3. pending 레코드 저장
        4. 큐 등록. 실패하면 레코드를 failed로 표시하고 QueueUnavailable을 전파
           (requeue_unfinished 스윕으로 나중에 다시 등록할 수 있다)
        """
        parse_action(action)
        _ensure_image(data)

        ext = PurePosixPath(filename).suffix.lower()
        stored_name = f"{uuid.uuid4().hex}{ext}"
        path = self.storage.save("original", stored_name, data)

        record = ImageRecord(
            filename=filename,
            path=path,
            action=action.name,
            params=dict(action.params),
            status=ImageStatus.PENDING.value,
        )
        self.repository.insert(record)

        try:
            self.producer.enqueue(record)
        except QueueUnavailable:
            self.repository.set_status(record.id, ImageStatus.FAILED)
            self._log.error(f"upload {record.id} marked failed: enqueue exhausted retries")
            raise

        self._log.info(f"accepted {filename} as {record.id} ({action.name})")
        return record

    def process_image(self, record: ImageRecord) -> uuid.UUID:
        """큐에서 받은 작업을 실행하고 파생 레코드를 저장한다.

        같은 메시지가 재전달될 수 있으므로, 이미 파생 레코드가 있으면
        다시 처리하지 않고 그 ID를 돌려준다.
        """
        existing = self.repository.find_derived(record.id)
        if existing is not None:
            self._log.info(f"{record.id} already processed as {existing.id}, skipping")
            return existing.id

        derived = self.engine.process(record)
        derived_id = self.repository.insert(derived)
        self._log.info(f"processed {record.id} → {derived_id} ({derived.path})")
        return derived_id

    def get_meta(self, image_id: uuid.UUID) -> ImageRecord:
        return self.repository.get(image_id)

    def get_image(self, image_id: uuid.UUID) -> tuple[ImageRecord, bytes]:
        record = self.repository.get(image_id)
        return record, self.storage.load(record.path)

    def list_derived(self, image_id: uuid.UUID) -> list[ImageRecord]:
        self.repository.get(image_id)
        return self.repository.list_derived(image_id)

    def delete_image(self, image_id: uuid.UUID) -> None:
        """레코드를 지운 뒤 파일을 지운다.

        DB 삭제 후 파일 삭제가 실패하면 참조 없는 파일이 남는다.
        파일이 이미 없는 경우는 경고만 남긴다.
        """
        record = self.repository.get(image_id)
        self.repository.delete(image_id)

        try:
            self.storage.delete(record.path)
        except ArtifactNotFound:
            self._log.warning(f"artifact already gone for {image_id}: {record.path}")

        self._log.info(f"deleted {image_id} ({record.path})")

    def requeue_unfinished(self, older_than: timedelta) -> list[uuid.UUID]:
        """파생 레코드 없이 남은 pending/failed 원본을 다시 큐에 넣는다.

        큐 등록 실패나 메시지 유실로 멈춘 업로드를 복구하는 스윕.
        이미 처리 중인 메시지와 겹쳐도 process_image가 멱등이라 안전하다.
        """
        cutoff = datetime.now(UTC) - older_than
        requeued = []
        for record in self.repository.list_unfinished(cutoff):
            self.producer.enqueue(record)
            if record.status != ImageStatus.PENDING.value:
                self.repository.set_status(record.id, ImageStatus.PENDING)
            requeued.append(record.id)

        if requeued:
            self._log.info(f"requeued {len(requeued)} unfinished upload(s)")
        return requeued


def _ensure_image(data: bytes) -> None:
    if not data:
        raise InvalidUpload("빈 파일입니다")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        SyntaxError,
        ValueError,
    ) as e:
        raise InvalidUpload(f"이미지 파일이 아닙니다: {e}") from e
