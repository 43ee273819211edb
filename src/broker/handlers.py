import uuid
from typing import Protocol

from pydantic import ValidationError

from broker.base import Message
from core.exceptions import InvalidJobPayload
from model.image import ImageRecord, ImageSchema


class ImageProcessingService(Protocol):
    def process_image(self, record: ImageRecord) -> uuid.UUID: ...


class UploadedHandler:
    """업로드 메시지를 디코딩해서 서비스의 처리 진입점을 호출한다."""

    def __init__(self, service: ImageProcessingService):
        self.service = service

    def handle(self, message: Message) -> uuid.UUID:
        try:
            job = ImageSchema.model_validate_json(message.value)
        except ValidationError as e:
            raise InvalidJobPayload(f"메시지 디코딩 실패 (offset={message.offset}): {e}") from e

        return self.service.process_image(job.to_record())
