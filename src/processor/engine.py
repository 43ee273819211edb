"""변환 엔진.

원본 레코드 하나를 받아 작업(action) 하나를 적용하고,
결과 파일을 저장한 뒤 파생 레코드를 돌려준다. DB에는 쓰지 않는다.

    파라미터 검증 → 원본 로드 → 디코딩 1회 → 작업 1회 → 인코딩 1회 → 저장 1회

파라미터가 잘못되면 어떤 I/O도 하기 전에 실패하고,
저장은 메모리에서 모든 처리가 끝난 뒤에만 일어난다.
"""

from pathlib import PurePosixPath
from typing import assert_never

from loguru import logger
from PIL import Image

from model.action import ResizeAction, ThumbnailAction, WatermarkAction, parse_action
from model.image import ImageRecord, ImageStatus
from processor import operations
from storage.file_storage import ArtifactStore
from utility.timer import timer


class TransformEngine:
    def __init__(self, storage: ArtifactStore, jpeg_quality: int = 90):
        self.storage = storage
        self.jpeg_quality = jpeg_quality
        self._log = logger.bind(component="engine")

    def process(self, image: ImageRecord) -> ImageRecord:
        action = parse_action(image.get_action())

        source = self.storage.load(image.path)

        with timer(action.name, slow_ms=2000) as t:
            picture = operations.decode(source)
            result = self._apply(action, picture)
            encoded = operations.encode(result, quality=self.jpeg_quality)

        name = f"{PurePosixPath(image.path).stem}.jpg"
        path = self.storage.save(action.namespace, name, encoded)

        self._log.info(
            f"{action.name} {image.id}: {picture.size} → {result.size} "
            f"saved to {path} ({t.ms:.0f}ms)"
        )
        return ImageRecord(
            original_id=image.id,
            filename=image.filename,
            path=path,
            action=image.action,
            params=dict(image.params or {}),
            status=ImageStatus.PROCESSED.value,
        )

    @staticmethod
    def _apply(
        action: ResizeAction | ThumbnailAction | WatermarkAction, picture: Image.Image
    ) -> Image.Image:
        match action:
            case ResizeAction(width=width, height=height):
                return operations.resize(picture, width, height)
            case ThumbnailAction(width=width, height=height):
                return operations.thumbnail(picture, width, height)
            case WatermarkAction(text=text):
                return operations.watermark(picture, text)
            case _:
                assert_never(action)
