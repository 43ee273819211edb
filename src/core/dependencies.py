import uuid

from fastapi import Request

from core.exceptions import InvalidImageId
from service.image_service import ImageService


def get_image_service(request: Request) -> ImageService:
    """lifespan에서 조립해 app.state에 올려둔 서비스를 꺼낸다.

    테스트에서는 app.dependency_overrides로 교체한다.
    """
    return request.app.state.image_service


def parse_image_id(image_id: str) -> uuid.UUID:
    """경로 파라미터를 UUID로 변환한다. 형식이 틀리면 400 INVALID_IMAGE_ID."""
    try:
        return uuid.UUID(image_id)
    except ValueError:
        raise InvalidImageId(f"올바르지 않은 이미지 ID: {image_id}")
