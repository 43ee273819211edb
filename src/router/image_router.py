import mimetypes
from typing import Any

from fastapi import APIRouter, Depends, Form, Response, UploadFile, status
from pydantic import BaseModel, ValidationError

from core.config import settings
from core.dependencies import get_image_service, parse_image_id
from core.exceptions import InvalidUpload, UploadTooLarge
from model.action import Action
from model.image import ImageSchema, UploadResponse
from service.image_service import ImageService

router = APIRouter(prefix="/api", tags=["images"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class UploadRequest(BaseModel):
    """multipart의 actions 필드에 JSON 문자열로 들어오는 값."""

    action: str
    params: dict[str, Any] = {}


def _read_upload(image: UploadFile) -> bytes:
    data = image.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise UploadTooLarge(f"최대 {settings.MAX_UPLOAD_BYTES} bytes까지 업로드할 수 있습니다")
    return data


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_202_ACCEPTED)
def upload_image(
    image: UploadFile | None = None,
    actions: str | None = Form(None),
    service: ImageService = Depends(get_image_service),
):
    """이미지 업로드: 원본 저장 + pending 레코드 생성 + 처리 작업 큐 등록."""
    if image is None:
        raise InvalidUpload("image 파일이 필요합니다")
    if not actions:
        raise InvalidUpload("actions 필드가 필요합니다")

    try:
        req = UploadRequest.model_validate_json(actions)
    except ValidationError as e:
        raise InvalidUpload(f"actions 필드를 해석할 수 없습니다: {e.errors()[0]['msg']}")

    record = service.save_image(
        image.filename or "image",
        _read_upload(image),
        Action(name=req.action, params=req.params),
    )
    return UploadResponse(id=record.id, filename=record.filename, path=record.path)


@router.get("/image/{image_id}")
def get_image(image_id: str, service: ImageService = Depends(get_image_service)):
    """이미지 바이트를 그대로 내려준다. (브라우저 캐시 비활성화)"""
    record, data = service.get_image(parse_image_id(image_id))
    media_type = mimetypes.guess_type(record.path)[0] or "application/octet-stream"
    return Response(content=data, media_type=media_type, headers=NO_CACHE_HEADERS)


@router.get("/image/{image_id}/meta", response_model=ImageSchema)
def get_image_meta(image_id: str, service: ImageService = Depends(get_image_service)):
    return ImageSchema.from_record(service.get_meta(parse_image_id(image_id)))


@router.get("/image/{image_id}/derived", response_model=list[ImageSchema])
def list_derived(image_id: str, service: ImageService = Depends(get_image_service)):
    """원본에서 만들어진 파생 이미지 목록."""
    return [ImageSchema.from_record(r) for r in service.list_derived(parse_image_id(image_id))]


@router.delete("/image/{image_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_image(image_id: str, service: ImageService = Depends(get_image_service)):
    service.delete_image(parse_image_id(image_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
