"""이미지 처리 작업(action) 정의.

DB와 큐 메시지에는 {"name": "...", "params": {"...": "..."}} 형태로 저장되고,
처리 직전에 parse_action()으로 작업별 타입(ResizeAction 등)으로 변환한다.
파라미터 검증은 이 변환 한 곳에서만 일어난다.
"""

from typing import Annotated, Any, ClassVar, Literal

from pydantic import (
    BaseModel,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from core.config import settings
from core.exceptions import InvalidAction

DEFAULT_WATERMARK_TEXT = "Watermark"

Dimension = Annotated[int, Field(gt=0, le=settings.MAX_DIMENSION)]


class Action(BaseModel):
    """저장/전송용 작업 표현. params 값은 항상 문자열로 정규화된다."""

    name: str
    params: dict[str, str] = Field(default_factory=dict)

    @field_validator("params", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # 클라이언트가 {"width": 200} 처럼 숫자로 보내도 받아준다. null 값은 키가 없는 것으로 본다
        if isinstance(value, dict):
            return {
                str(k): v if isinstance(v, str) else str(v)
                for k, v in value.items()
                if v is not None
            }
        return value


# --- 작업별 타입 ---


class ResizeAction(BaseModel):
    name: Literal["resize"] = "resize"
    width: Dimension
    height: Dimension

    namespace: ClassVar[str] = "resized"
    model_config = {"frozen": True}


class ThumbnailAction(BaseModel):
    name: Literal["thumbnail"] = "thumbnail"
    width: Dimension
    height: Dimension

    namespace: ClassVar[str] = "thumbnails"
    model_config = {"frozen": True}


class WatermarkAction(BaseModel):
    name: Literal["watermark"] = "watermark"
    text: str = DEFAULT_WATERMARK_TEXT

    namespace: ClassVar[str] = "watermarked"
    model_config = {"frozen": True}

    @field_validator("text", mode="before")
    @classmethod
    def _default_when_empty(cls, value: Any) -> Any:
        return value or DEFAULT_WATERMARK_TEXT


TypedAction = Annotated[
    ResizeAction | ThumbnailAction | WatermarkAction,
    Field(discriminator="name"),
]

_adapter: TypeAdapter[TypedAction] = TypeAdapter(TypedAction)

SUPPORTED_ACTIONS = ("resize", "thumbnail", "watermark")


def parse_action(action: Action) -> ResizeAction | ThumbnailAction | WatermarkAction:
    """저장용 Action을 작업별 타입으로 변환한다.

    - 알 수 없는 name → InvalidAction
    - resize/thumbnail의 width, height 누락, 양의 정수가 아님, MAX_DIMENSION 초과 → InvalidAction
    - watermark의 text 누락/빈 문자열 → "Watermark"
    """
    if action.name not in SUPPORTED_ACTIONS:
        raise InvalidAction(f"지원하지 않는 작업: {action.name!r}")

    try:
        return _adapter.validate_python({**action.params, "name": action.name})
    except ValidationError as e:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"][1:]) or action.name for err in e.errors()
        )
        raise InvalidAction(f"{action.name} 파라미터가 올바르지 않습니다: {fields}") from e
