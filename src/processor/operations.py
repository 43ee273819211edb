"""
순수 CPU-bound 이미지 처리 함수.
모든 함수는 PIL.Image를 받아서 새 PIL.Image를 반환한다. (입력은 변경하지 않음)
"""

import io

from PIL import Image, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from core.exceptions import ImageDecodeError

WATERMARK_MARGIN = 10
WATERMARK_FONT_RATIO = 0.05
WATERMARK_FILL = (255, 255, 255)
FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"


def decode(data: bytes) -> Image.Image:
    """바이트를 RGB 이미지로 디코딩한다."""
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageDecodeError(f"이미지를 디코딩할 수 없습니다: {e}") from e
    return image.convert("RGB")


def encode(image: Image.Image, quality: int = 90) -> bytes:
    """baseline JPEG으로 인코딩한다."""
    buf = io.BytesIO()
    image.convert("RGB").save(buf, "JPEG", quality=quality, progressive=False)
    return buf.getvalue()


def resize(image: Image.Image, width: int, height: int) -> Image.Image:
    """정확히 width×height로 늘리거나 줄인다. (비율 유지하지 않음)"""
    return image.resize((width, height), Image.LANCZOS)


def thumbnail(image: Image.Image, width: int, height: int) -> Image.Image:
    """비율을 유지한 채 가운데를 잘라내서 정확히 width×height를 채운다. (레터박스 없음)"""
    return ImageOps.fit(image, (width, height), Image.LANCZOS, centering=(0.5, 0.5))


def _load_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    try:
        return ImageFont.truetype(FONT_PATH, size)
    except OSError:
        return ImageFont.load_default(size=size)


def watermark_box(image: Image.Image, text: str) -> tuple[int, int, int, int]:
    """워터마크 텍스트가 그려질 영역 (left, top, right, bottom)을 계산한다.

    - 폰트 크기: 이미지 너비의 5%
    - 위치: 오른쪽 아래, 양쪽 가장자리에서 margin만큼 안쪽
    - 텍스트 자신의 너비/높이를 빼서 캔버스 밖으로 잘리지 않게 한다
    - 그래도 넘치면 폰트를 줄인다
    """
    return _layout(image, text)[0]


def _layout(image: Image.Image, text: str):
    draw = ImageDraw.Draw(image)
    size = max(1, int(image.width * WATERMARK_FONT_RATIO))
    max_w = max(1, image.width - 2 * WATERMARK_MARGIN)
    max_h = max(1, image.height - 2 * WATERMARK_MARGIN)

    while True:
        font = _load_font(size)
        left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
        text_w = right - left
        text_h = bottom - top
        if (text_w <= max_w and text_h <= max_h) or size == 1:
            break
        size -= 1

    x = max(0, image.width - WATERMARK_MARGIN - text_w)
    y = max(0, image.height - WATERMARK_MARGIN - text_h)
    # textbbox의 left/top 오프셋만큼 원점을 보정해야 실제 글자가 (x, y)에서 시작한다
    origin = (x - left, y - top)
    return (x, y, x + text_w, y + text_h), origin, font


def watermark(image: Image.Image, text: str = "Watermark") -> Image.Image:
    overlay = image.copy()
    _, origin, font = _layout(overlay, text)

    draw = ImageDraw.Draw(overlay)
    draw.text(origin, text, fill=WATERMARK_FILL, font=font)
    return overlay
