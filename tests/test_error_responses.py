"""커스텀 에러 응답 형식 검증 테스트.

모든 에러가 {"error_code": "...", "message": "..."} 형식인지 확인한다.
"""

import io
import uuid
from datetime import UTC, datetime, timedelta

from PIL import Image

from core.exceptions import BrokerError


class _DownBroker:
    def send(self, key, value):
        raise BrokerError("broker unreachable")


def _png_file():
    buf = io.BytesIO()
    Image.new("RGB", (10, 10), "red").save(buf, format="PNG")
    buf.seek(0)
    return ("t.png", buf, "image/png")


def test_error_has_error_code_and_message(client):
    """에러 응답에 error_code + message 필드가 존재한다."""
    resp = client.get(f"/api/image/{uuid.uuid4()}")
    data = resp.json()
    assert "error_code" in data, f"error_code 필드 없음: {data}"
    assert "message" in data, f"message 필드 없음: {data}"
    assert isinstance(data["error_code"], str)
    assert isinstance(data["message"], str)


def test_unknown_action_error_format(client):
    """지원하지 않는 작업 → 400 + INVALID_ACTION 형식."""
    resp = client.post(
        "/api/upload",
        files={"image": _png_file()},
        data={"actions": '{"action": "nonexistent_op", "params": {}}'},
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["error_code"] == "INVALID_ACTION"
    assert "nonexistent_op" in data["message"]


def test_non_image_upload_error_format(client):
    resp = client.post(
        "/api/upload",
        files={"image": ("notes.txt", b"hello", "text/plain")},
        data={"actions": '{"action": "watermark"}'},
    )
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_UPLOAD"


def test_queue_unavailable_error_format(client, service):
    """큐 등록 실패 → 503 QUEUE_UNAVAILABLE, 레코드는 pending으로 남지 않는다."""
    service.producer.broker = _DownBroker()

    resp = client.post(
        "/api/upload",
        files={"image": _png_file()},
        data={"actions": '{"action": "watermark", "params": {"text": "hi"}}'},
    )
    assert resp.status_code == 503
    assert resp.json()["error_code"] == "QUEUE_UNAVAILABLE"

    [stuck] = service.repository.list_unfinished(before=datetime.now(UTC) + timedelta(days=1))
    assert stuck.status == "failed"


def test_request_validation_error_format(client):
    """FastAPI 요청 검증 실패도 422가 아닌 400 + 같은 형식으로 내려간다."""
    resp = client.post(
        "/api/upload",
        data={"image": "not-a-file", "actions": '{"action": "watermark"}'},
    )
    assert resp.status_code == 400
    data = resp.json()
    assert data["error_code"] == "INVALID_REQUEST"
    assert "image" in data["message"]


def test_decompression_bomb_upload_error_format(client, monkeypatch):
    """픽셀 수 제한 초과 이미지 → 500이 아닌 400 + INVALID_UPLOAD."""
    upload = _png_file()
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10)

    resp = client.post(
        "/api/upload",
        files={"image": upload},
        data={"actions": '{"action": "watermark"}'},
    )
    assert resp.status_code == 400
    assert resp.json()["error_code"] == "INVALID_UPLOAD"
