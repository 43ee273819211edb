import uuid

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from utility.timer import timer

SLOW_THRESHOLD_MS = 500
REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """모든 HTTP 요청을 로깅하는 미들웨어.

    기록 항목: 요청 ID, 메서드, 경로, 클라이언트 IP, 상태코드, 처리시간(ms)
    처리시간이 500ms를 초과하면 WARNING 레벨로 기록.
    요청 ID는 헤더로 받은 값을 그대로 쓰고, 없으면 새로 만들어 응답 헤더에 넣는다.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        log = logger.bind(component="http", request_id=request_id)

        with timer() as t:
            response = await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        line = (
            f"[{request_id}] {request.method} {request.url.path} | {client_ip} | "
            f"{response.status_code} | {t.ms:.0f}ms"
        )
        if t.ms > SLOW_THRESHOLD_MS:
            log.warning(f"{line} (slow)")
        else:
            log.info(line)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
