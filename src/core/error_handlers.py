"""전역 예외 핸들러.

AppException 계열과 FastAPI 요청 검증 에러를 같은 JSON 형식
{"error_code": ..., "message": ...}으로 변환한다.
main.py에서 app.add_exception_handler()로 등록한다.
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from core.exceptions import AppException

_log = logger.bind(component="http")


def _error_response(status_code: int, error_code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error_code": error_code, "message": message},
    )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    if exc.status_code >= 500:
        kind = "transient" if exc.retryable else "fatal"
        _log.error(f"{request.method} {request.url.path} → {exc.error_code} ({kind}): {exc.message}")
    else:
        _log.debug(f"{request.method} {request.url.path} → {exc.error_code}")
    return _error_response(exc.status_code, exc.error_code, exc.message)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # 첫 번째 에러만 메시지로 노출
    first = exc.errors()[0] if exc.errors() else {}
    where = ".".join(str(p) for p in first.get("loc", ()))
    message = f"{where}: {first.get('msg', '잘못된 요청')}" if where else "잘못된 요청"
    return _error_response(400, "INVALID_REQUEST", message)
