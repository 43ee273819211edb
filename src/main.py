import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from core.config import settings
from core.error_handlers import app_exception_handler, validation_exception_handler
from core.exceptions import AppException
from core.lifespan import lifespan
from core.middleware import RequestLoggingMiddleware
from router.image_router import router as image_router

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="업로드된 이미지를 큐에 등록하고 비동기로 resize / thumbnail / watermark 처리",
    lifespan=lifespan,
)

app.add_middleware(RequestLoggingMiddleware)
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(image_router)


@app.get("/health")
def health(request: Request):
    worker = getattr(request.app.state, "consumer_thread", None)
    return {
        "status": "ok",
        "version": settings.APP_VERSION,
        "queue_topic": settings.QUEUE_TOPIC,
        "consumer_running": bool(worker and worker.is_alive()),
    }


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        access_log=False,
        timeout_graceful_shutdown=settings.SHUTDOWN_GRACE_SECONDS,
    )
