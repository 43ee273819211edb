import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI
from loguru import logger
from sqlalchemy import Engine

from broker.consumer import ImageConsumer
from broker.handlers import UploadedHandler
from broker.producer import ImageProducer
from broker.sql_broker import SqlBroker
from core.config import Settings, settings
from model.database import build_engine, create_db_and_tables
from processor.engine import TransformEngine
from repository.image_repository import SqlImageRepository
from service.image_service import ImageService
from storage.file_storage import LocalFileStorage
from utility.logger import setup_logger


@dataclass
class Pipeline:
    broker: SqlBroker
    service: ImageService
    consumer: ImageConsumer


def build_pipeline(engine: Engine, storage_dir: str, cfg: Settings = settings) -> Pipeline:
    """저장소 → 리포지토리 → 브로커/프로듀서 → 변환 엔진 → 서비스 → 컨슈머 순으로 조립한다.

    프로듀서와 컨슈머는 각자 브로커 인스턴스를 갖는다. (fetch 위치는 인스턴스별 상태)
    """
    strategy = cfg.retry_strategy
    storage = LocalFileStorage(storage_dir)
    repository = SqlImageRepository(engine)

    producer = ImageProducer(SqlBroker(engine, cfg.QUEUE_TOPIC, cfg.QUEUE_GROUP_ID), strategy)
    transform = TransformEngine(storage, jpeg_quality=cfg.JPEG_QUALITY)
    service = ImageService(storage, repository, producer, transform)

    consumer_broker = SqlBroker(engine, cfg.QUEUE_TOPIC, cfg.QUEUE_GROUP_ID)
    consumer = ImageConsumer(
        consumer_broker,
        UploadedHandler(service),
        strategy,
        idle_interval=cfg.CONSUMER_IDLE_INTERVAL,
        fetch_backoff=cfg.CONSUMER_FETCH_BACKOFF,
        max_deliveries=cfg.MAX_DELIVERIES,
    )
    return Pipeline(broker=consumer_broker, service=service, consumer=consumer)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # === 시작 ===
    setup_logger(settings.LOG_LEVEL)
    logger.info(f"{settings.APP_NAME} v{settings.APP_VERSION}")

    engine = build_engine()
    create_db_and_tables(engine)
    logger.info(f"Database ready ({engine.url.render_as_string(hide_password=True)})")

    pipeline = build_pipeline(engine, settings.STORAGE_DIR)
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.image_service = pipeline.service

    worker: threading.Thread | None = None
    if settings.CONSUMER_ENABLED:
        worker = threading.Thread(
            target=pipeline.consumer.run, name="image-consumer", daemon=True
        )
        worker.start()
    app.state.consumer_thread = worker

    yield

    # === 종료 ===
    logger.info("Shutting down")
    pipeline.consumer.stop()
    if worker is not None:
        worker.join(timeout=settings.SHUTDOWN_GRACE_SECONDS)
        if worker.is_alive():
            logger.warning("consumer did not stop within grace period")
    pipeline.broker.close()
    engine.dispose()
