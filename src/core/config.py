from pydantic_settings import BaseSettings

from utility.retry import RetryStrategy


class Settings(BaseSettings):
    # 앱 설정
    APP_NAME: str = "image-processor"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    SHUTDOWN_GRACE_SECONDS: float = 5.0

    # DB 설정 (메시지 로그도 같은 DB를 사용)
    DATABASE_URL: str = "sqlite:///./image_processor.db"

    # 아티팩트 저장 경로
    STORAGE_DIR: str = "/app/storage"
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    JPEG_QUALITY: int = 90
    # resize/thumbnail 결과의 최대 가로/세로 (px)
    MAX_DIMENSION: int = 10_000

    # 큐 설정
    QUEUE_TOPIC: str = "images"
    QUEUE_GROUP_ID: str = "image-processor"

    # 재시도 정책: attempts 회 시도, delay 초부터 backoff 배씩 증가
    RETRY_ATTEMPTS: int = 3
    RETRY_DELAY: float = 0.2
    RETRY_BACKOFF: float = 2.0

    # 컨슈머 설정
    CONSUMER_ENABLED: bool = True
    CONSUMER_IDLE_INTERVAL: float = 0.5
    CONSUMER_FETCH_BACKOFF: float = 0.5
    MAX_DELIVERIES: int = 3

    # 재큐잉 스윕 기준 (분)
    STALE_PENDING_MINUTES: int = 10

    @property
    def retry_strategy(self) -> RetryStrategy:
        return RetryStrategy(
            attempts=self.RETRY_ATTEMPTS,
            delay=self.RETRY_DELAY,
            backoff=self.RETRY_BACKOFF,
        )

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
