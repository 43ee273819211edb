"""pytest 공용 fixture.

모든 테스트는 in-memory SQLite DB와 tmp_path 아래 저장소를 사용하여 격리된다.
- db_engine: 테이블이 만들어진 in-memory 엔진
- pipeline: 서비스 + 브로커 + 컨슈머 묶음 (컨슈머 스레드는 띄우지 않음)
- client: 서비스를 pipeline 것으로 오버라이드한 TestClient
"""

import os
import sys
import tempfile
from pathlib import Path

import pytest

# src/ 디렉토리를 import path에 추가
sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

# settings가 만들어지기 전에 테스트용 환경 변수를 넣는다
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="image-processor-test-")
os.environ["CONSUMER_ENABLED"] = "false"
os.environ["RETRY_DELAY"] = "0"
os.environ["CONSUMER_IDLE_INTERVAL"] = "0"
os.environ["CONSUMER_FETCH_BACKOFF"] = "0"

from fastapi.testclient import TestClient  # noqa: E402

from core.config import settings  # noqa: E402
from core.dependencies import get_image_service  # noqa: E402
from core.lifespan import build_pipeline  # noqa: E402
from main import app  # noqa: E402
from model.database import build_engine, create_db_and_tables  # noqa: E402


@pytest.fixture()
def db_engine():
    """테스트마다 새 in-memory SQLite DB를 생성한다."""
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def storage_dir(tmp_path):
    return tmp_path / "storage"


@pytest.fixture()
def pipeline(db_engine, storage_dir):
    return build_pipeline(db_engine, str(storage_dir), settings)


@pytest.fixture()
def service(pipeline):
    return pipeline.service


@pytest.fixture()
def drain(pipeline):
    """컨슈머를 n번 돌린다. (빈 큐에서는 바로 리턴)"""

    def _drain(times: int = 5) -> int:
        return sum(pipeline.consumer.poll_once() for _ in range(times))

    return _drain


@pytest.fixture()
def client(pipeline):
    """get_image_service를 테스트용 파이프라인 서비스로 오버라이드한 TestClient."""
    app.dependency_overrides[get_image_service] = lambda: pipeline.service
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
