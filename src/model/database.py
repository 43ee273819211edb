from sqlalchemy import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from core.config import settings

IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def build_engine(url: str | None = None) -> Engine:
    """DB 엔진을 만든다.

    SQLite는 API 스레드와 컨슈머 스레드가 같은 엔진을 쓰므로
    check_same_thread를 꺼야 한다.
    in-memory SQLite는 StaticPool을 써야 모든 커넥션이 같은 DB를 본다.
    """
    url = url or settings.DATABASE_URL
    if not url.startswith("sqlite"):
        return create_engine(url, echo=settings.DEBUG, pool_pre_ping=True)

    kwargs = {"poolclass": StaticPool} if url in IN_MEMORY_URLS else {}
    return create_engine(
        url,
        echo=settings.DEBUG,
        connect_args={"check_same_thread": False},
        **kwargs,
    )


def create_db_and_tables(engine: Engine) -> None:
    import model.image  # noqa: F401  테이블 등록
    import model.message  # noqa: F401  테이블 등록

    SQLModel.metadata.create_all(engine)
