"""
멈춘 업로드 재등록 스윕.

큐 등록에 실패했거나(failed) 메시지가 유실되어 파생 레코드 없이 남은 원본을
다시 큐에 넣는다. cron 등으로 주기적으로 돌리는 용도.

사용법 (컨테이너 내부):
    cd /app/src && uv run python -m scripts.requeue_pending --minutes 30
"""

import argparse
import sys
from datetime import timedelta

from core.config import settings
from core.lifespan import build_pipeline
from model.database import build_engine, create_db_and_tables
from utility.logger import setup_logger


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--minutes",
        type=int,
        default=settings.STALE_PENDING_MINUTES,
        help="이 시간보다 오래된 업로드만 재등록 (기본: %(default)s분)",
    )
    args = parser.parse_args(argv)

    setup_logger(settings.LOG_LEVEL)
    engine = build_engine()
    create_db_and_tables(engine)
    pipeline = build_pipeline(engine, settings.STORAGE_DIR)

    try:
        requeued = pipeline.service.requeue_unfinished(timedelta(minutes=args.minutes))
    finally:
        engine.dispose()

    print(f"Requeued: {len(requeued)}건")
    for image_id in requeued:
        print(f"  {image_id}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
