import sys

from loguru import logger


def setup_logger(level: str = "INFO"):
    """Loguru 기본 설정. 앱 시작 시 한 번 호출.

    컴포넌트별로 logger.bind(component=...)한 값은 {extra}로 함께 출력된다.
    """
    logger.remove()
    logger.configure(extra={"component": "app"})
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<magenta>{extra[component]: <10}</magenta> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        ),
        level=level,
    )
    return logger
