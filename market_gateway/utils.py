import sys

from loguru import logger


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the process-wide loguru sink.

    Replaces the default handler with a single stderr sink at the given
    level, so every module can keep using ``from loguru import logger``.
    """
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
        ),
        backtrace=False,
        diagnose=False,
    )
    logger.debug(f"Logging configured at {level.upper()}")
