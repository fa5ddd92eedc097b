import sys
import logging
from typing import Optional

from loguru import logger

from app.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"

# Library loggers that only matter when something goes wrong
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "hpack")


class InterceptHandler(logging.Handler):
    """Sends stdlib logging records (uvicorn, httpx, supabase) through loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk back to the frame that actually called logging
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: Optional[str] = None, error_file: Optional[str] = None):
    logger.remove()

    # Structured lines in production so the platform's log search can index them
    logger.add(
        sys.stdout,
        level=level or settings.LOG_LEVEL,
        format=CONSOLE_FORMAT,
        serialize=settings.is_production,
    )
    logger.add(
        error_file or settings.LOG_FILE,
        level="ERROR",
        rotation="10 MB",
        retention="1 month",
        compression="zip",
        format=FILE_FORMAT,
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["logger", "setup_logging"]
