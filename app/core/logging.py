"""
Loguru setup for the gateway.

Every record carries a ``request_id`` (bound per request in ``app.main``);
records logged outside a request show ``-``.
"""
import logging
import sys
from typing import Any, Dict, List

from loguru import logger

from app.core.config import Settings, settings

# Third-party loggers whose records are routed into loguru
FORWARDED_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "httpx")

NO_REQUEST_ID = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[request_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[request_id]} | {name}:{function}:{line} - {message}"


class InterceptHandler(logging.Handler):
    """Forwards stdlib logging records to loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip the logging module's own frames
        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _with_request_id(record: Dict[str, Any]) -> None:
    record["extra"].setdefault("request_id", NO_REQUEST_ID)


def forward_stdlib_logging(names=FORWARDED_LOGGERS) -> None:
    """Install the intercept handler on the root logger and on ``names``."""
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in names:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False


def setup_logging(config: Settings = settings) -> List[int]:
    """
    Replace loguru's default sink with the gateway's sinks.

    A colored console sink is always added. A rotating file sink is added
    when ``LOG_FILE`` is set; an empty value keeps logs on the console only.

    Returns:
        The loguru ids of the sinks that were added.
    """
    forward_stdlib_logging()

    logger.remove()
    logger.configure(patcher=_with_request_id)

    sink_ids = [logger.add(sys.stderr, format=CONSOLE_FORMAT, level=config.LOG_LEVEL)]
    if config.LOG_FILE:
        sink_ids.append(
            logger.add(
                config.LOG_FILE,
                format=FILE_FORMAT,
                level=config.LOG_LEVEL,
                rotation="10 MB",
                retention="30 days",
                compression="zip",
                enqueue=True,
            )
        )
    return sink_ids
