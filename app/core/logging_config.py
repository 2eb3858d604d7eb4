"""Structured logging configuration."""

import sys
from pathlib import Path
from typing import Any, Optional

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[run_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[run_id]} | {name}:{function}:{line} | {message}"


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """
    Configure console and optional file logging.

    Every record carries a ``run_id`` extra; records logged outside a
    pipeline run show ``-``.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to log file
        rotation: Log rotation size
        retention: Log retention period
    """
    logger.remove()
    logger.configure(extra={"run_id": "-"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
        colorize=True,
    )

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=FILE_FORMAT,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            enqueue=True,
        )


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger bound to a module name and optional context.

    Args:
        name: Logger name (typically __name__)
        **context: Additional context fields (run_id, step, scene_index, ...)

    Returns:
        Logger instance with bound context
    """
    return logger.bind(name=name, **context)


# Initialize logging on import
setup_logging()
