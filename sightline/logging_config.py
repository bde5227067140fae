"""Logging configuration using Loguru.

Console output always; in production, rotating files as well (a main log
and an error-only log). Media payloads (base64 audio and video) are never
logged; use ``describe_payload`` to log their size and mime type instead.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"


def _add_file_sink(path: Path, level: str, rotation: str, retention: str, fmt: str) -> None:
    logger.add(
        path,
        format=fmt,
        level=level,
        rotation=rotation,
        retention=retention,
        compression="gz",
        backtrace=True,
        diagnose=False,
    )


def setup_logging(
    level: str = "INFO",
    log_dir: str = "logs",
    enable_file: bool = True,
) -> None:
    """Configure application logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory for log files
        enable_file: Whether to also write rotating log files
    """
    logger.remove()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=True,
    )

    if enable_file:
        log_path = Path(log_dir)
        log_path.mkdir(exist_ok=True)

        _add_file_sink(
            log_path / "sightline_{time:YYYY-MM-DD}.log",
            level,
            rotation="100 MB",
            retention="30 days",
            fmt=FILE_FORMAT,
        )
        _add_file_sink(
            log_path / "errors_{time:YYYY-MM-DD}.log",
            "ERROR",
            rotation="50 MB",
            retention="90 days",
            fmt=FILE_FORMAT + "\n{exception}",
        )

    logger.info(f"Logging initialized at {level} level")


def get_logger(name: str) -> "logger":
    """Get a logger bound to a module name.

    Usage:
        from sightline.logging_config import get_logger
        logger = get_logger(__name__)
    """
    return logger.bind(name=name)


def describe_payload(data: str, mime_type: str) -> str:
    """Summarize a base64 media payload for logging without its contents."""
    return f"{mime_type or 'unknown'} ({len(data)} b64 chars)"
