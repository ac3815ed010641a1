"""Logging configuration using loguru."""

import sys
from pathlib import Path

from loguru import logger
from loguru._logger import Logger as LoguruLogger

from fiscal_assistant.config import settings

_CONFIGURED = False


def configure_logging(force: bool = False) -> None:
    """
    Install the stderr and file sinks.

    Sinks are installed once per process; ``force`` re-installs them, which
    is what tests use after pointing ``settings.log_dir`` somewhere else.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    # Remove default logger to avoid duplicates
    logger.remove()

    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>",
        level=settings.log_level,
        colorize=True,
    )

    # File handler for all logs
    logger.add(
        log_dir / "app.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
        "{extra[name]}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="10 MB",
        retention="7 days",
        compression="zip",
    )

    # Error file handler
    logger.add(
        log_dir / "errors.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
        "{extra[name]}:{function}:{line} - {message}",
        level="ERROR",
        rotation="10 MB",
        retention="30 days",
        compression="zip",
    )
    logger.configure(extra={"name": "fiscal_assistant"})
    _CONFIGURED = True


def get_logger(name: str) -> LoguruLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger bound to ``name``
    """
    configure_logging()
    bound_logger = logger.bind(name=name)
    return bound_logger  # type: ignore[return-value]
