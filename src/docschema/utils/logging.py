"""Logging configuration using loguru.

Sends coordinator output to stderr (console or JSON) and optionally to a
rotating file. Stdlib logging from the database driver is routed into
the same sinks.
"""

import logging
import sys
from typing import TYPE_CHECKING, Any

from loguru import logger

if TYPE_CHECKING:
    from docschema.config.models import LoggingConfig

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

# aiosqlite logs every statement at DEBUG.
_DRIVER_LOGGERS = ("aiosqlite",)


class _InterceptHandler(logging.Handler):
    """Route standard library logging through loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(config: "LoggingConfig") -> None:
    """
    Replace loguru's sinks according to ``config``.

    Driver loggers stay at WARNING unless the level is DEBUG.

    Args:
        config: LoggingConfig with level, format, and file settings.
    """
    serialize = config.format == "json"
    fmt = "{message}" if serialize else CONSOLE_FORMAT

    logger.remove()
    logger.add(
        sys.stderr,
        format=fmt,
        level=config.level,
        serialize=serialize,
        colorize=not serialize,
    )

    if config.file:
        logger.add(
            config.file,
            format=fmt,
            level=config.level,
            serialize=serialize,
            rotation=config.rotation,
            retention=config.retention,
            compression="gz",
        )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)
    driver_level = logging.DEBUG if config.level == "DEBUG" else logging.WARNING
    for name in _DRIVER_LOGGERS:
        logging.getLogger(name).setLevel(driver_level)

    logger.debug("Logging configured: level={} format={}", config.level, config.format)


def get_logger(name: str, **context: Any) -> Any:
    """
    Get a logger bound to ``name`` and any extra context.

    Args:
        name: Logger name (typically module name).
        **context: Extra fields, e.g. ``schema_id``, attached to every record.

    Returns:
        Bound loguru logger.
    """
    return logger.bind(name=name, **context)
