"""Retry utilities with exponential backoff.

SQLite reports the database as locked while another process holds a
write transaction. Store operations wrapped in ``retry_storage`` back
off and try again instead of failing the coordinator outright.
"""

from collections.abc import Mapping
from typing import Any

import backoff
from loguru import logger

from docschema.errors import StoreBusyError

MAX_TRIES = 5
MAX_TIME_SECONDS = 30


def on_backoff(details: Mapping[str, Any]) -> None:
    """Log a retry of a busy store operation."""
    logger.warning(
        "Retrying {} in {:.2f}s (attempt {}): {}",
        details["target"].__name__,
        details["wait"],
        details["tries"],
        details["exception"],
    )


def on_giveup(details: Mapping[str, Any]) -> None:
    """Log when the store stayed busy for every attempt."""
    logger.error(
        "Gave up on {} after {} attempts, store still busy: {}",
        details["target"].__name__,
        details["tries"],
        details["exception"],
    )


retry_storage = backoff.on_exception(
    backoff.expo,
    StoreBusyError,
    max_tries=MAX_TRIES,
    max_time=MAX_TIME_SECONDS,
    jitter=backoff.full_jitter,
    on_backoff=on_backoff,
    on_giveup=on_giveup,
)
