"""docschema utility modules."""

from docschema.utils.logging import configure_logging, get_logger
from docschema.utils.retry import retry_storage

__all__ = [
    "configure_logging",
    "get_logger",
    "retry_storage",
]
