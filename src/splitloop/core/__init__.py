"""Core infrastructure: settings and logging."""

from splitloop.core.config import ForeachSettings, load_settings
from splitloop.core.logging import configure_logging, get_logger

__all__ = [
    "ForeachSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
