"""Structured logging with copy operation context."""

from .context import CopyContext, set_current_copy, get_current_copy, clear_current_copy
from .logger import (
    AppLogger,
    StructuredFormatter,
    CompressingTimedRotatingFileHandler,
    configure_root_logger,
    get_logger,
)

__all__ = [
    "CopyContext",
    "set_current_copy",
    "get_current_copy",
    "clear_current_copy",
    "AppLogger",
    "StructuredFormatter",
    "CompressingTimedRotatingFileHandler",
    "configure_root_logger",
    "get_logger",
]
