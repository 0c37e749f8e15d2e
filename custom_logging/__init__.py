"""
Logging module for the component kernel.

Provides the logger factory and handler setup used by every kernel module.
"""

from .logger import (
    ROOT_LOGGER_NAME,
    ConciergeLogger,
    get_logger,
    setup_logger,
    set_level
)

__all__ = [
    "ROOT_LOGGER_NAME",
    "ConciergeLogger",
    "get_logger",
    "setup_logger",
    "set_level"
]
