"""
Configuration and logging setup.
"""

from shared.config.settings import Settings, get_settings, settings
from shared.config.logging import (
    LogEntry,
    StructuredLogger,
    get_logger,
    setup_logging,
)

__all__ = [
    "Settings",
    "get_settings",
    "settings",
    "LogEntry",
    "StructuredLogger",
    "get_logger",
    "setup_logging",
]
