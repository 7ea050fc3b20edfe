"""
Shared utilities.
"""

from shared.utils.exceptions import (
    PresenceError,
    ChannelClosedError,
    ConfigurationError,
)

__all__ = [
    "PresenceError",
    "ChannelClosedError",
    "ConfigurationError",
]
