"""
Presence Gateway Core Module.

- connection/: Connection lifecycle, broadcasting, cleanup, stats
"""

from presence_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionCleanup,
    ConnectionStats,
)

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionCleanup",
    "ConnectionStats",
]
