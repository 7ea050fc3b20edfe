"""
Connection Management Module.

Modular components composed by ConnectionManager:
- lifecycle.py: Connection register/remove/restore
- broadcaster.py: Message delivery
- cleanup.py: Stale connection eviction
- stats.py: Counts and statistics aggregation
"""

from presence_gateway.core.connection.lifecycle import ConnectionLifecycle
from presence_gateway.core.connection.broadcaster import ConnectionBroadcaster
from presence_gateway.core.connection.cleanup import ConnectionCleanup
from presence_gateway.core.connection.stats import ConnectionStats

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionCleanup",
    "ConnectionStats",
]
