"""
Connection Cleanup Management.

Evicts stale peers, either on demand or when they outlive the stale
client timeout.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from presence_gateway.components.connection.entry import ConnectionStatus

if TYPE_CHECKING:
    from presence_gateway.components.connection.entry import ConnectionEntry
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionCleanup:
    """
    Manages eviction of stale connections.

    Eviction goes through ConnectionRegistry.remove, so every evicted entry
    has its cancellation scope fired (listener detached, channel closed).
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
    ) -> None:
        """
        Initialize cleanup manager with dependencies.

        Args:
            registry: Peer registry
            metrics: Collects cleanup metrics
        """
        self._registry = registry
        self._metrics = metrics

    def remove_stale_clients(self) -> list[str]:
        """
        Evict every STALE entry right now.

        Returns:
            Ids of the evicted peers (empty if there were none).
        """
        removed = [
            entry.id
            for entry in self._registry.list(ConnectionStatus.STALE)
            if self._registry.remove(entry.id)
        ]
        if removed:
            self._metrics.add_manually_evicted(len(removed))
        return removed

    def evict_expired(
        self, expired: list[tuple["ConnectionEntry", float]]
    ) -> list[tuple[str, float]]:
        """
        Evict entries that stayed stale past the stale client timeout.

        Entries that were restored or replaced since they were classified
        are left alone.

        Args:
            expired: (entry, seconds spent stale) pairs from a sweep.

        Returns:
            (peer id, seconds spent stale) for each evicted entry.
        """
        evicted = []
        for entry, stale_for in expired:
            if self._registry.get(entry.id) is not entry or not entry.is_stale:
                continue
            if self._registry.remove(entry.id):
                evicted.append((entry.id, stale_for))
        return evicted
