"""
Connection Statistics.

Counts derived from the registry plus aggregated component statistics.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from presence_gateway.components.connection.heartbeat import HeartbeatScheduler
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector


class ConnectionStats:
    """
    Aggregates connection statistics from components.

    Counting rules:
    - total: LIVE entries
    - active: LIVE and visible entries
    - stale: STALE entries
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        heartbeat: "HeartbeatScheduler",
    ) -> None:
        self._registry = registry
        self._metrics = metrics
        self._heartbeat = heartbeat

    def total_count(self) -> int:
        return self._registry.count_where(lambda entry: entry.is_live)

    def active_count(self) -> int:
        return self._registry.count_where(lambda entry: entry.is_active)

    def stale_count(self) -> int:
        return self._registry.count_where(lambda entry: entry.is_stale)

    def get_stats(self) -> dict[str, Any]:
        """
        Get connection statistics.

        Includes counts, heartbeat configuration and metric counters.
        """
        return {
            "total_connections": self.total_count(),
            "active_connections": self.active_count(),
            "stale_connections": self.stale_count(),
            "registered_connections": self._registry.size(),
            "heartbeat": {
                "running": self._heartbeat.running,
                "ping_interval": self._heartbeat.ping_interval,
                "ping_timeout": self._heartbeat.ping_timeout,
                "stale_threshold": self._heartbeat.stale_threshold,
                "stale_client_timeout": self._heartbeat.stale_client_timeout,
            },
            "metrics": self._metrics.get_snapshot(),
        }
