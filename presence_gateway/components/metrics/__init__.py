"""
Observability: counters for connections, heartbeats, broadcasts and callbacks.
"""

from presence_gateway.components.metrics.collector import (
    MetricsCollector,
    BroadcastMetrics,
    ConnectionMetrics,
    HeartbeatMetrics,
    CallbackMetrics,
)

__all__ = [
    "MetricsCollector",
    "BroadcastMetrics",
    "ConnectionMetrics",
    "HeartbeatMetrics",
    "CallbackMetrics",
]
