"""
Metrics Collector for the presence gateway.

Plain counters grouped by concern. All updates happen on the event loop
that owns the connection manager, so no locking is needed.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class BroadcastMetrics:
    """Metrics for broadcast operations."""
    total: int = 0
    recipients: int = 0
    recipients_failed: int = 0


@dataclass
class ConnectionMetrics:
    """Metrics for connection management."""
    connected: int = 0
    disconnected: int = 0
    duplicate_registrations: int = 0
    rejected_after_destroy: int = 0
    setup_failures: int = 0


@dataclass
class HeartbeatMetrics:
    """Metrics for heartbeat sweeps."""
    sweeps: int = 0
    pings_sent: int = 0
    marked_stale: int = 0
    restored: int = 0
    auto_evicted: int = 0
    manually_evicted: int = 0


@dataclass
class CallbackMetrics:
    """Failures raised by host supplied callbacks."""
    message_failures: int = 0
    count_change_failures: int = 0
    log_failures: int = 0


class MetricsCollector:
    """
    Counter collector for the connection manager.

    Usage:
        metrics = MetricsCollector()
        metrics.record_broadcast(recipients=3, failed=1)
        stats = metrics.get_snapshot()
    """

    def __init__(self) -> None:
        self.broadcast = BroadcastMetrics()
        self.connection = ConnectionMetrics()
        self.heartbeat = HeartbeatMetrics()
        self.callbacks = CallbackMetrics()

    # ==========================================================================
    # Broadcast Metrics
    # ==========================================================================

    def record_broadcast(self, recipients: int, failed: int) -> None:
        self.broadcast.total += 1
        self.broadcast.recipients += recipients
        self.broadcast.recipients_failed += failed

    def record_send_failure(self) -> None:
        """Single-recipient send that failed outside a broadcast."""
        self.broadcast.recipients_failed += 1

    # ==========================================================================
    # Connection Metrics
    # ==========================================================================

    def increment_connected(self) -> None:
        self.connection.connected += 1

    def increment_disconnected(self) -> None:
        self.connection.disconnected += 1

    def increment_duplicate_registrations(self) -> None:
        self.connection.duplicate_registrations += 1

    def increment_setup_failures(self) -> None:
        self.connection.setup_failures += 1

    def increment_rejected_after_destroy(self) -> None:
        self.connection.rejected_after_destroy += 1

    # ==========================================================================
    # Heartbeat Metrics
    # ==========================================================================

    def record_sweep(self, pings_sent: int, marked_stale: int, auto_evicted: int) -> None:
        self.heartbeat.sweeps += 1
        self.heartbeat.pings_sent += pings_sent
        self.heartbeat.marked_stale += marked_stale
        self.heartbeat.auto_evicted += auto_evicted

    def increment_restored(self) -> None:
        self.heartbeat.restored += 1

    def add_manually_evicted(self, count: int) -> None:
        self.heartbeat.manually_evicted += count

    # ==========================================================================
    # Callback Metrics
    # ==========================================================================

    def increment_callback_failure(self, callback: str) -> None:
        """
        Count a failing host callback.

        Args:
            callback: "message", "count_change" or "log".
        """
        if callback == "message":
            self.callbacks.message_failures += 1
        elif callback == "count_change":
            self.callbacks.count_change_failures += 1
        elif callback == "log":
            self.callbacks.log_failures += 1

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    def get_snapshot(self) -> dict[str, Any]:
        """Get a copy of all counters."""
        return {
            "broadcast": asdict(self.broadcast),
            "connection": asdict(self.connection),
            "heartbeat": asdict(self.heartbeat),
            "callbacks": asdict(self.callbacks),
        }

    def reset(self) -> None:
        self.broadcast = BroadcastMetrics()
        self.connection = ConnectionMetrics()
        self.heartbeat = HeartbeatMetrics()
        self.callbacks = CallbackMetrics()
