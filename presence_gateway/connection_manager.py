"""
Presence Connection Manager.

Thin orchestrator that composes modular components for connection
liveness and membership tracking:
- ConnectionRegistry: peer id -> entry map
- HeartbeatScheduler: periodic ping / stale classification
- MessageRouter: control vs application message dispatch
- ConnectionLifecycle: register/remove/restore
- ConnectionBroadcaster: message delivery
- ConnectionCleanup: stale eviction
- ConnectionStats: counts and statistics

All mutation happens synchronously inside a channel message callback or a
heartbeat tick on one event loop; no public operation awaits, so no
locking is needed.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Callable, TYPE_CHECKING

from shared.config.logging import LOG_LEVELS, LogEntry, get_logger
from shared.config.settings import settings, validate_timing
from shared.utils.exceptions import ConfigurationError
from presence_gateway.components.core.constants import MessageType, create_internal_message
from presence_gateway.components.connection.entry import ConnectionEntry
from presence_gateway.components.connection.heartbeat import HeartbeatScheduler, SweepResult
from presence_gateway.components.connection.registry import ConnectionRegistry, RegistryEvent
from presence_gateway.components.events.router import MessageRouter
from presence_gateway.components.metrics.collector import MetricsCollector
from presence_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionCleanup,
    ConnectionStats,
)

if TYPE_CHECKING:
    from presence_gateway.components.connection.channel import Channel

logger = get_logger(__name__)

ActiveCountCallback = Callable[[int, int], None]
MessageCallback = Callable[[str, Any], None]
LogCallback = Callable[[LogEntry], None]

__all__ = ["ConnectionManager"]


class ConnectionManager:
    """
    Tracks connected peers, their liveness and their visibility.

    Peer states:
    - LIVE: answered within ping_interval + ping_timeout; counted and broadcast to.
    - STALE: silent past the threshold; kept, not counted, not broadcast to.
      Any inbound message restores it to LIVE before being processed.
    - Removed: after a disconnect message, manual or automatic eviction,
      or destroy(). Terminal.

    Configuration (constructor arguments fall back to settings):
    - ping_interval: Seconds between sweeps (default: 10)
    - ping_timeout: Extra seconds to answer a ping (default: 5)
    - stale_client_timeout: Seconds before a stale peer is evicted (default: never)

    Host callbacks:
    - on_active_count_change(active, total): after every count recompute
    - on_message(peer_id, message): for every application message
    - on_log(LogEntry): mirror of every log event

    Usage:
        async with ConnectionManager(on_message=handle) as manager:
            peer_id = manager.handle_connect(channel)
            manager.broadcast({"type": "news", "text": "hello"})
    """

    def __init__(
        self,
        *,
        ping_interval: float | None = None,
        ping_timeout: float | None = None,
        stale_client_timeout: float | None = None,
        on_active_count_change: ActiveCountCallback | None = None,
        on_message: MessageCallback | None = None,
        on_log: LogCallback | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the connection manager with composed components.

        Raises:
            ConfigurationError: If the timing options are invalid.
        """
        if ping_interval is None:
            ping_interval = settings.presence_ping_interval
        if ping_timeout is None:
            ping_timeout = settings.presence_ping_timeout
        if stale_client_timeout is None:
            stale_client_timeout = settings.presence_stale_client_timeout

        errors = validate_timing(ping_interval, ping_timeout, stale_client_timeout)
        if errors:
            raise ConfigurationError(errors)

        self._on_active_count_change = on_active_count_change
        self._on_message = on_message
        self._on_log = on_log
        self._clock = clock
        self._destroyed = False

        # Core components
        self._metrics = MetricsCollector()
        self._registry = ConnectionRegistry()
        self._heartbeat = HeartbeatScheduler(
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            stale_client_timeout=stale_client_timeout,
        )
        self._router = MessageRouter(
            on_visibility_change=self._handle_visibility_change,
            on_disconnect=self._handle_disconnect,
            on_pong=self._handle_pong,
            on_app_message=self._handle_app_message,
        )

        # Composed operations
        self._lifecycle = ConnectionLifecycle(
            registry=self._registry,
            metrics=self._metrics,
            clock=self._clock,
        )
        self._broadcaster = ConnectionBroadcaster(
            registry=self._registry,
            metrics=self._metrics,
        )
        self._cleanup = ConnectionCleanup(
            registry=self._registry,
            metrics=self._metrics,
        )
        self._stats = ConnectionStats(
            registry=self._registry,
            metrics=self._metrics,
            heartbeat=self._heartbeat,
        )

        self._registry.on(RegistryEvent.REMOVE, self._on_entry_removed)

        self._log(
            "ConnectionManager initialized",
            "info",
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            stale_client_timeout=stale_client_timeout,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def ping_interval(self) -> float:
        return self._heartbeat.ping_interval

    @property
    def ping_timeout(self) -> float:
        return self._heartbeat.ping_timeout

    @property
    def stale_client_timeout(self) -> float | None:
        return self._heartbeat.stale_client_timeout

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat.running

    # =========================================================================
    # Lifecycle of the manager itself
    # =========================================================================

    def start(self) -> None:
        """
        Start the heartbeat timer on the running event loop.

        Called automatically by handle_connect() when a loop is running.
        Restarting replaces the previous timer.
        """
        if self._destroyed:
            self._log("Cannot start a destroyed ConnectionManager", "warning")
            return
        self._heartbeat.start(self.sweep)
        self._log("Heartbeat started", "debug", ping_interval=self.ping_interval)

    def destroy(self) -> None:
        """
        Stop the heartbeat, evict every peer and drop all callbacks.

        Every entry's cancellation scope fires, detaching listeners and
        closing channels. Idempotent.
        """
        if self._destroyed:
            return
        self._destroyed = True

        self._heartbeat.stop()
        removed = self._registry.shutdown()
        self._log("ConnectionManager destroyed", "info", removed_clients=removed)

        self._on_active_count_change = None
        self._on_message = None
        self._on_log = None

    async def __aenter__(self) -> "ConnectionManager":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.destroy()

    # =========================================================================
    # Public operations
    # =========================================================================

    def handle_connect(self, channel: "Channel", peer_id: str | None = None) -> str | None:
        """
        Register a new peer channel.

        The entry starts LIVE and visible, its inbound messages are routed
        through the manager, the channel is started and the new counts are
        broadcast (the new peer included).

        Args:
            channel: The peer's channel; the manager closes it on removal.
            peer_id: Optional host supplied id. Reusing a registered id
                replaces the previous entry.

        Returns:
            The peer id, or None if the manager was already destroyed or
            the channel could not be wired and started (the channel is
            closed in both cases).
        """
        if self._destroyed:
            self._metrics.increment_rejected_after_destroy()
            self._log("Connection rejected, manager destroyed", "warning")
            try:
                channel.close()
            except Exception as e:
                logger.debug("Failed to close rejected channel: %s", str(e))
            return None

        replacing = peer_id is not None and self._registry.has(peer_id)
        if replacing:
            self._log("Duplicate client id, replacing previous entry", "warning", peer_id=peer_id)

        try:
            entry = self._lifecycle.connect(channel, self._listener_for, peer_id)
        except Exception as e:
            self._log(
                "Channel setup failed, connection dropped",
                "error",
                peer_id=peer_id,
                error=type(e).__name__,
                detail=str(e),
            )
            if replacing:
                # The previous entry is gone too
                self._update_client_count()
            return None

        self._log(
            "New client connected",
            "info",
            peer_id=entry.id,
            total_clients=self._registry.size(),
        )

        self._ensure_heartbeat()
        self._update_client_count()
        return entry.id

    def broadcast(self, message: Any) -> int:
        """
        Send a message to every LIVE peer.

        Stale peers are skipped; a failing channel never stops delivery to
        the others.

        Returns:
            Number of peers the message was delivered to.
        """
        if self._destroyed:
            return 0
        return self._broadcaster.broadcast(message)

    def send_to(self, peer_id: str, message: Any) -> bool:
        """
        Send a message to a single peer, whatever its liveness.

        Returns:
            True if delivered; False if the peer is gone or its channel failed.
        """
        if not self._registry.has(peer_id):
            self._log("Send to removed client dropped", "warning", peer_id=peer_id)
            return False
        return self._broadcaster.send_to(peer_id, message)

    def get_total_count(self) -> int:
        """Number of LIVE peers."""
        return self._stats.total_count()

    def get_active_count(self) -> int:
        """Number of LIVE and visible peers."""
        return self._stats.active_count()

    def get_stale_count(self) -> int:
        """Number of STALE peers."""
        return self._stats.stale_count()

    def remove_stale_clients(self) -> int:
        """
        Evict every STALE peer now.

        Returns:
            Number of peers removed (0 if none).
        """
        removed = self._cleanup.remove_stale_clients()
        if removed:
            self._log(
                "Removed stale clients",
                "info",
                removed_count=len(removed),
                remaining_clients=self._registry.size(),
            )
        return len(removed)

    def sweep(self) -> SweepResult | None:
        """
        Run one heartbeat sweep.

        Pings LIVE peers that are within the threshold, demotes silent ones
        to STALE and evicts peers stale past stale_client_timeout. Called by
        the heartbeat timer; safe to call directly.

        Returns:
            The sweep classification, or None after destroy().
        """
        if self._destroyed:
            return None

        now = self._clock()
        result = self._heartbeat.check_entries(self._registry.list(), now)

        ping = create_internal_message(MessageType.PING)
        pings_sent = 0
        for entry in result.to_ping:
            if self._broadcaster.send(entry, ping):
                pings_sent += 1
        if result.to_ping:
            self._log("Sent ping to clients", "debug", ping_count=pings_sent)

        for entry in result.to_stale:
            entry.mark_stale(now)
        if result.to_stale:
            self._log(
                "Marked client(s) as stale",
                "info",
                stale_count=len(result.to_stale),
                connected_clients=self.get_total_count(),
                peer_ids=result.newly_stale_ids,
            )

        evicted = self._cleanup.evict_expired(result.to_evict)
        for peer_id, stale_for in evicted:
            self._log(
                "Evicted stale client after timeout",
                "info",
                peer_id=peer_id,
                stale_for=round(stale_for, 3),
            )

        self._metrics.record_sweep(
            pings_sent=pings_sent,
            marked_stale=len(result.to_stale),
            auto_evicted=len(evicted),
        )

        if result.to_stale:
            self._update_client_count()
        return result

    # =========================================================================
    # Introspection
    # =========================================================================

    def get_entry(self, peer_id: str) -> ConnectionEntry | None:
        return self._registry.get(peer_id)

    def peer_ids(self) -> list[str]:
        return self._registry.ids()

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        stats = self._stats.get_stats()
        stats["destroyed"] = self._destroyed
        return stats

    # =========================================================================
    # Inbound messages
    # =========================================================================

    def _listener_for(self, entry: ConnectionEntry) -> Callable[[Any], None]:
        def listener(data: Any) -> None:
            self._handle_message(entry, data)

        return listener

    def _handle_message(self, entry: ConnectionEntry, data: Any) -> None:
        if self._registry.get(entry.id) is not entry:
            self._log("Message from removed client dropped", "warning", peer_id=entry.id)
            return

        now = self._clock()
        if entry.is_stale:
            # Returning peers (sleep, network loss) rejoin without a new handshake
            self._lifecycle.restore(entry, now)
            self._log("Restoring stale client to connected status", "info", peer_id=entry.id)
            self._update_client_count()
        else:
            entry.touch(now)

        self._router.route(entry.id, data)

    def _handle_visibility_change(self, peer_id: str, visible: bool) -> None:
        if not self._registry.set_visible(peer_id, visible):
            return
        self._log("Client visibility changed", "info", peer_id=peer_id, visible=visible)
        self._update_client_count()

    def _handle_disconnect(self, peer_id: str) -> None:
        if not self._lifecycle.disconnect(peer_id):
            return
        self._log(
            "Client disconnected",
            "info",
            peer_id=peer_id,
            remaining_clients=self._registry.size(),
        )
        self._update_client_count()

    def _handle_pong(self, peer_id: str) -> None:
        self._log("Received pong from client", "debug", peer_id=peer_id)

    def _handle_app_message(self, peer_id: str, data: Any) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(peer_id, data)
        except Exception as e:
            self._metrics.increment_callback_failure("message")
            self._log(
                "Message callback failed",
                "error",
                peer_id=peer_id,
                error=type(e).__name__,
                detail=str(e),
                exc_info=True,
            )

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_heartbeat(self) -> None:
        if self._heartbeat.running:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet: the host drives sweep() or calls start() later
            return
        self.start()

    def _update_client_count(self) -> None:
        """Recompute counts, broadcast them to LIVE peers and notify the host."""
        active = self.get_active_count()
        total = self.get_total_count()

        self._log("Active clients updated", "debug", active_count=active, total_count=total)

        self._broadcaster.broadcast(
            create_internal_message(MessageType.CLIENT_COUNT, total=total, active=active)
        )

        if self._on_active_count_change is None:
            return
        try:
            self._on_active_count_change(active, total)
        except Exception as e:
            self._metrics.increment_callback_failure("count_change")
            self._log(
                "Active count callback failed",
                "error",
                error=type(e).__name__,
                detail=str(e),
                exc_info=True,
            )

    def _on_entry_removed(self, entry: ConnectionEntry) -> None:
        logger.debug(
            "Client removed from registry",
            peer_id=entry.id,
            status=entry.status.value,
            scope_cancelled=entry.scope.cancelled,
        )

    def _log(self, message: str, level: str, **context: Any) -> None:
        """Log to the module logger and mirror the event to on_log."""
        exc_info = context.pop("exc_info", None)
        log_fn = getattr(logger, level if level in LOG_LEVELS else "info")
        if exc_info:
            log_fn(message, exc_info=exc_info, **context)
        else:
            log_fn(message, **context)

        if self._on_log is None:
            return
        try:
            self._on_log(
                LogEntry(message=message, level=level, context=context, source="ConnectionManager")
            )
        except Exception as e:
            self._metrics.increment_callback_failure("log")
            logger.error(
                "Log callback failed",
                error=type(e).__name__,
                detail=str(e),
            )
