"""
Connection Lifecycle Management.

Registers new peer channels, removes peers and restores stale ones.
Extracted from ConnectionManager for better maintainability.
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, TYPE_CHECKING

from shared.config.logging import get_logger
from presence_gateway.components.connection.cancellation import CancellationScope

if TYPE_CHECKING:
    from presence_gateway.components.connection.channel import Channel
    from presence_gateway.components.connection.entry import ConnectionEntry
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)

EntryListenerFactory = Callable[["ConnectionEntry"], Callable[[Any], None]]


class ConnectionLifecycle:
    """
    Manages the lifecycle of peer connections.

    Responsibilities:
    - Register channels as LIVE entries and wire their inbound listener
    - Bind listener cleanup and channel closing to the entry's scope
    - Remove entries
    - Restore STALE entries on inbound traffic
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
        clock: Callable[[], float],
    ) -> None:
        """
        Initialize lifecycle manager with dependencies.

        Args:
            registry: Peer registry
            metrics: Collects connection metrics
            clock: Returns the current timestamp in seconds
        """
        self._registry = registry
        self._metrics = metrics
        self._clock = clock

    def connect(
        self,
        channel: "Channel",
        listener_factory: EntryListenerFactory,
        peer_id: str | None = None,
    ) -> "ConnectionEntry":
        """
        Register a channel and start it.

        Args:
            channel: The peer's channel.
            listener_factory: Builds the inbound listener for the new entry.
            peer_id: Host supplied id; a random one is generated if omitted.

        Returns:
            The registered entry.

        Raises:
            Exception: Whatever wiring or starting the channel raised. The
                entry is removed again before the error propagates, which
                detaches the listener and closes the channel.
        """
        peer_id = peer_id or uuid.uuid4().hex
        if self._registry.has(peer_id):
            self._metrics.increment_duplicate_registrations()

        scope = CancellationScope(peer_id)
        entry = self._registry.register(
            peer_id,
            channel,
            visible=True,
            last_seen_at=self._clock(),
            scope=scope,
        )

        try:
            # Callbacks run in reverse: the listener is detached before the channel closes
            scope.add_callback(lambda: self._release_channel(channel))
            scope.add_callback(channel.add_listener(listener_factory(entry)))
            channel.start()
        except Exception:
            self._metrics.increment_setup_failures()
            if self._registry.get(peer_id) is entry:
                self._registry.remove(peer_id)
            raise

        self._metrics.increment_connected()
        return entry

    def disconnect(self, peer_id: str) -> bool:
        """
        Remove a peer from the registry.

        Returns:
            True if the peer was registered.
        """
        removed = self._registry.remove(peer_id)
        if removed:
            self._metrics.increment_disconnected()
        return removed

    def restore(self, entry: "ConnectionEntry", now: float) -> bool:
        """
        Bring a STALE entry back to LIVE.

        Returns:
            True if the entry was stale and is now live.
        """
        restored = entry.mark_live(now)
        if restored:
            self._metrics.increment_restored()
        return restored

    def _release_channel(self, channel: "Channel") -> None:
        """Close a channel unless a newer entry re-registered it."""
        if self._registry.uses_channel(channel):
            return
        try:
            channel.close()
        except Exception as e:
            logger.debug("Failed to close channel: %s", str(e))
