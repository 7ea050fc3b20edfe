"""
Connection Registry - authoritative map of peer id to connection entry.

Pure state container: no timers, no I/O. Removing an entry fires its
cancellation scope in the same call that deletes it, so an entry is in the
registry exactly as long as its scope is unfired.

Subscribers receive "add" and "remove" events; the connection manager uses
them for logging and metrics.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Callable, Iterator

from shared.config.logging import get_logger
from presence_gateway.components.connection.cancellation import CancellationScope
from presence_gateway.components.connection.entry import ConnectionEntry, ConnectionStatus

if TYPE_CHECKING:
    from presence_gateway.components.connection.channel import Channel

logger = get_logger(__name__)


class RegistryEvent(str, Enum):
    ADD = "add"
    REMOVE = "remove"


RegistryListener = Callable[[ConnectionEntry], None]


class ConnectionRegistry:
    """
    Registry of connected peers.

    Invariants:
    - Every entry in the registry has an unfired cancellation scope.
    - Every entry removed from the registry has a fired one.
    - Re-registering an id replaces the previous entry (last write wins);
      the previous entry is removed through the normal removal path.

    Not thread-safe: all mutation must happen on the owning event loop.
    """

    def __init__(self) -> None:
        self._entries: dict[str, ConnectionEntry] = {}
        self._listeners: dict[RegistryEvent, list[RegistryListener]] = {
            RegistryEvent.ADD: [],
            RegistryEvent.REMOVE: [],
        }

    # =========================================================================
    # Mutation
    # =========================================================================

    def register(
        self,
        peer_id: str,
        channel: "Channel",
        *,
        visible: bool = True,
        last_seen_at: float = 0.0,
        scope: CancellationScope | None = None,
    ) -> ConnectionEntry:
        """
        Insert a LIVE entry for a peer, replacing any entry with the same id.

        Args:
            peer_id: Stable peer identifier.
            channel: The peer's channel; owned by the entry from now on.
            visible: Initial visibility.
            last_seen_at: Timestamp of the registration.
            scope: Cancellation scope to bind; a fresh one is created if omitted.

        Returns:
            The new entry.
        """
        entry = ConnectionEntry(
            id=peer_id,
            channel=channel,
            scope=scope if scope is not None else CancellationScope(peer_id),
            visible=visible,
            last_seen_at=last_seen_at,
        )

        previous = self._entries.get(peer_id)
        self._entries[peer_id] = entry

        if previous is not None:
            logger.warning(
                "Duplicate registration, replacing previous entry",
                peer_id=peer_id,
                previous_status=previous.status.value,
                same_channel=previous.channel is channel,
            )
            previous.scope.cancel()
            self._emit(RegistryEvent.REMOVE, previous)

        self._emit(RegistryEvent.ADD, entry)
        return entry

    def remove(self, peer_id: str) -> bool:
        """
        Remove a peer and fire its cancellation scope.

        Returns:
            True if the peer was registered, False otherwise.
        """
        entry = self._entries.pop(peer_id, None)
        if entry is None:
            return False
        entry.scope.cancel()
        self._emit(RegistryEvent.REMOVE, entry)
        return True

    def mark_stale(self, peer_id: str, now: float) -> bool:
        """Demote a LIVE peer to STALE. Returns False if absent or already stale."""
        entry = self._entries.get(peer_id)
        return entry is not None and entry.mark_stale(now)

    def mark_live(self, peer_id: str, now: float) -> bool:
        """Restore a STALE peer to LIVE. Returns False if absent or already live."""
        entry = self._entries.get(peer_id)
        return entry is not None and entry.mark_live(now)

    def set_visible(self, peer_id: str, visible: bool) -> bool:
        """Update a peer's visibility flag. Returns False if absent."""
        entry = self._entries.get(peer_id)
        if entry is None:
            return False
        entry.visible = visible
        return True

    def clear(self) -> int:
        """
        Remove every entry, firing each cancellation scope.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for peer_id in list(self._entries):
            if self.remove(peer_id):
                removed += 1
        return removed

    def shutdown(self) -> int:
        """Remove every entry and drop all subscribers."""
        removed = self.clear()
        for listeners in self._listeners.values():
            listeners.clear()
        return removed

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, peer_id: str) -> ConnectionEntry | None:
        return self._entries.get(peer_id)

    def has(self, peer_id: str) -> bool:
        return peer_id in self._entries

    def list(self, status: ConnectionStatus | None = None) -> list[ConnectionEntry]:
        """Snapshot of entries, optionally filtered by status."""
        if status is None:
            return list(self._entries.values())
        return [entry for entry in self._entries.values() if entry.status is status]

    def ids(self) -> list[str]:
        return list(self._entries)

    def size(self) -> int:
        return len(self._entries)

    def count_where(self, predicate: Callable[[ConnectionEntry], bool]) -> int:
        return sum(1 for entry in self._entries.values() if predicate(entry))

    def uses_channel(self, channel: "Channel") -> bool:
        """Whether any registered entry is bound to this channel."""
        return any(entry.channel is channel for entry in self._entries.values())

    @property
    def entries(self) -> MappingProxyType[str, ConnectionEntry]:
        """Read-only view of the registry."""
        return MappingProxyType(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, peer_id: object) -> bool:
        return peer_id in self._entries

    def __iter__(self) -> Iterator[ConnectionEntry]:
        return iter(list(self._entries.values()))

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: RegistryEvent | str, listener: RegistryListener) -> None:
        """Subscribe to "add" or "remove" events."""
        listeners = self._listeners[RegistryEvent(event)]
        if listener not in listeners:
            listeners.append(listener)

    def off(self, event: RegistryEvent | str, listener: RegistryListener) -> None:
        """Unsubscribe a listener. Unknown listeners are ignored."""
        listeners = self._listeners[RegistryEvent(event)]
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: RegistryEvent | str) -> int:
        return len(self._listeners[RegistryEvent(event)])

    def _emit(self, event: RegistryEvent, entry: ConnectionEntry) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(entry)
            except Exception as e:
                logger.error(
                    "Registry listener failed",
                    registry_event=event.value,
                    peer_id=entry.id,
                    error=type(e).__name__,
                    message=str(e),
                    exc_info=True,
                )
