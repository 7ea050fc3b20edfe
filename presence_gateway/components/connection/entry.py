"""
Connection entry: the registry's per-peer record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from presence_gateway.components.connection.cancellation import CancellationScope

if TYPE_CHECKING:
    from presence_gateway.components.connection.channel import Channel


class ConnectionStatus(str, Enum):
    """Liveness classification of a registered peer."""

    LIVE = "live"
    STALE = "stale"


@dataclass(eq=False)
class ConnectionEntry:
    """
    State of one registered peer.

    ``stale_since`` is set exactly while ``status`` is STALE; only
    mark_stale() and mark_live() change either field so the two never
    drift apart. ``visible`` is reported by the peer and is independent of
    liveness.
    """

    id: str
    channel: "Channel"
    scope: CancellationScope = field(default_factory=CancellationScope)
    status: ConnectionStatus = ConnectionStatus.LIVE
    visible: bool = True
    last_seen_at: float = 0.0
    stale_since: float | None = None

    @property
    def is_live(self) -> bool:
        return self.status is ConnectionStatus.LIVE

    @property
    def is_stale(self) -> bool:
        return self.status is ConnectionStatus.STALE

    @property
    def is_active(self) -> bool:
        """Live and reported visible by the peer."""
        return self.is_live and self.visible

    def touch(self, now: float) -> None:
        """Record inbound traffic."""
        self.last_seen_at = now

    def mark_stale(self, now: float) -> bool:
        """Demote to STALE. Returns False if it already was."""
        if self.is_stale:
            return False
        self.status = ConnectionStatus.STALE
        self.stale_since = now
        return True

    def mark_live(self, now: float) -> bool:
        """Restore to LIVE and record traffic. Returns False if it already was live."""
        self.last_seen_at = now
        if self.is_live:
            return False
        self.status = ConnectionStatus.LIVE
        self.stale_since = None
        return True

    def silent_for(self, now: float) -> float:
        """Seconds since the last inbound message."""
        return now - self.last_seen_at

    def stale_for(self, now: float) -> float:
        """Seconds spent stale so far, 0.0 when live."""
        if self.stale_since is None:
            return 0.0
        return now - self.stale_since

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "visible": self.visible,
            "last_seen_at": self.last_seen_at,
            "stale_since": self.stale_since,
        }
