"""
Heartbeat Scheduler for the presence gateway.

Drives periodic liveness classification:
- Live peers heard from within the stale threshold get a ping.
- Live peers silent for longer than the threshold are demoted to stale
  and are not pinged.
- Stale peers are not pinged; they are only checked against the optional
  stale client timeout for auto-eviction.

The scheduler classifies, the connection manager applies the result. It
owns exactly one recurring asyncio task; replacing the tick callback
cancels the old task and starts a new one in the same call.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Iterable

from shared.config.logging import get_logger
from presence_gateway.components.connection.entry import ConnectionEntry

logger = get_logger(__name__)


@dataclass
class SweepResult:
    """Classification of every registered entry for one sweep."""

    now: float
    to_ping: list[ConnectionEntry] = field(default_factory=list)
    to_stale: list[ConnectionEntry] = field(default_factory=list)
    # (entry, seconds spent stale)
    to_evict: list[tuple[ConnectionEntry, float]] = field(default_factory=list)

    @property
    def newly_stale_ids(self) -> list[str]:
        return [entry.id for entry in self.to_stale]

    @property
    def evicted_ids(self) -> list[str]:
        return [entry.id for entry, _ in self.to_evict]

    @property
    def changed(self) -> bool:
        return bool(self.to_stale or self.to_evict)


class HeartbeatScheduler:
    """
    Ping/pong liveness classification and the recurring sweep timer.

    Usage:
        scheduler = HeartbeatScheduler(ping_interval=10.0, ping_timeout=5.0)
        scheduler.start(manager.sweep)      # inside a running event loop
        result = scheduler.check_entries(registry.list(), now=time.time())
        scheduler.stop()
    """

    def __init__(
        self,
        ping_interval: float,
        ping_timeout: float,
        stale_client_timeout: float | None = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            ping_interval: Seconds between sweeps.
            ping_timeout: Extra seconds a peer gets to answer before turning stale.
            stale_client_timeout: Seconds a stale peer is kept before eviction,
                None to keep stale peers until they return or are removed manually.
        """
        self._ping_interval = ping_interval
        self._ping_timeout = ping_timeout
        self._stale_client_timeout = stale_client_timeout
        self._task: asyncio.Task | None = None
        self._callback: Callable[[], object] | None = None

    @property
    def ping_interval(self) -> float:
        return self._ping_interval

    @property
    def ping_timeout(self) -> float:
        return self._ping_timeout

    @property
    def stale_client_timeout(self) -> float | None:
        return self._stale_client_timeout

    @property
    def stale_threshold(self) -> float:
        """Silence longer than this demotes a live peer."""
        return self._ping_interval + self._ping_timeout

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # =========================================================================
    # Classification
    # =========================================================================

    def check_entries(self, entries: Iterable[ConnectionEntry], now: float) -> SweepResult:
        """
        Classify entries for one sweep without mutating them.

        Args:
            entries: Snapshot of registered entries.
            now: Current timestamp.

        Returns:
            SweepResult listing who to ping, who to demote and who to evict.
        """
        result = SweepResult(now=now)
        threshold = self.stale_threshold

        for entry in entries:
            if entry.is_live:
                if entry.silent_for(now) > threshold:
                    result.to_stale.append(entry)
                else:
                    result.to_ping.append(entry)
            elif self._stale_client_timeout is not None:
                stale_for = entry.stale_for(now)
                if stale_for > self._stale_client_timeout:
                    result.to_evict.append((entry, stale_for))

        return result

    # =========================================================================
    # Timer
    # =========================================================================

    def start(self, callback: Callable[[], object]) -> None:
        """
        Start (or restart) the recurring timer with a tick callback.

        Must be called from a running event loop. Any previous timer is
        cancelled first, so two sweeps never run side by side.
        """
        self.on_interval(callback)

    def on_interval(self, callback: Callable[[], object]) -> None:
        """Replace the tick callback, restarting the timer."""
        loop = asyncio.get_running_loop()
        self.stop()
        self._callback = callback
        self._task = loop.create_task(self._run(callback), name="presence_heartbeat")
        logger.debug("Heartbeat timer started", ping_interval=self._ping_interval)

    def stop(self) -> None:
        """Cancel the timer. Idempotent."""
        task, self._task = self._task, None
        self._callback = None
        if task is not None and not task.done():
            task.cancel()
            logger.debug("Heartbeat timer stopped")

    async def _run(self, callback: Callable[[], object]) -> None:
        while True:
            try:
                await asyncio.sleep(self._ping_interval)
            except asyncio.CancelledError:
                break
            try:
                callback()
            except Exception as e:
                logger.error(
                    "Heartbeat sweep failed",
                    error=type(e).__name__,
                    message=str(e),
                    exc_info=True,
                )
