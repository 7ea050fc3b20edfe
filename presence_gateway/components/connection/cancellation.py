"""
Cancellation scope for per-connection cleanup.

A scope collects cleanup callbacks (detach the inbound listener, close the
channel) and runs them exactly once when the owning entry leaves the
registry, whichever path removed it.
"""

from __future__ import annotations

from typing import Callable

from shared.config.logging import get_logger

logger = get_logger(__name__)


class CancellationScope:
    """
    One-shot cancellation token with registered cleanup callbacks.

    Callbacks run in reverse registration order so later resources are
    released before the ones they depend on. A failing callback is logged
    and does not stop the remaining ones.

    Usage:
        scope = CancellationScope()
        scope.add_callback(channel.add_listener(on_message))
        scope.add_callback(channel.close)
        ...
        scope.cancel()  # detaches the listener, closes the channel
    """

    def __init__(self, name: str = "") -> None:
        self._name = name
        self._callbacks: list[Callable[[], object]] = []
        self._cancelled = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has already run."""
        return self._cancelled

    def add_callback(self, callback: Callable[[], object]) -> None:
        """
        Register a cleanup callback.

        If the scope is already cancelled the callback runs immediately,
        so late registrations can never leak.
        """
        if self._cancelled:
            self._run(callback)
            return
        self._callbacks.append(callback)

    def cancel(self) -> bool:
        """
        Fire the scope.

        Returns:
            True if this call cancelled the scope, False if it was already cancelled.
        """
        if self._cancelled:
            return False
        self._cancelled = True

        callbacks, self._callbacks = self._callbacks, []
        for callback in reversed(callbacks):
            self._run(callback)
        return True

    def _run(self, callback: Callable[[], object]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning(
                "Cancellation callback failed",
                scope=self._name,
                error=type(e).__name__,
                message=str(e),
            )

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else "active"
        return f"CancellationScope({self._name!r}, {state})"
