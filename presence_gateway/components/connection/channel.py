"""
Channel abstraction and the in-process channel pair.

A channel is the opaque bidirectional transport behind one peer. The core
only ever calls ``send``, ``add_listener``, ``start`` and ``close`` on it;
how frames actually travel is the adapter's business.
"""

from __future__ import annotations

import asyncio
import copy
from collections import deque
from typing import Any, Callable, Protocol, runtime_checkable

from shared.config.logging import get_logger
from shared.utils.exceptions import ChannelClosedError

logger = get_logger(__name__)

MessageListener = Callable[[Any], None]


@runtime_checkable
class Channel(Protocol):
    """Bidirectional message channel handed to the registry for one peer."""

    def send(self, message: Any) -> None:
        """Queue a message for the remote end. Must not block."""
        ...

    def add_listener(self, listener: MessageListener) -> Callable[[], None]:
        """Subscribe to inbound messages. Returns an unsubscribe handle."""
        ...

    def start(self) -> None:
        """Begin dispatching inbound messages to listeners."""
        ...

    def close(self) -> None:
        """Close this end of the channel. Idempotent."""
        ...


class ListenerSet:
    """
    Inbound listener bookkeeping shared by channel implementations.

    Dispatch works on a snapshot, so a listener may unsubscribe itself (or
    close the channel) while a message is being delivered.
    """

    def __init__(self, owner: str = "") -> None:
        self._owner = owner
        self._listeners: list[MessageListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: MessageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def clear(self) -> None:
        self._listeners.clear()

    def dispatch(self, message: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception as e:
                logger.error(
                    "Channel listener failed",
                    channel=self._owner,
                    error=type(e).__name__,
                    message=str(e),
                    exc_info=True,
                )


class MemoryChannel:
    """
    One end of an in-process channel pair.

    Behaves like a browser MessagePort:
    - Delivery is scheduled on the running event loop, never re-entrant.
    - Messages arriving before start() are buffered and flushed on start.
    - Messages are deep-copied so both ends never share mutable state.
    - Sending on a closed end raises ChannelClosedError; sending towards a
      closed remote end is silently dropped.

    Use create_channel_pair() to build a connected pair.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._remote: MemoryChannel | None = None
        self._listeners = ListenerSet(owner=name)
        self._buffer: deque[Any] = deque()
        self._started = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def started(self) -> bool:
        return self._started

    @property
    def listener_count(self) -> int:
        """Number of attached inbound listeners."""
        return len(self._listeners)

    def send(self, message: Any) -> None:
        if self._closed:
            raise ChannelClosedError(channel=self.name)

        remote = self._remote
        if remote is None or remote._closed:
            logger.debug("Remote end closed, message dropped", channel=self.name)
            return

        loop = asyncio.get_running_loop()
        loop.call_soon(remote._deliver, copy.deepcopy(message))

    def add_listener(self, listener: MessageListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def start(self) -> None:
        if self._started or self._closed:
            return
        self._started = True
        if self._buffer:
            asyncio.get_running_loop().call_soon(self._flush)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()
        self._buffer.clear()

    def _deliver(self, message: Any) -> None:
        if self._closed:
            return
        if not self._started:
            self._buffer.append(message)
            return
        self._listeners.dispatch(message)

    def _flush(self) -> None:
        while self._buffer and not self._closed:
            self._listeners.dispatch(self._buffer.popleft())

    def __repr__(self) -> str:
        return f"MemoryChannel({self.name!r}, closed={self._closed})"


def create_channel_pair(name: str = "channel") -> tuple[MemoryChannel, MemoryChannel]:
    """
    Create two connected in-process channel ends.

    Returns:
        (registry_end, peer_end): hand the first to ConnectionManager.handle_connect
        and the second to a PeerClient.
    """
    left = MemoryChannel(f"{name}:registry")
    right = MemoryChannel(f"{name}:peer")
    left._remote = right
    right._remote = left
    return left, right
