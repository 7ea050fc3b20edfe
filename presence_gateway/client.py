"""
Peer-side client for a presence gateway channel.

Wraps the peer end of a channel: answers pings, keeps reserved control
traffic away from the application and reports the peer's own visibility
changes and departure.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

from shared.config.logging import LOG_LEVELS, LogEntry, get_logger
from presence_gateway.components.core.constants import (
    MessageType,
    create_internal_message,
    get_message_type,
    is_internal_message,
)

if TYPE_CHECKING:
    from presence_gateway.components.connection.channel import Channel

logger = get_logger(__name__)


class PeerClient:
    """
    Client wrapper around one channel end.

    - Reserved ``ping`` messages are answered with ``pong`` automatically.
    - Other reserved messages never reach ``on_message``; ``client-count``
      updates are recorded and forwarded to ``on_client_count``.
    - Everything else is handed to ``on_message`` unchanged.

    Usage:
        registry_end, peer_end = create_channel_pair("tab-1")
        manager.handle_connect(registry_end)
        client = PeerClient(peer_end, on_message=print)
        client.set_visible(False)
        client.disconnect()
    """

    def __init__(
        self,
        channel: "Channel",
        on_message: Callable[[Any], None],
        *,
        on_log: Callable[[LogEntry], None] | None = None,
        visible: bool = True,
        on_client_count: Callable[[int, int], None] | None = None,
    ) -> None:
        self._channel = channel
        self._on_message = on_message
        self._on_log = on_log
        self._on_client_count = on_client_count
        self._visible = visible
        self._closed = False

        self.total_count: int | None = None
        self.active_count: int | None = None

        self._unsubscribe = channel.add_listener(self._handle_message)
        channel.start()

        self._log("Connected to presence gateway", "info")
        if not visible:
            # Registration assumes visible
            self._send_visibility()

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: Any) -> None:
        """Send an application message to the registry side."""
        if self._closed:
            self._log("Send after close dropped", "warning", message_type=get_message_type(message))
            return
        self._send(message)

    def disconnect(self) -> None:
        """Announce departure and detach from the channel."""
        if self._closed:
            return
        self._send(create_internal_message(MessageType.DISCONNECT))
        self._log("Disconnected from presence gateway", "info")
        self._detach()

    def close(self) -> None:
        """Detach and close the channel without announcing departure."""
        if self._closed:
            return
        self._detach()
        try:
            self._channel.close()
        except Exception as e:
            logger.debug("Failed to close channel: %s", str(e))

    def is_visible(self) -> bool:
        return self._visible

    def set_visible(self, visible: bool) -> bool:
        """
        Update this peer's visibility.

        The registry is only notified on an actual change.

        Returns:
            True if the visibility changed.
        """
        visible = bool(visible)
        if visible == self._visible:
            return False
        self._visible = visible
        self._log("Visibility changed", "info", visible=visible)
        if not self._closed:
            self._send_visibility()
        return True

    def _send_visibility(self) -> None:
        self._send(create_internal_message(MessageType.VISIBILITY_CHANGE, visible=self._visible))

    def _send(self, message: Any) -> bool:
        """Send on the channel; a closed or failing channel drops the message."""
        try:
            self._channel.send(message)
        except Exception as e:
            self._log(
                "Send failed, message dropped",
                "warning",
                message_type=get_message_type(message),
                error=type(e).__name__,
                detail=str(e),
            )
            return False
        return True

    def _detach(self) -> None:
        self._closed = True
        self._unsubscribe()

    def _handle_message(self, data: Any) -> None:
        message_type = get_message_type(data)

        if message_type == MessageType.PING:
            self._log("Received ping, sending pong", "debug")
            self._send(create_internal_message(MessageType.PONG))
            return

        if message_type == MessageType.CLIENT_COUNT:
            self.total_count = data.get("total")
            self.active_count = data.get("active")
            if self._on_client_count is not None:
                self._run_callback("client_count", self._on_client_count, self.total_count, self.active_count)
            return

        if is_internal_message(data):
            return

        self._run_callback("message", self._on_message, data)

    def _run_callback(self, name: str, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as e:
            self._log(
                "Client callback failed",
                "error",
                callback=name,
                error=type(e).__name__,
                detail=str(e),
                exc_info=True,
            )

    def _log(self, message: str, level: str, **context: Any) -> None:
        exc_info = context.pop("exc_info", None)
        getattr(logger, level if level in LOG_LEVELS else "info")(message, exc_info=exc_info, **context)
        if self._on_log is None:
            return
        try:
            self._on_log(LogEntry(message=message, level=level, context=context, source="PeerClient"))
        except Exception as e:
            logger.error("Log callback failed", error=type(e).__name__, detail=str(e))
