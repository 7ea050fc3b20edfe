"""
Message Router - classifies inbound payloads from peers.

Reserved control messages are dispatched to their callbacks; everything
else (including payloads with no ``type`` and an inbound ping, which only
the remote end ever answers) is an application message and passes through
unmodified. The router itself holds no state and mutates nothing.

Usage:
    router = MessageRouter(
        on_visibility_change=manager_visibility,
        on_disconnect=manager_disconnect,
        on_pong=manager_pong,
        on_app_message=manager_app_message,
    )
    kind = router.route(peer_id, payload)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Mapping

from presence_gateway.components.core.constants import MessageType, get_message_type


class MessageKind(str, Enum):
    """What an inbound payload was classified as."""

    VISIBILITY_CHANGE = "visibility_change"
    DISCONNECT = "disconnect"
    PONG = "pong"
    APPLICATION = "application"


def classify_message(data: Any) -> MessageKind:
    """Classify a payload by its ``type`` field alone."""
    message_type = get_message_type(data)

    if message_type == MessageType.VISIBILITY_CHANGE:
        return MessageKind.VISIBILITY_CHANGE
    if message_type == MessageType.DISCONNECT:
        return MessageKind.DISCONNECT
    if message_type == MessageType.PONG:
        return MessageKind.PONG
    return MessageKind.APPLICATION


def read_visibility(data: Any) -> bool:
    """Visibility carried by a visibility-change message; missing means visible."""
    if isinstance(data, Mapping):
        visible = data.get("visible")
        if visible is not None:
            return bool(visible)
    return True


class MessageRouter:
    """
    Routes inbound peer payloads to control or application callbacks.

    Any callback may be omitted; the payload is then classified and dropped.
    """

    def __init__(
        self,
        on_visibility_change: Callable[[str, bool], None] | None = None,
        on_disconnect: Callable[[str], None] | None = None,
        on_pong: Callable[[str], None] | None = None,
        on_app_message: Callable[[str, Any], None] | None = None,
    ) -> None:
        self._on_visibility_change = on_visibility_change
        self._on_disconnect = on_disconnect
        self._on_pong = on_pong
        self._on_app_message = on_app_message

    def route(self, peer_id: str, data: Any) -> MessageKind:
        """
        Dispatch one payload.

        Args:
            peer_id: Id of the peer the payload came from.
            data: The payload as received.

        Returns:
            The classification used for dispatch.
        """
        kind = classify_message(data)

        if kind is MessageKind.VISIBILITY_CHANGE:
            if self._on_visibility_change is not None:
                self._on_visibility_change(peer_id, read_visibility(data))
        elif kind is MessageKind.DISCONNECT:
            if self._on_disconnect is not None:
                self._on_disconnect(peer_id)
        elif kind is MessageKind.PONG:
            if self._on_pong is not None:
                self._on_pong(peer_id)
        elif self._on_app_message is not None:
            self._on_app_message(peer_id, data)

        return kind
