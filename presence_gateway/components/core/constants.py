"""
Presence Gateway Constants.

Reserved control message types, close codes and operational defaults.
Every control type lives under a namespace prefix that ordinary application
payloads never use, so the core can tell its own traffic apart from the
host's messages without inspecting anything but the ``type`` field.
"""

from enum import IntEnum
from typing import Any, Final, Mapping

__all__ = [
    "INTERNAL_MESSAGE_PREFIX",
    "MessageType",
    "WSCloseCode",
    "PresenceConstants",
    "DEFAULT_ALLOWED_ORIGINS",
    "is_internal_message",
    "get_message_type",
    "create_internal_message",
]


# Prefix shared by every reserved control message type
INTERNAL_MESSAGE_PREFIX: Final[str] = "@presence-gateway/"


class MessageType:
    """
    Reserved control message types.

    PING and CLIENT_COUNT travel registry -> peer.
    PONG, VISIBILITY_CHANGE and DISCONNECT travel peer -> registry.
    """

    PING: Final[str] = f"{INTERNAL_MESSAGE_PREFIX}ping"
    PONG: Final[str] = f"{INTERNAL_MESSAGE_PREFIX}pong"
    VISIBILITY_CHANGE: Final[str] = f"{INTERNAL_MESSAGE_PREFIX}visibility-change"
    DISCONNECT: Final[str] = f"{INTERNAL_MESSAGE_PREFIX}disconnect"
    CLIENT_COUNT: Final[str] = f"{INTERNAL_MESSAGE_PREFIX}client-count"


class WSCloseCode(IntEnum):
    """
    WebSocket close codes used by the gateway (RFC 6455).
    """

    NORMAL = 1000  # Normal closure, peer disconnected or was evicted
    UNSUPPORTED_DATA = 1003  # Received data type not supported
    SERVER_ERROR = 1011  # Unexpected receive failure


class PresenceConstants:
    """
    Presence gateway operational constants.

    Timing values are defaults used when neither constructor arguments nor
    settings override them. All durations are in seconds.
    """

    # DEFAULT_PING_INTERVAL: 10 seconds
    # Rationale: One sweep every 10s keeps ping traffic negligible while a
    # vanished peer is still noticed within a few tens of seconds.
    DEFAULT_PING_INTERVAL: Final[float] = 10.0

    # DEFAULT_PING_TIMEOUT: 5 seconds
    # Rationale: Extra grace on top of the interval for the pong to arrive.
    # Stale threshold is interval + timeout = 15s by default.
    DEFAULT_PING_TIMEOUT: Final[float] = 5.0

    # OUTBOUND_QUEUE_SIZE: 256 frames
    # Rationale: Covers bursts of count updates and relayed messages for a
    # slow reader. A peer that falls this far behind gets sends rejected
    # instead of growing memory without bound.
    OUTBOUND_QUEUE_SIZE: Final[int] = 256

    # CLOSE_TIMEOUT: 2 seconds
    # Rationale: Closing a WebSocket waits for the close frame; a dead TCP
    # peer must not hold the close task forever.
    CLOSE_TIMEOUT: Final[float] = 2.0

    # MAX_LOGGED_PAYLOAD: 100 characters
    # Rationale: Enough to identify a malformed frame in the logs without
    # copying peer data wholesale.
    MAX_LOGGED_PAYLOAD: Final[int] = 100


DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
)


def get_message_type(data: Any) -> str | None:
    """Return the ``type`` field of a message, or None if it has none."""
    if isinstance(data, Mapping):
        message_type = data.get("type")
        if isinstance(message_type, str):
            return message_type
    return None


def is_internal_message(data: Any) -> bool:
    """Check whether a message carries a reserved control type."""
    message_type = get_message_type(data)
    return message_type is not None and message_type.startswith(INTERNAL_MESSAGE_PREFIX)


def create_internal_message(message_type: str, **fields: Any) -> dict[str, Any]:
    """
    Build a control message.

    Args:
        message_type: One of the MessageType values.
        **fields: Extra payload fields (e.g. ``visible=False``).

    Returns:
        Message dict ready to send through a channel.

    Raises:
        ValueError: If the type is outside the reserved namespace.
    """
    if not message_type.startswith(INTERNAL_MESSAGE_PREFIX):
        raise ValueError(f"Not a reserved message type: {message_type}")
    return {"type": message_type, **fields}
