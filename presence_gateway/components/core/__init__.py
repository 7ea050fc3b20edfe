"""
Core components: constants and message helpers.
"""

from presence_gateway.components.core.constants import (
    INTERNAL_MESSAGE_PREFIX,
    MessageType,
    WSCloseCode,
    PresenceConstants,
    DEFAULT_ALLOWED_ORIGINS,
    is_internal_message,
    get_message_type,
    create_internal_message,
)

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
