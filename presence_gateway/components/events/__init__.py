"""
Inbound message classification.
"""

from presence_gateway.components.events.router import (
    MessageKind,
    MessageRouter,
    classify_message,
    read_visibility,
)

__all__ = [
    "MessageKind",
    "MessageRouter",
    "classify_message",
    "read_visibility",
]
