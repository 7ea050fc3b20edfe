"""
Presence Gateway.

Tracks which peers are connected, which of them are still alive and which
are actively in use, and keeps every live peer informed of the counts.

Usage:
    from presence_gateway import ConnectionManager, PeerClient, create_channel_pair

    manager = ConnectionManager(on_message=handle_message)
    registry_end, peer_end = create_channel_pair("tab-1")
    manager.handle_connect(registry_end)
    client = PeerClient(peer_end, on_message=render)
"""

from presence_gateway.connection_manager import ConnectionManager
from presence_gateway.client import PeerClient
from presence_gateway.components.connection import (
    CancellationScope,
    Channel,
    ConnectionEntry,
    ConnectionStatus,
    MemoryChannel,
    create_channel_pair,
)
from presence_gateway.components.core.constants import MessageType

__all__ = [
    "ConnectionManager",
    "PeerClient",
    "CancellationScope",
    "Channel",
    "ConnectionEntry",
    "ConnectionStatus",
    "MemoryChannel",
    "create_channel_pair",
    "MessageType",
]
