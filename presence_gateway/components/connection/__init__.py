"""
Connection management components.

Handles per-peer state: entries, registry, cancellation, heartbeat, channels.
"""

from presence_gateway.components.connection.cancellation import CancellationScope
from presence_gateway.components.connection.channel import (
    Channel,
    ListenerSet,
    MemoryChannel,
    create_channel_pair,
)
from presence_gateway.components.connection.entry import ConnectionEntry, ConnectionStatus
from presence_gateway.components.connection.registry import ConnectionRegistry, RegistryEvent
from presence_gateway.components.connection.heartbeat import HeartbeatScheduler, SweepResult

__all__ = [
    "CancellationScope",
    "Channel",
    "ListenerSet",
    "MemoryChannel",
    "create_channel_pair",
    "ConnectionEntry",
    "ConnectionStatus",
    "ConnectionRegistry",
    "RegistryEvent",
    "HeartbeatScheduler",
    "SweepResult",
]
