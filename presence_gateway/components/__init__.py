"""
Presence Gateway Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, control message helpers)
- connection/ - Per-peer state (entries, registry, cancellation, heartbeat, channels)
- events/     - Inbound message classification and routing
- endpoints/  - WebSocket channel adapter
- metrics/    - Counters exposed through get_stats()

New code should import from specific submodules for clarity.
"""

from presence_gateway.components.core.constants import (
    INTERNAL_MESSAGE_PREFIX,
    MessageType,
    WSCloseCode,
    PresenceConstants,
    create_internal_message,
    is_internal_message,
)
from presence_gateway.components.connection import (
    CancellationScope,
    Channel,
    MemoryChannel,
    create_channel_pair,
    ConnectionEntry,
    ConnectionStatus,
    ConnectionRegistry,
    RegistryEvent,
    HeartbeatScheduler,
    SweepResult,
)
from presence_gateway.components.events import MessageKind, MessageRouter
from presence_gateway.components.metrics import MetricsCollector

__all__ = [
    # Core
    "INTERNAL_MESSAGE_PREFIX",
    "MessageType",
    "WSCloseCode",
    "PresenceConstants",
    "create_internal_message",
    "is_internal_message",
    # Connection
    "CancellationScope",
    "Channel",
    "MemoryChannel",
    "create_channel_pair",
    "ConnectionEntry",
    "ConnectionStatus",
    "ConnectionRegistry",
    "RegistryEvent",
    "HeartbeatScheduler",
    "SweepResult",
    # Events
    "MessageKind",
    "MessageRouter",
    # Metrics
    "MetricsCollector",
]
