"""
Connection Broadcaster.

Delivers messages to registered peers. Only LIVE entries receive
broadcasts; a failure on one channel is logged and counted but never
interrupts delivery to the others.
"""

from __future__ import annotations

from typing import Any, TYPE_CHECKING

from shared.config.logging import get_logger
from presence_gateway.components.core.constants import get_message_type

if TYPE_CHECKING:
    from presence_gateway.components.connection.entry import ConnectionEntry
    from presence_gateway.components.connection.registry import ConnectionRegistry
    from presence_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionBroadcaster:
    """
    Handles sending messages to peer channels.

    Responsibilities:
    - Send to an individual entry, isolating channel failures
    - Broadcast to every LIVE entry
    - Address a single peer by id
    """

    def __init__(
        self,
        registry: "ConnectionRegistry",
        metrics: "MetricsCollector",
    ) -> None:
        """
        Initialize broadcaster with dependencies.

        Args:
            registry: Registry to read recipients from
            metrics: Collects broadcast metrics
        """
        self._registry = registry
        self._metrics = metrics

    def send(self, entry: "ConnectionEntry", message: Any) -> bool:
        """
        Send a message on one entry's channel.

        Returns:
            True if the channel accepted the message, False if it raised.
        """
        try:
            entry.channel.send(message)
            return True
        except Exception as e:
            logger.warning(
                "Failed to deliver message to client",
                peer_id=entry.id,
                message_type=get_message_type(message),
                error=type(e).__name__,
                detail=str(e),
            )
            return False

    def broadcast(self, message: Any) -> int:
        """
        Send a message to every LIVE entry.

        Stale entries are skipped. The recipient list is snapshotted before
        sending so registry changes during delivery do not affect this call.

        Returns:
            Number of peers the message was delivered to.
        """
        recipients = [entry for entry in self._registry.list() if entry.is_live]

        sent = 0
        for entry in recipients:
            if self.send(entry, message):
                sent += 1

        failed = len(recipients) - sent
        self._metrics.record_broadcast(recipients=len(recipients), failed=failed)
        if failed:
            logger.warning(
                "Broadcast completed with failures",
                message_type=get_message_type(message),
                recipients=len(recipients),
                failed=failed,
            )
        return sent

    def send_to(self, peer_id: str, message: Any) -> bool:
        """
        Send a message to one peer by id.

        Sending to a peer that is no longer registered is logged and dropped.

        Returns:
            True if delivered, False if the peer is unknown or the send failed.
        """
        entry = self._registry.get(peer_id)
        if entry is None:
            logger.warning(
                "Send to removed client dropped",
                peer_id=peer_id,
                message_type=get_message_type(message),
            )
            return False

        if self.send(entry, message):
            return True
        self._metrics.record_send_failure()
        return False
