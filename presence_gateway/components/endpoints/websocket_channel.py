"""
WebSocket channel adapter.

Exposes an accepted FastAPI/Starlette WebSocket through the Channel
protocol so the connection manager can own it like any other peer
channel:
- Outbound messages are JSON encoded on send() and queued; a writer task
  drains the queue so send() never blocks the caller.
- A reader task decodes inbound text frames and dispatches them to
  listeners. Malformed frames are logged and skipped; a binary frame
  closes the connection with 1003 (unsupported data).
- Losing the transport is reported to listeners as the reserved
  ``disconnect`` control message, so the peer's entry is removed through
  the normal path.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any, Callable

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.utils.exceptions import ChannelClosedError, PresenceError
from presence_gateway.components.connection.channel import ListenerSet, MessageListener
from presence_gateway.components.core.constants import (
    MessageType,
    PresenceConstants,
    WSCloseCode,
    create_internal_message,
)

logger = get_logger(__name__)


def _truncate(text: str) -> str:
    limit = PresenceConstants.MAX_LOGGED_PAYLOAD
    return text if len(text) <= limit else text[:limit] + "..."


class WebSocketChannel:
    """
    Channel backed by an accepted WebSocket.

    Usage:
        await websocket.accept()
        channel = WebSocketChannel(websocket)
        manager.handle_connect(channel)
        await channel.wait_closed()
    """

    def __init__(
        self,
        websocket: WebSocket,
        *,
        name: str | None = None,
        queue_size: int | None = None,
        close_timeout: float = PresenceConstants.CLOSE_TIMEOUT,
    ) -> None:
        """
        Initialize the adapter. The WebSocket must already be accepted.

        Args:
            websocket: Accepted WebSocket connection.
            name: Name used in logs (random if omitted).
            queue_size: Outbound frames buffered before sends are rejected.
            close_timeout: Seconds to wait for the close handshake.
        """
        self.name = name or f"ws-{uuid.uuid4().hex[:8]}"
        self._websocket = websocket
        self._close_timeout = close_timeout
        self._listeners = ListenerSet(owner=self.name)
        self._outbox: asyncio.Queue[str] = asyncio.Queue(
            maxsize=queue_size or settings.presence_outbound_queue_size
        )
        self._reader: asyncio.Task | None = None
        self._writer: asyncio.Task | None = None
        self._shutdown_task: asyncio.Task | None = None
        self._closed_event = asyncio.Event()
        self._started = False
        self._closed = False
        self._close_code = WSCloseCode.NORMAL

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def started(self) -> bool:
        return self._started

    @property
    def pending(self) -> int:
        """Outbound frames not yet written."""
        return self._outbox.qsize()

    # =========================================================================
    # Channel protocol
    # =========================================================================

    def send(self, message: Any) -> None:
        """
        Queue a message for the peer.

        Raises:
            ChannelClosedError: If the channel is closed.
            PresenceError: If the outbound queue is full.
            TypeError: If the message is not JSON serializable.
        """
        if self._closed:
            raise ChannelClosedError(channel=self.name)

        frame = json.dumps(message)
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            raise PresenceError(
                "Outbound queue full",
                channel=self.name,
                queue_size=self._outbox.maxsize,
            ) from None

    def add_listener(self, listener: MessageListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def start(self) -> None:
        """Start the reader and writer tasks on the running loop."""
        if self._started or self._closed:
            return
        self._started = True
        loop = asyncio.get_running_loop()
        self._reader = loop.create_task(self._read_loop(), name=f"{self.name}_reader")
        self._writer = loop.create_task(self._write_loop(), name=f"{self.name}_writer")

    def close(self) -> None:
        """
        Close the channel and the underlying WebSocket. Idempotent.

        Listeners are detached immediately; the close handshake runs in
        the background, use wait_closed() to wait for it.
        """
        if self._closed:
            return
        self._closed = True
        self._listeners.clear()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._closed_event.set()
            return
        self._shutdown_task = loop.create_task(self._shutdown(), name=f"{self.name}_shutdown")

    async def wait_closed(self) -> None:
        """Wait until the channel is closed and the WebSocket released."""
        await self._closed_event.wait()

    # =========================================================================
    # Tasks
    # =========================================================================

    async def _read_loop(self) -> None:
        try:
            while not self._closed:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", WSCloseCode.NORMAL))

                text = message.get("text")
                if text is None:
                    logger.warning(
                        "Binary frame rejected",
                        channel=self.name,
                        size=len(message.get("bytes") or b""),
                    )
                    self._close_code = WSCloseCode.UNSUPPORTED_DATA
                    break

                try:
                    data = json.loads(text)
                except json.JSONDecodeError:
                    logger.warning(
                        "Malformed frame skipped",
                        channel=self.name,
                        payload=_truncate(text),
                    )
                    continue
                self._listeners.dispatch(data)
        except WebSocketDisconnect as e:
            logger.debug("WebSocket disconnected by peer", channel=self.name, code=e.code)
        except Exception as e:
            logger.warning(
                "WebSocket receive failed",
                channel=self.name,
                error=type(e).__name__,
                detail=str(e),
            )
            self._close_code = WSCloseCode.SERVER_ERROR
        self._transport_lost()

    async def _write_loop(self) -> None:
        try:
            while True:
                frame = await self._outbox.get()
                await self._websocket.send_text(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(
                "WebSocket send failed",
                channel=self.name,
                error=type(e).__name__,
                detail=str(e),
            )
            self._transport_lost()

    def _transport_lost(self) -> None:
        if self._closed:
            return
        # Listeners remove the peer, which closes this channel
        self._listeners.dispatch(create_internal_message(MessageType.DISCONNECT))
        self.close()

    async def _shutdown(self) -> None:
        current = asyncio.current_task()
        tasks = [task for task in (self._reader, self._writer) if task is not None and task is not current]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        websocket = self._websocket
        if (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        ):
            try:
                await asyncio.wait_for(
                    websocket.close(code=self._close_code),
                    timeout=self._close_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("WebSocket close timed out", channel=self.name)
            except Exception as e:
                logger.debug("WebSocket close failed", channel=self.name, detail=str(e))

        self._closed_event.set()
        logger.debug("WebSocket channel closed", channel=self.name)

    def __repr__(self) -> str:
        return f"WebSocketChannel({self.name!r}, closed={self._closed})"
