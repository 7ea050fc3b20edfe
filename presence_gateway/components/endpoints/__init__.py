"""
WebSocket endpoint components.

Channel adapter exposing a FastAPI WebSocket to the connection manager.
"""

from presence_gateway.components.endpoints.websocket_channel import WebSocketChannel

__all__ = [
    "WebSocketChannel",
]
