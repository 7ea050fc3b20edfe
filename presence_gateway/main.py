"""
Presence Gateway main application.

Serves the connection manager over WebSocket: every connected peer is
tracked for liveness and visibility, receives live client counts and sees
application messages relayed from the other peers.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import settings
from shared.config.logging import setup_logging, presence_gateway_logger as logger
from presence_gateway.connection_manager import ConnectionManager
from presence_gateway.components.core.constants import DEFAULT_ALLOWED_ORIGINS
from presence_gateway.components.endpoints import WebSocketChannel


def create_manager() -> ConnectionManager:
    """
    Build the gateway's connection manager.

    Application messages are relayed to every live peer; count changes
    are logged.
    """
    manager: ConnectionManager

    def relay_message(peer_id: str, message) -> None:
        manager.broadcast(message)

    def log_counts(active: int, total: int) -> None:
        logger.info("Presence changed", active_clients=active, total_clients=total)

    manager = ConnectionManager(
        on_message=relay_message,
        on_active_count_change=log_counts,
    )
    return manager


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Creates the connection manager and starts its heartbeat; destroys it
    (closing every peer) on shutdown.
    """
    setup_logging()
    logger.info(
        "Starting Presence Gateway",
        port=settings.presence_gateway_port,
        env=settings.environment,
    )

    manager = create_manager()
    manager.start()
    app.state.manager = manager

    yield

    logger.info("Shutting down Presence Gateway")
    manager.destroy()


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Presence Gateway",
    description="Connection liveness and membership tracking",
    version="0.1.0",
    lifespan=lifespan,
)

# Add HTTPS variants for production
DEFAULT_WS_ORIGINS = list(DEFAULT_ALLOWED_ORIGINS) + [
    origin.replace("http://", "https://") for origin in DEFAULT_ALLOWED_ORIGINS
]

ws_allowed_origins = (
    [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.allowed_origins
    else DEFAULT_WS_ORIGINS
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ws_allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# =============================================================================
# Health Check
# =============================================================================


@app.get("/ws/health")
def health_check():
    """Health check with connection statistics."""
    manager: ConnectionManager | None = getattr(app.state, "manager", None)
    if manager is None:
        stats = {"error": "manager_unavailable"}
    else:
        try:
            stats = manager.get_stats()
        except Exception as e:
            logger.warning("Failed to get stats in health check", error=str(e))
            stats = {"error": "stats_unavailable"}
    return {
        "status": "healthy",
        "service": "presence-gateway",
        "version": app.version,
        "environment": settings.environment,
        **stats,
    }


# =============================================================================
# WebSocket Endpoints
# =============================================================================


@app.websocket("/ws/presence")
async def presence_websocket(websocket: WebSocket):
    """
    WebSocket endpoint for presence peers.

    The connection stays open until the peer sends the disconnect control
    message, is evicted, the transport drops or the gateway shuts down.
    """
    await websocket.accept()
    channel = WebSocketChannel(websocket)

    manager: ConnectionManager = websocket.app.state.manager
    peer_id = manager.handle_connect(channel)
    if peer_id is not None:
        logger.debug("Presence peer attached", peer_id=peer_id, channel=channel.name)

    await channel.wait_closed()


# =============================================================================
# Development entry point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "presence_gateway.main:app",
        host="0.0.0.0",
        port=settings.presence_gateway_port,
        reload=True,
    )
