"""
Tests for the Presence Gateway ASGI application.

Tests verify:
- Health endpoint reports connection statistics
- WebSocket peers receive counts, visibility updates and relayed messages
- Malformed frames are skipped without dropping the peer
- Binary frames close the connection
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from presence_gateway.components.core.constants import MessageType, WSCloseCode
from presence_gateway.main import app


def count_message(total: int, active: int) -> dict:
    return {"type": MessageType.CLIENT_COUNT, "total": total, "active": active}


class TestHealth:
    """Tests for GET /ws/health."""

    def test_health_reports_stats(self):
        with TestClient(app) as client:
            response = client.get("/ws/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "presence-gateway"
        assert body["total_connections"] == 0
        assert body["heartbeat"]["running"] is True


class TestPresenceWebSocket:
    """Tests for WS /ws/presence."""

    def test_peer_receives_counts_and_relayed_messages(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws/presence") as ws:
                assert ws.receive_json() == count_message(1, 1)

                ws.send_json({"type": MessageType.VISIBILITY_CHANGE, "visible": False})
                assert ws.receive_json() == count_message(1, 0)

                ws.send_json({"type": "chat", "text": "hi"})
                assert ws.receive_json() == {"type": "chat", "text": "hi"}

                ws.send_json({"type": MessageType.DISCONNECT})

    def test_second_peer_updates_first(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws/presence") as first:
                assert first.receive_json() == count_message(1, 1)

                with client.websocket_connect("/ws/presence") as second:
                    assert second.receive_json() == count_message(2, 2)
                    assert first.receive_json() == count_message(2, 2)

                    second.send_json({"type": "chat", "text": "from second"})
                    assert first.receive_json() == {"type": "chat", "text": "from second"}
                    assert second.receive_json() == {"type": "chat", "text": "from second"}

                    second.send_json({"type": MessageType.DISCONNECT})

                assert first.receive_json() == count_message(1, 1)

    def test_malformed_frame_is_skipped(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws/presence") as ws:
                assert ws.receive_json() == count_message(1, 1)

                ws.send_text("{not json")
                ws.send_json({"type": "chat", "text": "still here"})

                assert ws.receive_json() == {"type": "chat", "text": "still here"}

    def test_binary_frame_closes_with_unsupported_data(self):
        with TestClient(app) as client:
            with client.websocket_connect("/ws/presence") as ws:
                assert ws.receive_json() == count_message(1, 1)

                ws.send_bytes(b"\x00\x01")

                with pytest.raises(WebSocketDisconnect) as closed:
                    ws.receive_json()
                assert closed.value.code == WSCloseCode.UNSUPPORTED_DATA

            assert client.get("/ws/health").json()["total_connections"] == 0
