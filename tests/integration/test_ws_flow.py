"""WebSocket /ws flow tests.

The hub fixture wires a fresh engine onto app.state; TestClient is used
without its context manager so the lifespan (file-backed engine) never runs.
"""

from starlette.testclient import TestClient

from src.main import app


def _receive_until(ws, frame_type: str, limit: int = 10) -> dict:
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["type"] == frame_type:
            return frame
    raise AssertionError(f"no {frame_type} frame received")


class TestWebSocket:
    def test_connect_receives_snapshot(self, hub) -> None:
        client = TestClient(app)
        with client.websocket_connect("/ws") as ws:
            frame = ws.receive_json()
            assert frame["type"] == "pricesUpdated"
            assert set(frame["data"]["prices"]) == {"DDR5", "DDR4", "GDDR5", "GDDR6"}
            assert hub.connection_count == 1

    def test_skip_sessions_is_acknowledged(self, hub, engine) -> None:
        client = TestClient(app)
        with client.websocket_connect("/ws?guestId=guest-ws-1") as ws:
            ws.receive_json()
            ws.send_json({"type": "skipSessionsAll", "count": 2, "ackId": "a1"})
            ack = _receive_until(ws, "ack")
            assert ack == {"type": "ack", "ackId": "a1", "ok": True, "skippedSessions": 2}
        assert engine.clock.skip_count == 2

    def test_update_price_broadcasts(self, hub, engine) -> None:
        client = TestClient(app)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "updatePrice", "ticker": "GDDR5", "price": 9.5})
            frame = _receive_until(ws, "pricesUpdated")
            assert frame["data"]["prices"]["GDDR5"] == engine.prices.current_price("GDDR5")
        assert engine.prices.history("GDDR5")[-1].source.value == "manual"

    def test_bad_messages_get_error_frames(self, hub) -> None:
        client = TestClient(app)
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            assert ws.receive_json()["code"] == 1001
            ws.send_json({"type": "updatePrice", "ticker": "DDR5", "price": -1})
            assert ws.receive_json()["type"] == "error"
            ws.send_json({"type": "updatePrice", "ticker": "HBM3", "price": 10})
            assert ws.receive_json()["code"] == 3001
