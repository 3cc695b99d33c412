"""Unit tests for BroadcastHub using mock sockets."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from src.ms_broadcast.hub import BroadcastHub


def _socket(fail: bool = False) -> MagicMock:
    ws = MagicMock()
    ws.send_json = AsyncMock(side_effect=RuntimeError("closed") if fail else None)
    return ws


class TestFanOut:
    async def test_market_events_reach_everyone(self) -> None:
        hub = BroadcastHub()
        a, b = _socket(), _socket()
        hub.register(a, "guest-aaaa")
        hub.register(b)

        sent = await hub.fan_out("pricesUpdated", {"skipCount": 1})

        assert sent == 2
        a.send_json.assert_awaited_once_with({"type": "pricesUpdated", "data": {"skipCount": 1}})
        b.send_json.assert_awaited_once()

    async def test_account_events_are_guest_scoped(self) -> None:
        hub = BroadcastHub()
        mine, other, anonymous = _socket(), _socket(), _socket()
        hub.register(mine, "guest-mine")
        hub.register(other, "guest-other")
        hub.register(anonymous)

        sent = await hub.fan_out("accountUpdated", {"guestId": "guest-mine", "account": {}})

        assert sent == 1
        mine.send_json.assert_awaited_once()
        other.send_json.assert_not_awaited()
        anonymous.send_json.assert_not_awaited()

    async def test_failed_send_drops_viewer(self) -> None:
        hub = BroadcastHub()
        good, dead = _socket(), _socket(fail=True)
        hub.register(good)
        hub.register(dead)

        assert await hub.fan_out("activityUpdated", {"activityFeed": []}) == 1
        assert hub.connection_count == 1

    async def test_unregister_twice_is_harmless(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        hub.register(ws)
        hub.unregister(ws)
        hub.unregister(ws)
        assert hub.connection_count == 0


class TestPublish:
    async def test_publish_schedules_send(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        hub.register(ws)

        hub.publish("pricesUpdated", {"skipCount": 2})
        for _ in range(5):
            await asyncio.sleep(0)

        ws.send_json.assert_awaited_once_with({"type": "pricesUpdated", "data": {"skipCount": 2}})

    def test_publish_without_loop_is_noop(self) -> None:
        hub = BroadcastHub()
        ws = _socket()
        hub.register(ws)
        hub.publish("pricesUpdated", {})
        ws.send_json.assert_not_called()

    async def test_publish_without_viewers_is_noop(self) -> None:
        hub = BroadcastHub()
        hub.publish("pricesUpdated", {})
        assert hub._tasks == set()

    async def test_engine_listener_wiring(self, engine) -> None:
        hub = BroadcastHub()
        ws = _socket()
        hub.register(ws, "guest-wired")
        engine.add_listener(hub.publish)

        engine.deposit("guest-wired", 10)
        for _ in range(5):
            await asyncio.sleep(0)

        types = [call.args[0]["type"] for call in ws.send_json.await_args_list]
        assert types == ["accountUpdated", "activityUpdated"]
