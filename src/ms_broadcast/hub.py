"""BroadcastHub — fire-and-forget fan-out of engine events to WebSocket viewers.

The engine calls publish() synchronously after a mutation has been
persisted. publish() only schedules the sends; a slow or dead viewer can
never block or fail the operation that produced the event.

Frame format: {"type": <event>, "data": <payload>}
"""

import asyncio
import logging
from typing import Any

from starlette.websockets import WebSocket

logger = logging.getLogger(__name__)

# Events delivered only to the sockets of the guest named in the payload.
GUEST_SCOPED_EVENTS = frozenset({"accountUpdated"})


class BroadcastHub:
    def __init__(self) -> None:
        self._connections: dict[WebSocket, str | None] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register(self, ws: WebSocket, guest_id: str | None = None) -> None:
        self._connections[ws] = guest_id
        logger.info("Viewer connected (total: %d)", self.connection_count)

    def unregister(self, ws: WebSocket) -> None:
        if ws in self._connections:
            del self._connections[ws]
            logger.info("Viewer disconnected (total: %d)", self.connection_count)

    def _targets(self, event: str, payload: dict[str, Any]) -> list[WebSocket]:
        if event in GUEST_SCOPED_EVENTS:
            guest_id = payload.get("guestId")
            return [ws for ws, g in self._connections.items() if g == guest_id]
        return list(self._connections)

    async def send(self, ws: WebSocket, frame: dict[str, Any]) -> bool:
        try:
            await ws.send_json(frame)
        except Exception as e:  # noqa: BLE001
            logger.debug("Dropping viewer after send failure: %s", e)
            self.unregister(ws)
            return False
        return True

    async def fan_out(self, event: str, payload: dict[str, Any]) -> int:
        frame = {"type": event, "data": payload}
        targets = self._targets(event, payload)
        results = await asyncio.gather(*(self.send(ws, frame) for ws in targets))
        return sum(results)

    def publish(self, event: str, payload: dict[str, Any]) -> None:
        """Engine listener. Schedules fan_out on the running loop, if any."""
        if not self._connections:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; %s not broadcast", event)
            return
        task = loop.create_task(self.fan_out(event, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
