from __future__ import annotations

import logging
from collections import defaultdict

from fastapi import WebSocket, WebSocketDisconnect


logger = logging.getLogger("farmplan.realtime")


class FarmRooms:
    """In-process fan-out of grid edits to every socket watching a farm."""

    def __init__(self) -> None:
        self._rooms: dict[int, set[WebSocket]] = defaultdict(set)

    async def join(self, farm_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        self._rooms[farm_id].add(websocket)
        logger.info("Socket joined farm %s (%s connected)", farm_id, len(self._rooms[farm_id]))

    def leave(self, farm_id: int, websocket: WebSocket) -> None:
        room = self._rooms.get(farm_id)
        if room is None:
            return
        room.discard(websocket)
        if not room:
            self._rooms.pop(farm_id, None)

    def connection_count(self, farm_id: int) -> int:
        return len(self._rooms.get(farm_id, ()))

    async def broadcast(self, farm_id: int, message: dict) -> int:
        delivered = 0
        for websocket in list(self._rooms.get(farm_id, ())):
            try:
                await websocket.send_json(message)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError, OSError):
                logger.warning("Dropping dead socket for farm %s", farm_id)
                self.leave(farm_id, websocket)
        return delivered


rooms = FarmRooms()


def cell_change_event(
    *,
    fiscal_year: int,
    month: str,
    category_code: str,
    per_unit: dict[str, float],
    accounting: dict[str, float],
) -> dict:
    return {
        "type": "cell_change",
        "fiscal_year": fiscal_year,
        "month": month,
        "category_code": category_code,
        "per_unit_value": per_unit.get(category_code),
        "accounting_value": accounting.get(category_code),
        "per_unit_data": per_unit,
        "accounting_data": accounting,
    }


async def broadcast_cell_change(farm_id: int, event: dict) -> None:
    delivered = await rooms.broadcast(farm_id, event)
    logger.debug("cell_change farm=%s delivered=%s", farm_id, delivered)
