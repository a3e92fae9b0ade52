import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_farm_access, resolve_user
from app.services.realtime import rooms


logger = logging.getLogger("farmplan.realtime")

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/farms/{farm_id}")
async def farm_socket(
    websocket: WebSocket,
    farm_id: int,
    user_id: int | None = None,
    db: Session = Depends(get_db),
) -> None:
    try:
        user = resolve_user(db, user_id)
        require_farm_access(db, user, farm_id)
    except HTTPException as exc:
        logger.warning("Rejected socket for farm %s: %s", farm_id, exc.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        db.close()

    await rooms.join(farm_id, websocket)
    try:
        while True:
            # Clients only listen; inbound frames keep the connection alive.
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("Socket disconnected from farm %s", farm_id)
    finally:
        rooms.leave(farm_id, websocket)
