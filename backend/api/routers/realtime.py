from typing import Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session

from infra.database.connection import get_session
from app.services.band_scope import BandScope
from app.services.realtime_service import realtime_service
from domain.errors import ForbiddenError
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

def _websocket_user_id(websocket: WebSocket) -> Optional[str]:
    # ブラウザの WebSocket はヘッダーを付けられないので query でも受ける
    return websocket.headers.get("x-user-id") or websocket.query_params.get("user_id")

@router.websocket("/ws/bands/{band_id}")
async def band_updates(websocket: WebSocket, band_id: str, session: Session = Depends(get_session)):
    user_id = _websocket_user_id(websocket)
    if not user_id:
        logger.warning(f"Realtime connection refused: no user for band {band_id}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    try:
        BandScope(session, user_id).require_band_membership(band_id)
    except ForbiddenError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await realtime_service.connect(band_id, websocket)
    try:
        while True:
            # クライアントからのメッセージは使わない (keep-alive のみ)
            await websocket.receive_text()
    except WebSocketDisconnect:
        realtime_service.disconnect(band_id, websocket)
        logger.info(f"Realtime client disconnected from band {band_id}")
