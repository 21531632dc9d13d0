import time
from typing import Any, Dict, List
from fastapi import WebSocket

from utils.logger import get_logger

logger = get_logger(__name__)

class BandRealtimeService:
    """バンド単位の WebSocket 接続を管理し、更新イベントを配信する。"""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, band_id: str, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.setdefault(band_id, []).append(websocket)
        await websocket.send_json({
            "type": "connected",
            "bandId": band_id,
            "timestamp": int(time.time() * 1000),
        })

    def disconnect(self, band_id: str, websocket: WebSocket):
        connections = self.active_connections.get(band_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(band_id, None)

    def connection_count(self, band_id: str) -> int:
        return len(self.active_connections.get(band_id, []))

    async def broadcast(self, band_id: str, message: Dict[str, Any]):
        # 送信中に disconnect されてもよいようにスナップショットで回す
        for connection in list(self.active_connections.get(band_id, [])):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.info(f"Dropping realtime connection for band {band_id}: {e}")
                self.disconnect(band_id, connection)

def setlist_event(action: str, band_id: str, setlist_id: str, **extra: Any) -> Dict[str, Any]:
    payload = {
        "type": "setlist_updated",
        "action": action,
        "bandId": band_id,
        "setlistId": setlist_id,
        "timestamp": int(time.time() * 1000),
    }
    payload.update(extra)
    return payload

realtime_service = BandRealtimeService()
