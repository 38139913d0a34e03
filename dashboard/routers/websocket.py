# dashboard/routers/websocket.py
from fastapi import APIRouter, WebSocket

from dashboard.config import settings

router = APIRouter(tags=["websocket"])


@router.websocket(settings.WS_PATH)
async def live_updates(websocket: WebSocket):
    """Push channel: `snapshot` on connect, then `update` per appended snapshot."""
    await websocket.app.state.channel.serve(websocket)
