# backend/app/routes/v1/realtime.py
"""
WebSocket endpoints, one per namespace.

    /ws/chats          -> chat namespace
    /ws/notifications  -> notification namespace

Clients authenticate in-band with a ``login`` frame.
"""

from fastapi import APIRouter, WebSocket

from ...core.constants import CHAT_WS_PATH, NOTIFICATION_WS_PATH
from ...realtime.hub import RealtimeHub

router = APIRouter()


def _hub(websocket: WebSocket) -> RealtimeHub:
    return websocket.app.state.realtime


@router.websocket(CHAT_WS_PATH)
async def chat_socket(websocket: WebSocket) -> None:
    await _hub(websocket).chat.serve(websocket)


@router.websocket(NOTIFICATION_WS_PATH)
async def notification_socket(websocket: WebSocket) -> None:
    await _hub(websocket).notifications.serve(websocket)
