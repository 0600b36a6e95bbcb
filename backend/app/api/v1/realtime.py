"""
WebSocket route: live event stream for the dashboards.

    WS /ws   — server pushes {type, data}; a client "ping" gets "pong"
"""

from __future__ import annotations

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def event_stream(ws: WebSocket):
    manager = ws.app.state.broadcaster
    await manager.connect(ws)
    try:
        while True:
            message = await ws.receive_text()
            if message.strip().lower() == "ping":
                await ws.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        manager.disconnect(ws)
