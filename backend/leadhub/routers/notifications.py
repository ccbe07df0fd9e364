from __future__ import annotations

import asyncio

import orjson
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..auth.tokens import TokenError, verify_bearer_token
from ..modules.notifications.websocket_channel import WebSocketChannel
from ..observability.logging import get_logger
from ..repositories.leads.leads_repo import now_iso
from ..settings import settings

router = APIRouter(tags=["notifications"])
log = get_logger("api.notifications")


@router.websocket("/ws")
async def notifications_ws(websocket: WebSocket, token: str | None = None):
    try:
        verified = verify_bearer_token(token or "")
    except TokenError as e:
        log.info("ws_auth_denied", reason=str(e))
        await websocket.close(code=1008)
        return

    await websocket.accept()
    registry = websocket.app.state.connection_registry
    channel = WebSocketChannel(
        websocket,
        asyncio.get_running_loop(),
        send_timeout_s=settings.notify_timeout_seconds,
    )
    handle = registry.register(verified.sub, channel, role=verified.role)
    log.info("ws_connected", actor_id=verified.sub, role=verified.role, handle_id=handle.handle_id)

    try:
        await websocket.send_json(
            {
                "type": "connection",
                "message": "WebSocket connection established",
                "userId": verified.sub,
                "userType": verified.role,
            }
        )
        while True:
            raw = await websocket.receive_text()
            try:
                data = orjson.loads(raw)
            except orjson.JSONDecodeError:
                log.info("ws_message_unparseable", actor_id=verified.sub)
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                await websocket.send_json({"type": "pong", "timestamp": now_iso()})
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(handle)
        log.info("ws_disconnected", actor_id=verified.sub, handle_id=handle.handle_id)
