"""WebSocket endpoint delivering message and presence events."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any, Dict, TypeVar

from fastapi import APIRouter, Depends, WebSocket
from fastapi.exceptions import HTTPException
from fastapi.websockets import WebSocketDisconnect, WebSocketState

from pairchat.realtime import DeliveryChannel, get_delivery_channel, safe_send_json

from app.api.deps import extract_token, get_user_from_token
from app.config import get_settings
from app.database import get_db_session

router = APIRouter(tags=["ws"])

settings = get_settings()

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def iter_keepalive_messages(
    websocket: WebSocket,
    receiver: Callable[[], Awaitable[T]],
    *,
    timeout_seconds: float | int | None,
    ping_interval_seconds: float | int | None,
    ping_payload: Dict[str, Any] | None = None,
) -> AsyncIterator[T]:
    """Yield messages from *receiver*, sending a ping whenever the socket idles."""

    ping_payload = ping_payload or {"type": "ping"}
    timeout = float(timeout_seconds) if timeout_seconds else 0.0
    interval = float(ping_interval_seconds) if ping_interval_seconds else 0.0
    last_activity = time.monotonic()
    last_ping_sent: float | None = None

    while True:
        try:
            if timeout > 0:
                message = await asyncio.wait_for(receiver(), timeout=timeout)
            else:
                message = await receiver()
        except asyncio.TimeoutError:
            if websocket.application_state != WebSocketState.CONNECTED:
                break

            now = time.monotonic()
            idle = now - last_activity >= interval
            ping_due = last_ping_sent is None or now - last_ping_sent >= interval
            if interval <= 0 or (idle and ping_due):
                if not await safe_send_json(websocket, ping_payload):
                    break
                last_ping_sent = now
            continue
        except (RuntimeError, WebSocketDisconnect):
            break
        else:
            last_activity = time.monotonic()
            last_ping_sent = None
            yield message


async def receive_frame(websocket: WebSocket) -> str:
    """Receive the next text or binary frame as text."""

    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000))
    if message.get("text") is not None:
        return message["text"]
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


def _is_ping(frame: str) -> bool:
    if frame.strip().lower() == "ping":
        return True
    try:
        payload = json.loads(frame)
    except ValueError:
        return False
    return isinstance(payload, dict) and payload.get("type") == "ping"


async def _resolve_user_id(websocket: WebSocket) -> tuple[str | None, str]:
    token = websocket.query_params.get("token") or extract_token(
        websocket.cookies, websocket.headers.get("Authorization")
    )
    if not token:
        return None, "Missing token"

    try:
        with get_db_session() as db:
            return get_user_from_token(token, db).id, ""
    except HTTPException:
        return None, "Invalid token"


@router.websocket("/ws")
async def events_socket(
    websocket: WebSocket,
    channel: DeliveryChannel = Depends(get_delivery_channel),
) -> None:
    connection = channel.open(websocket)
    user_id, reason = await _resolve_user_id(websocket)
    if user_id is None:
        await channel.reject(connection, reason)
        return

    await channel.authenticate(connection, user_id)
    try:
        async for frame in iter_keepalive_messages(
            websocket,
            lambda: receive_frame(websocket),
            timeout_seconds=settings.websocket_keepalive_timeout_seconds,
            ping_interval_seconds=settings.websocket_keepalive_ping_interval_seconds,
        ):
            if _is_ping(frame):
                await safe_send_json(websocket, {"type": "pong"})
    finally:
        await channel.disconnect(connection)
