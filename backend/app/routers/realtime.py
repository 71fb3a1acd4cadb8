"""STOMP-over-WebSocket endpoint for the per-user notification queue."""

import asyncio
import json
import logging
from uuid import UUID, uuid4

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect, status

from app.core import database, stomp
from app.core.auth import authenticate_token
from app.services.realtime_gateway import TRANSPORT_WS, Subscriber, get_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send(websocket: WebSocket, frame: stomp.Frame) -> None:
    await websocket.send_text(stomp.encode(frame))


async def _receive(websocket: WebSocket) -> stomp.Frame | None:
    return stomp.decode(await websocket.receive_text())


def _bearer(value: str | None) -> str | None:
    if value and value.startswith("Bearer "):
        return value[7:]
    return value or None


def _authenticate(token: str | None) -> UUID:
    db = database.SessionLocal()
    try:
        user = authenticate_token(token, db)
        return user.id  # type: ignore[return-value]
    finally:
        db.close()


async def _pump(
    websocket: WebSocket,
    subscriber: Subscriber,
    subscriptions: dict[str, str],
) -> None:
    """Forward queued payloads as MESSAGE frames to every active subscription."""
    while True:
        payload = await subscriber.queue.get()
        body = json.dumps(payload, default=str)
        for subscription_id, destination in list(subscriptions.items()):
            await _send(
                websocket,
                stomp.message_frame(subscription_id, str(uuid4()), destination, body),
            )


async def _stop_writer(writer: asyncio.Task[None], user_id: UUID) -> None:
    """Cancel the MESSAGE writer and collect its outcome."""
    writer.cancel()
    (outcome,) = await asyncio.gather(writer, return_exceptions=True)
    if isinstance(outcome, Exception) and not isinstance(outcome, WebSocketDisconnect):
        logger.warning("STOMP writer for user %s failed: %s", user_id, outcome)


@router.websocket("/ws")
async def stomp_endpoint(websocket: WebSocket, access_token: str | None = None) -> None:
    gateway = get_gateway()
    requested = websocket.scope.get("subprotocols") or []
    subprotocol = next((p for p in stomp.SUBPROTOCOLS if p in requested), None)
    await websocket.accept(subprotocol=subprotocol)

    if not gateway.ws_enabled:
        await _send(websocket, stomp.error_frame("WebSocket transport is disabled"))
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
        return

    try:
        frame = await _receive(websocket)
    except WebSocketDisconnect:
        return
    except stomp.StompProtocolError as e:
        await _send(websocket, stomp.error_frame(str(e)))
        await websocket.close(code=status.WS_1002_PROTOCOL_ERROR)
        return
    if frame is None or frame.command not in ("CONNECT", "STOMP"):
        await _send(websocket, stomp.error_frame("Expected CONNECT frame"))
        await websocket.close(code=status.WS_1002_PROTOCOL_ERROR)
        return

    token = access_token or _bearer(frame.headers.get("Authorization"))
    try:
        user_id = _authenticate(token)
    except HTTPException as e:
        await _send(websocket, stomp.error_frame(str(e.detail)))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await _send(websocket, stomp.connected_frame())

    subscriptions: dict[str, str] = {}
    subscriber = gateway.register(user_id, TRANSPORT_WS)
    writer = asyncio.create_task(_pump(websocket, subscriber, subscriptions))
    try:
        while True:
            frame = await _receive(websocket)
            if frame is None:
                continue
            receipt = frame.headers.get("receipt")
            if frame.command == "SUBSCRIBE":
                destination = frame.headers.get("destination", "")
                if destination != stomp.USER_QUEUE:
                    await _send(websocket, stomp.error_frame(f"Unknown destination {destination}"))
                    continue
                subscriptions[frame.headers.get("id", "sub-0")] = destination
            elif frame.command == "UNSUBSCRIBE":
                subscriptions.pop(frame.headers.get("id", ""), None)
            elif frame.command == "DISCONNECT":
                if receipt:
                    await _send(websocket, stomp.receipt_frame(receipt))
                await websocket.close()
                break
            else:
                await _send(websocket, stomp.error_frame(f"Unsupported command {frame.command}"))
                continue
            if receipt:
                await _send(websocket, stomp.receipt_frame(receipt))
    except WebSocketDisconnect:
        logger.debug("STOMP client for user %s disconnected", user_id)
    except stomp.StompProtocolError as e:
        await _send(websocket, stomp.error_frame(str(e)))
        await websocket.close(code=status.WS_1002_PROTOCOL_ERROR)
    finally:
        gateway.unregister(subscriber)
        await _stop_writer(writer, user_id)
