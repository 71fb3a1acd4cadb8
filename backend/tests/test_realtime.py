"""Tests for the realtime gateway and the STOMP-over-WebSocket endpoint."""

import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from starlette.websockets import WebSocketDisconnect

from app.core import stomp
from app.routers.realtime import _pump, _stop_writer
from app.services.realtime_gateway import (
    TRANSPORT_SSE,
    TRANSPORT_WS,
    RealtimeGateway,
    Subscriber,
    gateway,
)


def _recv(ws) -> stomp.Frame:
    frame = stomp.decode(ws.receive_text())
    assert frame is not None
    return frame


def _connect(ws, token: str | None = None) -> stomp.Frame:
    ws.send_text(stomp.encode(stomp.connect_frame("testserver", token)))
    return _recv(ws)


def _subscribe(ws, destination: str = stomp.USER_QUEUE, receipt: str = "sub-receipt") -> stomp.Frame:
    ws.send_text(stomp.encode(stomp.subscribe_frame("sub-0", destination, receipt=receipt)))
    return _recv(ws)


# ── Gateway ──


class TestRealtimeGateway:
    @pytest.mark.asyncio
    async def test_send_reaches_every_connection(self):
        gw = RealtimeGateway(queue_size=5, ws_enabled=True, sse_enabled=True)
        user_id = uuid4()
        ws_sub = gw.register(user_id, TRANSPORT_WS)
        sse_sub = gw.register(user_id, TRANSPORT_SSE)
        gw.register(uuid4(), TRANSPORT_WS)

        assert gw.send_to_user(user_id, {"id": "n1"}) == 2
        await asyncio.sleep(0)
        assert ws_sub.queue.get_nowait() == {"id": "n1"}
        assert sse_sub.queue.get_nowait() == {"id": "n1"}
        assert gw.subscriber_count() == 3
        assert gw.subscriber_count(user_id) == 2

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        gw = RealtimeGateway(queue_size=5, ws_enabled=True, sse_enabled=True)
        assert gw.send_to_user(uuid4(), {"id": "n1"}) == 0

    @pytest.mark.asyncio
    async def test_disabled_transport_is_skipped(self):
        gw = RealtimeGateway(queue_size=5, ws_enabled=False, sse_enabled=True)
        user_id = uuid4()
        gw.register(user_id, TRANSPORT_WS)
        sse_sub = gw.register(user_id, TRANSPORT_SSE)
        assert gw.send_to_user(user_id, {"id": "n1"}) == 1
        await asyncio.sleep(0)
        assert sse_sub.queue.qsize() == 1
        assert gw.is_enabled(TRANSPORT_WS) is False

    @pytest.mark.asyncio
    async def test_full_queue_drops_payload(self):
        gw = RealtimeGateway(queue_size=1, ws_enabled=True, sse_enabled=True)
        user_id = uuid4()
        subscriber = gw.register(user_id, TRANSPORT_WS)
        gw.send_to_user(user_id, {"id": "a"})
        gw.send_to_user(user_id, {"id": "b"})
        await asyncio.sleep(0)
        assert subscriber.queue.get_nowait() == {"id": "a"}
        assert subscriber.dropped == 1

    @pytest.mark.asyncio
    async def test_unregister(self):
        gw = RealtimeGateway(queue_size=5, ws_enabled=True, sse_enabled=True)
        user_id = uuid4()
        subscriber = gw.register(user_id, TRANSPORT_WS)
        gw.unregister(subscriber)
        gw.unregister(subscriber)
        assert gw.subscriber_count(user_id) == 0

    def test_closed_loop_subscriber_is_pruned(self):
        gw = RealtimeGateway(queue_size=5, ws_enabled=True, sse_enabled=True)
        user_id = uuid4()
        loop = asyncio.new_event_loop()
        loop.close()
        gw._subscribers[user_id] = [
            Subscriber(user_id=user_id, transport=TRANSPORT_WS, queue=asyncio.Queue(), loop=loop)
        ]
        assert gw.send_to_user(user_id, {"id": "n1"}) == 0
        assert gw.subscriber_count(user_id) == 0


# ── STOMP endpoint ──


class TestStompEndpoint:
    def test_subscribe_and_receive(self, client, owner_user, owner_token):
        with client.websocket_connect(
            f"/ws?access_token={owner_token}", subprotocols=["v12.stomp"]
        ) as ws:
            assert ws.accepted_subprotocol == "v12.stomp"
            connected = _connect(ws)
            assert connected.command == "CONNECTED"
            assert connected.headers["version"] == "1.2"

            receipt = _subscribe(ws)
            assert receipt.command == "RECEIPT"
            assert receipt.headers["receipt-id"] == "sub-receipt"
            assert gateway.subscriber_count(owner_user.id) == 1

            assert gateway.send_to_user(owner_user.id, {"id": "n-1", "title": "New order"}) == 1
            message = _recv(ws)
            assert message.command == "MESSAGE"
            assert message.headers["subscription"] == "sub-0"
            assert message.headers["destination"] == stomp.USER_QUEUE
            assert json.loads(message.body) == {"id": "n-1", "title": "New order"}

            ws.send_text(stomp.encode(stomp.Frame("DISCONNECT", {"receipt": "bye"})))
            assert _recv(ws).headers["receipt-id"] == "bye"

        assert gateway.subscriber_count(owner_user.id) == 0

    def test_token_in_connect_header(self, client, owner_user, owner_token):
        with client.websocket_connect("/ws") as ws:
            assert _connect(ws, owner_token).command == "CONNECTED"
            _subscribe(ws)
            assert gateway.subscriber_count(owner_user.id) == 1

    def test_missing_token(self, client, owner_user):
        with client.websocket_connect("/ws") as ws:
            error = _connect(ws)
            assert error.command == "ERROR"
            assert error.headers["message"] == "Access token is required"
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
            assert exc_info.value.code == 1008

    def test_invalid_token(self, client):
        with client.websocket_connect("/ws") as ws:
            error = _connect(ws, "not-a-token")
            assert error.headers["message"] == "Invalid access token"

    def test_first_frame_must_be_connect(self, client, owner_token):
        with client.websocket_connect(f"/ws?access_token={owner_token}") as ws:
            ws.send_text(stomp.encode(stomp.Frame("SEND", {"destination": "/x"}, "hi")))
            error = _recv(ws)
            assert error.command == "ERROR"
            assert error.headers["message"] == "Expected CONNECT frame"

    def test_unknown_destination(self, client, owner_token):
        with client.websocket_connect(f"/ws?access_token={owner_token}") as ws:
            _connect(ws)
            error = _subscribe(ws, destination="/topic/orders")
            assert error.command == "ERROR"
            assert "Unknown destination" in error.headers["message"]

    def test_unsubscribe_stops_delivery(self, client, owner_user, owner_token):
        with client.websocket_connect(f"/ws?access_token={owner_token}") as ws:
            _connect(ws)
            _subscribe(ws)
            ws.send_text(
                stomp.encode(stomp.Frame("UNSUBSCRIBE", {"id": "sub-0", "receipt": "unsub"}))
            )
            assert _recv(ws).headers["receipt-id"] == "unsub"
            gateway.send_to_user(owner_user.id, {"id": "dropped"})

            ws.send_text(stomp.encode(stomp.Frame("DISCONNECT", {"receipt": "bye"})))
            assert _recv(ws).headers["receipt-id"] == "bye"

    def test_disabled_transport(self, client, owner_token):
        gateway.ws_enabled = False
        with client.websocket_connect(f"/ws?access_token={owner_token}") as ws:
            error = _recv(ws)
            assert error.command == "ERROR"
            assert error.headers["message"] == "WebSocket transport is disabled"
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_text()
            assert exc_info.value.code == 1013


class TestMessageWriter:
    @pytest.mark.asyncio
    async def test_send_failure_is_collected_and_logged(self, caplog):
        websocket = MagicMock()
        websocket.send_text = AsyncMock(side_effect=RuntimeError("socket gone"))
        user_id = uuid4()
        subscriber = Subscriber(
            user_id, TRANSPORT_WS, asyncio.Queue(), asyncio.get_running_loop()
        )
        subscriber.queue.put_nowait({"id": "n-1"})

        writer = asyncio.create_task(_pump(websocket, subscriber, {"sub-0": stomp.USER_QUEUE}))
        for _ in range(5):
            await asyncio.sleep(0)
        assert writer.done()

        with caplog.at_level(logging.WARNING, logger="app.routers.realtime"):
            await _stop_writer(writer, user_id)

        assert "socket gone" in caplog.text
        websocket.send_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_idle_writer_is_cancelled_quietly(self, caplog):
        subscriber = Subscriber(
            uuid4(), TRANSPORT_WS, asyncio.Queue(), asyncio.get_running_loop()
        )
        writer = asyncio.create_task(_pump(MagicMock(), subscriber, {}))
        await asyncio.sleep(0)

        with caplog.at_level(logging.WARNING, logger="app.routers.realtime"):
            await _stop_writer(writer, subscriber.user_id)

        assert writer.cancelled()
        assert caplog.text == ""
