"""Tests for the STOMP and SSE client channels."""

import asyncio
import json

import httpx
import pytest
import websockets

from app.client.channels import ChannelError, SseChannel, SseParser, StompChannel
from app.core import stomp

# ── SSE parser ──


class TestSseParser:
    def test_single_event(self):
        parser = SseParser()
        assert parser.feed("id: n-1") is None
        assert parser.feed('data: {"id": "n-1"}') is None
        event = parser.feed("")
        assert event.event == "message"
        assert event.data == '{"id": "n-1"}'
        assert event.id == "n-1"
        assert parser.last_event_id == "n-1"

    def test_multiline_data_and_named_event(self):
        parser = SseParser()
        for line in ("event: INIT", "data: first", "data:second"):
            parser.feed(line)
        event = parser.feed("")
        assert event.event == "INIT"
        assert event.data == "first\nsecond"

    def test_comments_and_empty_dispatch(self):
        parser = SseParser()
        assert parser.feed(": keepalive") is None
        assert parser.feed("") is None
        assert parser.feed("event: ping") is None
        assert parser.feed("") is None
        parser.feed("data: x")
        assert parser.feed("").event == "message"

    def test_unknown_fields_ignored(self):
        parser = SseParser()
        parser.feed("retry: 3000")
        parser.feed("data: ok")
        assert parser.feed("").data == "ok"


# ── SSE channel ──


def _sse_transport(status: int, body: str, seen: list):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, text=body, headers={"content-type": "text/event-stream"})

    return httpx.MockTransport(handler)


class TestSseChannel:
    @pytest.mark.asyncio
    async def test_streams_messages(self):
        body = (
            'event: INIT\ndata: {"status": "connected"}\n\n'
            ": keepalive\n\n"
            'id: n-1\ndata: {"id": "n-1", "title": "New order"}\n\n'
            'id: n-2\ndata: {"id": "n-2", "title": "Paid"}\n\n'
        )
        seen: list[httpx.Request] = []
        channel = SseChannel(
            "http://api.test/api/notifications/stream",
            "tok",
            transport=_sse_transport(200, body, seen),
        )
        opened, messages = [], []

        await channel.run(lambda: opened.append(True), messages.append)

        assert opened == [True]
        assert [json.loads(m)["id"] for m in messages] == ["n-1", "n-2"]
        assert channel.last_event_id == "n-2"
        assert seen[0].url.params["access_token"] == "tok"
        assert seen[0].headers["Accept"] == "text/event-stream"

    @pytest.mark.asyncio
    async def test_rejected_stream(self):
        seen: list[httpx.Request] = []
        channel = SseChannel(
            "http://api.test/api/notifications/stream",
            "bad",
            transport=_sse_transport(401, '{"detail": "Invalid access token"}', seen),
        )
        opened = []
        with pytest.raises(ChannelError, match="HTTP 401"):
            await channel.run(lambda: opened.append(True), lambda _body: None)
        assert opened == []

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def fail(request):
            raise httpx.ConnectError("refused", request=request)

        channel = SseChannel("http://api.test/stream", "tok", transport=httpx.MockTransport(fail))
        with pytest.raises(ChannelError, match="refused"):
            await channel.run(lambda: None, lambda _body: None)


# ── STOMP channel ──


async def _recv_frame(ws) -> stomp.Frame:
    return stomp.decode(await ws.recv())


class TestStompChannel:
    def test_connect_url_carries_token(self):
        channel = StompChannel("ws://localhost:8000/ws", "abc")
        assert channel.connect_url == "ws://localhost:8000/ws?access_token=abc"

    def test_connect_url_without_token(self):
        assert StompChannel("ws://localhost:8000/ws", None).connect_url == "ws://localhost:8000/ws"

    @pytest.mark.asyncio
    async def test_handshake_subscribe_and_messages(self):
        received_frames: list[stomp.Frame] = []

        async def handler(ws):
            connect = await _recv_frame(ws)
            received_frames.append(connect)
            await ws.send(stomp.encode(stomp.connected_frame()))
            received_frames.append(await _recv_frame(ws))
            for index in range(2):
                body = json.dumps({"id": f"n-{index}"})
                await ws.send(
                    stomp.encode(stomp.message_frame("sub-0", f"m-{index}", stomp.USER_QUEUE, body))
                )

        async with websockets.serve(
            handler, "127.0.0.1", 0, subprotocols=stomp.SUBPROTOCOLS
        ) as server:
            port = server.sockets[0].getsockname()[1]
            channel = StompChannel(f"ws://127.0.0.1:{port}/ws", "tok", open_timeout=5)
            opened, messages = [], []
            await asyncio.wait_for(channel.run(lambda: opened.append(True), messages.append), 5)

        connect, subscribe = received_frames
        assert connect.command == "CONNECT"
        assert connect.headers["Authorization"] == "Bearer tok"
        assert subscribe.command == "SUBSCRIBE"
        assert subscribe.headers["destination"] == stomp.USER_QUEUE
        assert opened == [True]
        assert [json.loads(m)["id"] for m in messages] == ["n-0", "n-1"]

    @pytest.mark.asyncio
    async def test_rejected_handshake(self):
        async def handler(ws):
            await _recv_frame(ws)
            await ws.send(stomp.encode(stomp.error_frame("Invalid access token")))

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            channel = StompChannel(f"ws://127.0.0.1:{port}/ws", "bad", open_timeout=5)
            opened = []
            with pytest.raises(ChannelError, match="Invalid access token"):
                await channel.run(lambda: opened.append(True), lambda _body: None)
        assert opened == []

    @pytest.mark.asyncio
    async def test_server_error_frame_after_connect(self):
        async def handler(ws):
            await _recv_frame(ws)
            await ws.send(stomp.encode(stomp.connected_frame()))
            await _recv_frame(ws)
            await ws.send(stomp.encode(stomp.error_frame("Session expired")))
            await asyncio.sleep(1)

        async with websockets.serve(handler, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
            channel = StompChannel(f"ws://127.0.0.1:{port}/ws", "tok", open_timeout=5)
            with pytest.raises(ChannelError, match="Session expired"):
                await channel.run(lambda: None, lambda _body: None)

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        async with websockets.serve(lambda ws: None, "127.0.0.1", 0) as server:
            port = server.sockets[0].getsockname()[1]
        channel = StompChannel(f"ws://127.0.0.1:{port}/ws", "tok", open_timeout=2)
        with pytest.raises(ChannelError):
            await channel.run(lambda: None, lambda _body: None)
