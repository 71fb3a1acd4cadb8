"""Concrete realtime channels: STOMP over WebSocket (primary) and SSE (fallback).

A channel's ``run`` connects, calls ``on_open`` once the stream is live, feeds
raw message bodies to ``on_message`` and returns when the server closes the
connection cleanly. Any transport failure is raised as ``ChannelError``;
cancelling the task closes the connection.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from urllib.parse import urlsplit

import httpx
import websockets

from app.core import stomp

logger = logging.getLogger(__name__)

OpenCallback = Callable[[], None]
MessageCallback = Callable[[str], None]


class ChannelError(Exception):
    """The channel failed to connect or lost its connection."""


class Channel:
    name = "channel"

    async def run(self, on_open: OpenCallback, on_message: MessageCallback) -> None:
        raise NotImplementedError


class StompChannel(Channel):
    name = "stomp"

    def __init__(
        self,
        url: str,
        token: str | None,
        destination: str = stomp.USER_QUEUE,
        open_timeout: float = 10.0,
    ):
        self.url = url
        self.token = token
        self.destination = destination
        self.open_timeout = open_timeout

    @property
    def connect_url(self) -> str:
        if not self.token:
            return self.url
        return str(httpx.URL(self.url, params={"access_token": self.token}))

    async def run(self, on_open: OpenCallback, on_message: MessageCallback) -> None:
        host = urlsplit(self.url).hostname or "localhost"
        try:
            async with websockets.connect(
                self.connect_url,
                subprotocols=stomp.SUBPROTOCOLS,  # type: ignore[arg-type]
                open_timeout=self.open_timeout,
            ) as ws:
                await ws.send(stomp.encode(stomp.connect_frame(host, self.token)))
                reply = stomp.decode(_text(await asyncio.wait_for(ws.recv(), self.open_timeout)))
                if reply is None or reply.command != "CONNECTED":
                    message = reply.headers.get("message") if reply else None
                    raise ChannelError(message or "STOMP handshake failed")
                await ws.send(stomp.encode(stomp.subscribe_frame("sub-0", self.destination)))
                on_open()

                async for raw in ws:
                    frame = stomp.decode(_text(raw))
                    if frame is None:
                        continue
                    if frame.command == "MESSAGE":
                        on_message(frame.body)
                    elif frame.command == "ERROR":
                        raise ChannelError(frame.headers.get("message", "STOMP error"))
        except (websockets.WebSocketException, OSError, TimeoutError, stomp.StompProtocolError) as exc:
            raise ChannelError(f"{self.name}: {exc}") from exc


def _text(raw: str | bytes) -> str:
    return raw.decode("utf-8") if isinstance(raw, bytes) else raw


@dataclass
class SseEvent:
    event: str = "message"
    data: str = ""
    id: str | None = None


@dataclass
class SseParser:
    """Incremental ``text/event-stream`` line parser."""

    _event: str = ""
    _data: list[str] = field(default_factory=list)
    _id: str | None = None
    last_event_id: str | None = None

    def feed(self, line: str) -> SseEvent | None:
        """Consume one line; returns an event when a blank line completes one."""
        if line == "":
            if not self._data:
                self._event = ""
                return None
            event = SseEvent(event=self._event or "message", data="\n".join(self._data), id=self._id)
            if self._id is not None:
                self.last_event_id = self._id
            self._event, self._data, self._id = "", [], None
            return event
        if line.startswith(":"):
            return None
        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            self._id = value
        return None


class SseChannel(Channel):
    name = "sse"

    def __init__(
        self,
        url: str,
        token: str | None,
        connect_timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.token = token
        self.connect_timeout = connect_timeout
        self.transport = transport
        self.last_event_id: str | None = None

    async def run(self, on_open: OpenCallback, on_message: MessageCallback) -> None:
        params = {"access_token": self.token} if self.token else None
        timeout = httpx.Timeout(self.connect_timeout, read=None)
        parser = SseParser()
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                async with client.stream(
                    "GET", self.url, params=params, headers={"Accept": "text/event-stream"}
                ) as response:
                    if response.status_code != 200:
                        raise ChannelError(f"{self.name}: stream rejected with HTTP {response.status_code}")
                    on_open()
                    async for line in response.aiter_lines():
                        event = parser.feed(line)
                        if event is None:
                            continue
                        self.last_event_id = parser.last_event_id
                        if event.event == "message":
                            on_message(event.data)
                        else:
                            logger.debug("SSE %s event: %s", event.event, event.data)
        except httpx.HTTPError as exc:
            raise ChannelError(f"{self.name}: {exc}") from exc
