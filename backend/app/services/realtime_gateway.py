"""In-process registry of realtime subscribers (WebSocket/STOMP and SSE).

Each connection registers an asyncio queue bound to its event loop. Publishing
is thread-safe: payloads are handed over with ``call_soon_threadsafe`` so the
synchronous request handlers and the arq worker can push without awaiting.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from app.core.config import settings

logger = logging.getLogger(__name__)

TRANSPORT_WS = "ws"
TRANSPORT_SSE = "sse"


@dataclass(eq=False)
class Subscriber:
    user_id: UUID
    transport: str
    queue: asyncio.Queue[dict[str, Any]]
    loop: asyncio.AbstractEventLoop
    dropped: int = field(default=0)


class RealtimeGateway:
    """Fan out notification payloads to every live connection of a user."""

    def __init__(
        self,
        queue_size: int | None = None,
        ws_enabled: bool | None = None,
        sse_enabled: bool | None = None,
    ):
        self.queue_size = queue_size or settings.REALTIME_QUEUE_SIZE
        self.ws_enabled = settings.REALTIME_WS_ENABLED if ws_enabled is None else ws_enabled
        self.sse_enabled = settings.REALTIME_SSE_ENABLED if sse_enabled is None else sse_enabled
        self._subscribers: dict[UUID, list[Subscriber]] = {}

    def is_enabled(self, transport: str) -> bool:
        return self.ws_enabled if transport == TRANSPORT_WS else self.sse_enabled

    def register(self, user_id: UUID, transport: str) -> Subscriber:
        """Register a connection. Must be called from the connection's event loop."""
        subscriber = Subscriber(
            user_id=user_id,
            transport=transport,
            queue=asyncio.Queue(maxsize=self.queue_size),
            loop=asyncio.get_running_loop(),
        )
        self._subscribers.setdefault(user_id, []).append(subscriber)
        logger.info("Realtime %s subscriber registered for user %s", transport, user_id)
        return subscriber

    def unregister(self, subscriber: Subscriber) -> None:
        subscribers = self._subscribers.get(subscriber.user_id, [])
        if subscriber in subscribers:
            subscribers.remove(subscriber)
        if not subscribers:
            self._subscribers.pop(subscriber.user_id, None)
        logger.info(
            "Realtime %s subscriber removed for user %s", subscriber.transport, subscriber.user_id
        )

    def subscriber_count(self, user_id: UUID | None = None) -> int:
        if user_id is not None:
            return len(self._subscribers.get(user_id, []))
        return sum(len(subs) for subs in self._subscribers.values())

    def send_to_user(self, user_id: UUID, payload: dict[str, Any]) -> int:
        """Queue a payload on every enabled connection of the user.

        Returns the number of connections the payload was handed to.
        """
        delivered = 0
        for subscriber in list(self._subscribers.get(user_id, [])):
            if not self.is_enabled(subscriber.transport):
                continue
            if subscriber.loop.is_closed():
                self.unregister(subscriber)
                continue
            subscriber.loop.call_soon_threadsafe(_offer, subscriber, payload)
            delivered += 1
        return delivered


def _offer(subscriber: Subscriber, payload: dict[str, Any]) -> None:
    try:
        subscriber.queue.put_nowait(payload)
    except asyncio.QueueFull:
        subscriber.dropped += 1
        logger.warning(
            "Realtime queue full for user %s (%s), dropping payload %s",
            subscriber.user_id,
            subscriber.transport,
            payload.get("id"),
        )


def format_sse_event(payload: dict[str, Any]) -> str:
    """Render a payload as a single SSE ``message`` event."""
    data = json.dumps(payload, default=str)
    event_id = payload.get("id")
    prefix = f"id: {event_id}\n" if event_id is not None else ""
    return f"{prefix}data: {data}\n\n"


SSE_INIT_EVENT = "event: init\ndata: ok\n\n"
SSE_KEEPALIVE = ": keepalive\n\n"


gateway = RealtimeGateway()


def get_gateway() -> RealtimeGateway:
    return gateway
