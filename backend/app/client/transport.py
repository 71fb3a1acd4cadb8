"""Realtime notification delivery over a primary and a fallback channel.

Each channel runs its own reconnect state machine::

    IDLE -> CONNECTING -> CONNECTED -> CLOSED -> CONNECTING ...
                                          \\-> GIVEN_UP (primary only)

Only one channel is ever CONNECTED: the primary tears down the fallback when
it connects, and a fallback that connects while the primary is up is dropped.
Transport failures are state transitions and never reach the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from app.client.api import ApiError
from app.client.channels import Channel, ChannelError, SseChannel, StompChannel
from app.client.config import ClientSettings
from app.client.models import NotificationPreferences, RealtimeNotification
from app.client.toasts import ToastSink

logger = logging.getLogger(__name__)


class ChannelRole(str, Enum):
    PRIMARY = "PRIMARY"
    FALLBACK = "FALLBACK"


class Phase(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    CLOSED = "CLOSED"
    GIVEN_UP = "GIVEN_UP"


@dataclass
class ConnectionState:
    channel: ChannelRole
    phase: Phase = Phase.IDLE
    retry_count: int = 0
    last_attempt_at: float | None = None


ChannelFactory = Callable[[], Channel]
MessageListener = Callable[[RealtimeNotification], None]
StatusListener = Callable[[bool], None]
PreferencesLoader = Callable[[], Awaitable[NotificationPreferences]]


def backoff_delay(
    retry_count: int,
    base: float = 1.0,
    maximum: float = 30.0,
    exponent_cap: int = 5,
) -> float:
    """Delay in seconds before reconnect attempt ``retry_count + 1``."""
    return min(maximum, base * 2 ** min(retry_count, exponent_cap))


class RealtimeTransportManager:
    def __init__(
        self,
        primary_factory: ChannelFactory | None,
        fallback_factory: ChannelFactory,
        *,
        settings: ClientSettings | None = None,
        preferences_loader: PreferencesLoader | None = None,
        toasts: ToastSink | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or ClientSettings()
        self.primary_factory = primary_factory
        self.fallback_factory = fallback_factory
        self.preferences_loader = preferences_loader
        self.toasts = toasts
        self.clock = clock
        self.sleep = sleep

        self.in_app_enabled = True
        self.states: dict[ChannelRole, ConnectionState] = {}
        self._active = False
        self._connected = False
        self._primary_deferred = False
        self._listeners: list[MessageListener] = []
        self._status_listeners: list[StatusListener] = []
        self._runs: dict[ChannelRole, asyncio.Task[None]] = {}
        self._timers: set[asyncio.Task[None]] = set()
        self._reset_states()

    @classmethod
    def for_token(
        cls,
        token: str,
        settings: ClientSettings | None = None,
        **kwargs,
    ) -> RealtimeTransportManager:
        """Manager wired to the real STOMP and SSE channels for one access token."""
        settings = settings or ClientSettings()
        return cls(
            lambda: StompChannel(settings.ws_url, token),
            lambda: SseChannel(settings.sse_url, token),
            settings=settings,
            **kwargs,
        )

    @property
    def primary(self) -> ConnectionState:
        return self.states[ChannelRole.PRIMARY]

    @property
    def fallback(self) -> ConnectionState:
        return self.states[ChannelRole.FALLBACK]

    @property
    def active(self) -> bool:
        return self._active

    @property
    def connected(self) -> bool:
        return any(state.phase is Phase.CONNECTED for state in self.states.values())

    def add_listener(self, listener: MessageListener) -> Callable[[], None]:
        """Register a notification listener; returns a function that removes it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def add_status_listener(self, listener: StatusListener) -> Callable[[], None]:
        self._status_listeners.append(listener)
        return (
            lambda: self._status_listeners.remove(listener)
            if listener in self._status_listeners
            else None
        )

    # ── Lifecycle ──

    async def activate(self) -> None:
        if self._active:
            return
        self._active = True
        self._reset_states()
        await self._load_preferences()
        if not self._active:
            return

        if self.settings.WS_ENABLED and self.primary_factory is not None:
            self._open_primary()
            self._schedule(self.settings.FALLBACK_GRACE_SECONDS, self._fallback_grace)
        else:
            logger.info("Primary realtime channel disabled, using fallback only")
            self._open_fallback()

    async def deactivate(self) -> None:
        """Cancel reconnect timers and close live channels. Safe to call repeatedly."""
        self._active = False
        current = asyncio.current_task()
        pending = [
            task
            for task in (*self._timers, *self._runs.values())
            if task is not current and not task.done()
        ]
        for task in pending:
            task.cancel()
        self._timers.clear()
        self._runs.clear()
        self._primary_deferred = False
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._reset_states()
        self._set_connected(False)

    async def _load_preferences(self) -> None:
        self.in_app_enabled = True
        if self.preferences_loader is None:
            return
        try:
            preferences = await self.preferences_loader()
        except ApiError as exc:
            logger.info("Notification preferences unavailable, in-app alerts stay on: %s", exc)
            return
        self.in_app_enabled = preferences.in_app_enabled

    # ── Channel control ──

    def _open_primary(self) -> None:
        if not self._active or self.primary_factory is None:
            return
        state = self.primary
        if state.phase in (Phase.CONNECTING, Phase.CONNECTED, Phase.GIVEN_UP):
            return

        throttle = self.settings.ATTEMPT_THROTTLE_SECONDS
        now = self.clock()
        if state.last_attempt_at is not None and now - state.last_attempt_at < throttle:
            elapsed = now - state.last_attempt_at
            logger.warning("Skipping primary connection attempt %.2fs after the previous one", elapsed)
            if not self._primary_deferred:
                self._primary_deferred = True
                self._schedule(throttle - elapsed, self._deferred_primary)
            return

        state.last_attempt_at = now
        self._start(ChannelRole.PRIMARY, self.primary_factory)

    def _deferred_primary(self) -> None:
        self._primary_deferred = False
        self._open_primary()

    def _open_fallback(self) -> None:
        if not self._active:
            return
        state = self.fallback
        if state.phase in (Phase.CONNECTING, Phase.CONNECTED):
            return
        if self.primary.phase is Phase.CONNECTED:
            return
        state.last_attempt_at = self.clock()
        self._start(ChannelRole.FALLBACK, self.fallback_factory)

    def _fallback_grace(self) -> None:
        if self.primary.phase is not Phase.CONNECTED:
            logger.info("Primary channel not connected after grace window, starting fallback")
            self._open_fallback()

    def _start(self, role: ChannelRole, factory: ChannelFactory) -> None:
        state = self.states[role]
        state.phase = Phase.CONNECTING
        channel = factory()
        logger.debug(
            "Connecting %s channel (%s), retry %d", role.value, channel.name, state.retry_count
        )
        task = asyncio.get_running_loop().create_task(self._run_channel(role, channel))
        self._runs[role] = task

    async def _run_channel(self, role: ChannelRole, channel: Channel) -> None:
        try:
            await channel.run(lambda: self._on_open(role), self._on_raw_message)
        except ChannelError as exc:
            logger.info("%s channel failed: %s", role.value, exc)
        else:
            logger.info("%s channel closed", role.value)
        if self._runs.get(role) is asyncio.current_task():
            del self._runs[role]
        self._on_closed(role)

    def _teardown(self, role: ChannelRole) -> None:
        task = self._runs.pop(role, None)
        if task is not None and not task.done():
            task.cancel()
        state = self.states[role]
        if state.phase in (Phase.CONNECTING, Phase.CONNECTED):
            state.phase = Phase.CLOSED

    def _on_open(self, role: ChannelRole) -> None:
        if not self._active:
            return
        if role is ChannelRole.FALLBACK and self.primary.phase is Phase.CONNECTED:
            logger.info("Primary channel already connected, dropping fallback")
            self._teardown(ChannelRole.FALLBACK)
            return

        state = self.states[role]
        state.phase = Phase.CONNECTED
        state.retry_count = 0
        logger.info("%s channel connected", role.value)
        if role is ChannelRole.PRIMARY:
            state.last_attempt_at = None
            self._teardown(ChannelRole.FALLBACK)
        self._set_connected(True)

    def _on_closed(self, role: ChannelRole) -> None:
        if not self._active:
            return
        state = self.states[role]
        state.phase = Phase.CLOSED
        self._set_connected(self.connected)

        if role is ChannelRole.PRIMARY:
            if state.retry_count >= self.settings.PRIMARY_MAX_RETRIES:
                state.phase = Phase.GIVEN_UP
                logger.warning(
                    "Primary channel gave up after %d retries, staying on fallback",
                    state.retry_count,
                )
                self._open_fallback()
                return
            delay = self._backoff(state.retry_count)
            state.retry_count += 1
            logger.info("Reconnecting primary channel in %.1fs (retry %d)", delay, state.retry_count)
            self._schedule(delay, self._open_primary)
            return

        if self.primary.phase is Phase.CONNECTED:
            return
        delay = self._backoff(state.retry_count)
        state.retry_count += 1
        logger.info("Reconnecting fallback channel in %.1fs (retry %d)", delay, state.retry_count)
        self._schedule(delay, self._open_fallback)

    def _backoff(self, retry_count: int) -> float:
        return backoff_delay(
            retry_count,
            base=self.settings.RETRY_BASE_SECONDS,
            maximum=self.settings.RETRY_MAX_SECONDS,
            exponent_cap=self.settings.RETRY_EXPONENT_CAP,
        )

    def _schedule(self, delay: float, callback: Callable[[], None]) -> None:
        async def fire() -> None:
            await self.sleep(delay)
            if self._active:
                callback()

        task = asyncio.get_running_loop().create_task(fire())
        self._timers.add(task)
        task.add_done_callback(self._timers.discard)

    def _reset_states(self) -> None:
        self.states = {role: ConnectionState(role) for role in ChannelRole}

    def _set_connected(self, value: bool) -> None:
        if value == self._connected:
            return
        self._connected = value
        for listener in list(self._status_listeners):
            try:
                listener(value)
            except Exception:
                logger.exception("Connection status listener %r failed", listener)

    # ── Inbound ──

    def _on_raw_message(self, body: str) -> None:
        try:
            raw = json.loads(body)
        except ValueError:
            logger.warning("Dropping non-JSON realtime payload: %.200s", body)
            return
        self.dispatch(raw)

    def dispatch(self, raw: object) -> RealtimeNotification | None:
        """Hand a decoded payload to every listener and, if enabled, the toast sink."""
        notification = RealtimeNotification.parse(raw)
        if notification is None:
            logger.warning("Dropping malformed realtime payload: %.200r", raw)
            return None
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Realtime listener %r failed", listener)
        if self.in_app_enabled and self.toasts is not None:
            self.toasts.info(notification.toast_text)
        return notification
