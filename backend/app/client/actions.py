"""Subscription lifecycle actions with local validation and reconciliation refetch.

Every mutation that succeeds replaces the cached snapshot with the server's
response and refetches the event log, so the reconciler always renders the
authoritative state. Failures are shown through the toast sink and re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeVar

from app.client.api import ApiError, Identifier, OwnerSubscriptionApi, SubscriptionApi
from app.client.config import ClientSettings
from app.client.models import SubscriptionEvent, SubscriptionSnapshot
from app.client.reconciler import PendingIntent, SubscriptionView, render
from app.client.toasts import ToastSink

logger = logging.getLogger(__name__)

T = TypeVar("T")

GRANT_DAYS_MESSAGE = "Enter a valid number of days (> 0)"
TRIAL_DAYS_MESSAGE = "Enter a valid trial days number (> 0)"
PAID_DAYS_MESSAGE = "Enter a valid paid days number (> 0)"


class ValidationError(ValueError):
    """Input rejected locally; no request was sent."""


class ConfirmationPending(RuntimeError):
    pass


def parse_days(value: Any, message: str = GRANT_DAYS_MESSAGE) -> int:
    """Accept a positive whole number of days given as int or numeric text."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(message)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(message)
        value = int(value)
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise ValidationError(message) from None
    if not isinstance(value, int) or value <= 0:
        raise ValidationError(message)
    return value


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class PendingConfirmation:
    text: str
    action: Callable[[], Awaitable[Any]]


class ConfirmGate:
    """Holds at most one action awaiting the user's confirmation."""

    def __init__(self):
        self.pending: PendingConfirmation | None = None
        self.submitting = False

    @property
    def is_open(self) -> bool:
        return self.pending is not None

    @property
    def text(self) -> str | None:
        return self.pending.text if self.pending else None

    def ask(self, text: str, action: Callable[[], Awaitable[Any]]) -> None:
        if self.pending is not None:
            raise ConfirmationPending(f"Already waiting on: {self.pending.text}")
        self.pending = PendingConfirmation(text, action)

    def cancel(self) -> None:
        if not self.submitting:
            self.pending = None

    async def confirm(self) -> Any:
        """Run the pending action; the gate resets whether it succeeds or fails."""
        if self.pending is None:
            return None
        action = self.pending.action
        self.submitting = True
        try:
            return await action()
        finally:
            self.submitting = False
            self.pending = None


class _SubscriptionViewModel:
    def __init__(
        self,
        toasts: ToastSink,
        legacy_matching: bool | None = None,
        clock: Callable[[], datetime] = _utc_now,
        settings: ClientSettings | None = None,
    ):
        if legacy_matching is None:
            legacy_matching = (settings or ClientSettings()).LEGACY_EVENT_MATCHING
        self.toasts = toasts
        self.legacy_matching = legacy_matching
        self.clock = clock
        self.snapshot: SubscriptionSnapshot | None = None
        self.events: list[SubscriptionEvent] = []
        self.pending_intent: PendingIntent | None = None
        self.error: str | None = None
        self.loading = False
        self.last_updated_at: datetime | None = None
        self.busy: set[str] = set()

    def view(self) -> SubscriptionView:
        return render(
            self.snapshot,
            self.events,
            self.pending_intent,
            now=self.clock(),
            legacy=self.legacy_matching,
        )

    async def _fetch(self) -> tuple[SubscriptionSnapshot, list[SubscriptionEvent]]:
        raise NotImplementedError

    async def load_all(self) -> None:
        """Refetch snapshot and events together; clears any optimistic intent."""
        self.loading = True
        self.error = None
        try:
            snapshot, events = await self._fetch()
        except ApiError as exc:
            self._fail(exc, "Failed to load subscription")
            raise
        finally:
            self.loading = False
        self._accept(snapshot)
        self.events = events

    def _accept(self, snapshot: SubscriptionSnapshot) -> None:
        """Server data replaces any optimistic intent."""
        self.snapshot = snapshot
        self.pending_intent = None
        self.last_updated_at = self.clock()

    def _fail(self, exc: ApiError, fallback: str) -> None:
        message = exc.message or fallback
        self.error = message
        self.toasts.error(message)
        logger.info("Subscription action failed: %s", message)

    async def _run(
        self, name: str, fallback: str, operation: Callable[[], Awaitable[T]]
    ) -> T:
        self.busy.add(name)
        self.error = None
        try:
            return await operation()
        except ApiError as exc:
            self._fail(exc, fallback)
            raise
        finally:
            self.busy.discard(name)

    def _reject(self, message: str) -> None:
        self.error = message
        self.toasts.error(message)


class SubscriptionController(_SubscriptionViewModel):
    """Super-admin view of one restaurant's subscription."""

    def __init__(
        self,
        api: SubscriptionApi,
        restaurant_id: Identifier,
        toasts: ToastSink,
        legacy_matching: bool | None = None,
        clock: Callable[[], datetime] = _utc_now,
        settings: ClientSettings | None = None,
    ):
        super().__init__(toasts, legacy_matching, clock, settings)
        self.api = api
        self.restaurant_id = restaurant_id
        self.gate = ConfirmGate()

    async def _fetch(self) -> tuple[SubscriptionSnapshot, list[SubscriptionEvent]]:
        return await asyncio.gather(
            self.api.get(self.restaurant_id), self.api.get_events(self.restaurant_id)
        )

    async def refresh_events(self) -> None:
        self.events = await self.api.get_events(self.restaurant_id)

    def _days(self, value: Any, message: str) -> int:
        try:
            return parse_days(value, message)
        except ValidationError:
            self._reject(message)
            raise

    # ── Actions ──

    async def grant(self, days: Any) -> SubscriptionSnapshot:
        count = self._days(days, GRANT_DAYS_MESSAGE)

        async def operation() -> SubscriptionSnapshot:
            self._accept(await self.api.grant(self.restaurant_id, count))
            await self.refresh_events()
            return self.snapshot

        snapshot = await self._run("grant", "Failed to grant days", operation)
        self.toasts.success(f"Granted {_plural(count, 'paid day')}")
        return snapshot

    async def start_trial(self) -> SubscriptionSnapshot:
        async def operation() -> SubscriptionSnapshot:
            self._accept(await self.api.start_trial(self.restaurant_id))
            await self.refresh_events()
            return self.snapshot

        snapshot = await self._run("start_trial", "Unable to start trial", operation)
        self.toasts.success("Trial started")
        return snapshot

    async def set_trial_days(self, days: Any) -> SubscriptionSnapshot:
        count = self._days(days, TRIAL_DAYS_MESSAGE)

        async def operation() -> SubscriptionSnapshot:
            self._accept(await self.api.set_trial_days(self.restaurant_id, count))
            await self.refresh_events()
            return self.snapshot

        snapshot = await self._run("set_trial_days", "Failed to set trial days", operation)
        self.toasts.success(f"Trial set to {_plural(count, 'day')}")
        return snapshot

    async def set_paid_days(self, days: Any) -> SubscriptionSnapshot:
        count = self._days(days, PAID_DAYS_MESSAGE)

        async def operation() -> SubscriptionSnapshot:
            self._accept(await self.api.set_paid_days(self.restaurant_id, count))
            await self.refresh_events()
            return self.snapshot

        snapshot = await self._run("set_paid_days", "Failed to set paid days", operation)
        self.toasts.success(f"Paid days set to {count}")
        return snapshot

    async def suspend(self, reason: str | None = None) -> SubscriptionSnapshot:
        return await self._set_suspended(True, reason)

    async def unsuspend(self) -> SubscriptionSnapshot:
        return await self._set_suspended(False)

    async def _set_suspended(self, suspended: bool, reason: str | None = None) -> SubscriptionSnapshot:
        previous = self.pending_intent
        self.pending_intent = PendingIntent(suspended=suspended)

        async def operation() -> SubscriptionSnapshot:
            if suspended:
                return await self.api.suspend(self.restaurant_id, reason)
            return await self.api.unsuspend(self.restaurant_id)

        name = "suspend" if suspended else "unsuspend"
        fallback = "Failed to suspend account" if suspended else "Failed to unsuspend account"
        try:
            snapshot = await self._run(name, fallback, operation)
        except ApiError:
            self.pending_intent = previous
            raise
        self.snapshot = snapshot
        self.toasts.success("Subscription suspended" if suspended else "Subscription unsuspended")
        await self.load_all()
        return snapshot

    async def debug_run_daily(self) -> int:
        self.toasts.info("Running daily lifecycle checks…")
        transitions = await self._run("debug", "Debug run failed", self.api.debug_run_daily)
        self.toasts.success("Daily lifecycle checks completed")
        await self.load_all()
        return transitions

    # ── Confirmation ──

    def request(self, action: str, *args: Any) -> None:
        """Stage an action behind the confirm gate; day counts are validated up front."""
        if action == "grant":
            count = self._days(args[0], GRANT_DAYS_MESSAGE)
            self.gate.ask(f"Grant {_plural(count, 'paid day')}?", lambda: self.grant(count))
        elif action == "set_trial_days":
            count = self._days(args[0], TRIAL_DAYS_MESSAGE)
            self.gate.ask(f"Set trial to {_plural(count, 'day')}?", lambda: self.set_trial_days(count))
        elif action == "set_paid_days":
            count = self._days(args[0], PAID_DAYS_MESSAGE)
            self.gate.ask(f"Set paid days to {count}?", lambda: self.set_paid_days(count))
        elif action == "start_trial":
            self.gate.ask("Start a trial for this restaurant?", self.start_trial)
        elif action == "suspend":
            reason = args[0] if args else None
            self.gate.ask("Suspend this subscription?", lambda: self.suspend(reason))
        elif action == "unsuspend":
            self.gate.ask("Unsuspend this subscription?", self.unsuspend)
        elif action == "debug_run_daily":
            self.gate.ask("Run the daily lifecycle checks now?", self.debug_run_daily)
        else:
            raise ValueError(f"Unknown subscription action: {action}")

    async def confirm(self) -> Any:
        return await self.gate.confirm()


class OwnerSubscriptionController(_SubscriptionViewModel):
    """The signed-in owner's subscription card."""

    def __init__(
        self,
        api: OwnerSubscriptionApi,
        toasts: ToastSink,
        legacy_matching: bool | None = None,
        clock: Callable[[], datetime] = _utc_now,
        settings: ClientSettings | None = None,
    ):
        super().__init__(toasts, legacy_matching, clock, settings)
        self.api = api

    async def _fetch(self) -> tuple[SubscriptionSnapshot, list[SubscriptionEvent]]:
        return await asyncio.gather(self.api.get(), self.api.get_events())

    async def start_trial(self) -> SubscriptionSnapshot:
        async def operation() -> SubscriptionSnapshot:
            self._accept(await self.api.start_trial())
            self.events = await self.api.get_events()
            return self.snapshot

        snapshot = await self._run("start_trial", "Unable to start trial", operation)
        self.toasts.success("Trial started")
        return snapshot
