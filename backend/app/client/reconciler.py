"""Derive the displayed subscription status and countdown from server state.

Everything here is a pure function of (snapshot, events, pending intent, now)
so the same inputs always render the same view.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any

from app.client.models import SubscriptionEvent, SubscriptionSnapshot

LEGACY_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")

TRIAL_LABELS = {"TRIALING", "TRAILING", "TRIAL"}
HARD_TERMINAL = {"EXPIRED", "CANCELED"}
SUSPEND_EVENT_TYPES = {"SUSPENDED"}
RELEASE_EVENT_TYPES = {"UNSUSPENDED", "ACTIVATED"}

_OLDEST = datetime.min.replace(tzinfo=UTC)


class EventKind(str, Enum):
    SUSPEND = "SUSPEND"
    RELEASE = "RELEASE"
    OTHER = "OTHER"


@dataclass(frozen=True)
class PendingIntent:
    """Optimistic suspend/unsuspend flag, superseded by the next authoritative fetch."""

    suspended: bool


@dataclass(frozen=True)
class SubscriptionView:
    display_status: str
    suspended: bool
    countdown_target: datetime | None
    countdown_text: str | None
    suspension_reason: str | None
    can_start_trial: bool
    can_set_trial_days: bool


def parse_date_safe(value: Any) -> datetime | None:
    """Parse an ISO string, epoch milliseconds or legacy ``dd/MM/yyyy`` into an aware datetime.

    Naive ISO values are server UTC. Legacy dates mean end of that day (23:59:59)
    in local time. Anything unparseable is None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        match = LEGACY_DATE_RE.match(text)
        if not match:
            return None
        day, month, year = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, 23, 59, 59).astimezone()
        except ValueError:
            return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def classify_event(event_type: str | None, legacy: bool = False) -> EventKind:
    """Classify an event type as suspending, releasing, or irrelevant.

    The default matches the closed set of server event types exactly. ``legacy``
    falls back to case-insensitive substring matching for free-form types.
    """
    label = (event_type or "").upper()
    if legacy:
        if "UNSUSPEND" in label or "ACTIVAT" in label:
            return EventKind.RELEASE
        if "SUSPEND" in label:
            return EventKind.SUSPEND
        return EventKind.OTHER
    if label in SUSPEND_EVENT_TYPES:
        return EventKind.SUSPEND
    if label in RELEASE_EVENT_TYPES:
        return EventKind.RELEASE
    return EventKind.OTHER


def sort_events_desc(events: Sequence[SubscriptionEvent]) -> list[SubscriptionEvent]:
    """Newest first; events with unparseable timestamps sort last."""
    return sorted(
        events,
        key=lambda ev: parse_date_safe(ev.created_at) or _OLDEST,
        reverse=True,
    )


def latest_state_event(
    events: Sequence[SubscriptionEvent], legacy: bool = False
) -> SubscriptionEvent | None:
    for event in sort_events_desc(events):
        if classify_event(event.event_type, legacy) is not EventKind.OTHER:
            return event
    return None


def suspended_by_events(events: Sequence[SubscriptionEvent], legacy: bool = False) -> bool:
    event = latest_state_event(events, legacy)
    return event is not None and classify_event(event.event_type, legacy) is EventKind.SUSPEND


def is_suspended(
    snapshot: SubscriptionSnapshot | None,
    events: Sequence[SubscriptionEvent],
    pending_intent: PendingIntent | None = None,
    legacy: bool = False,
) -> bool:
    if pending_intent is not None:
        return pending_intent.suspended
    if snapshot is not None and snapshot.status_label == "SUSPENDED":
        return True
    return suspended_by_events(events, legacy)


def suspension_reason(events: Sequence[SubscriptionEvent], legacy: bool = False) -> str | None:
    """Reason recorded on the most recent suspend event, if any.

    JSON metadata yields its non-blank ``reason``; any other metadata is shown as-is.
    """
    for event in sort_events_desc(events):
        if classify_event(event.event_type, legacy) is not EventKind.SUSPEND:
            continue
        metadata = event.metadata
        if metadata is None or metadata == "":
            return None
        parsed = metadata
        if isinstance(metadata, str):
            try:
                parsed = json.loads(metadata)
            except ValueError:
                return metadata
        if isinstance(parsed, dict):
            reason = parsed.get("reason")
            if isinstance(reason, str) and reason.strip():
                return reason
        return metadata if isinstance(metadata, str) else json.dumps(metadata)
    return None


def _future(value: datetime | None, now: datetime) -> datetime | None:
    return value if value is not None and value > now else None


def is_trialing(snapshot: SubscriptionSnapshot, now: datetime) -> bool:
    if (snapshot.trial_days_remaining or 0) > 0:
        return True
    if snapshot.status_label in TRIAL_LABELS:
        return True
    return _future(parse_date_safe(snapshot.trial_end_at), now) is not None


def display_status(snapshot: SubscriptionSnapshot | None, suspended: bool, now: datetime) -> str:
    if suspended:
        return "SUSPENDED"
    if snapshot is None:
        return "N/A"
    if snapshot.status_label == "GRACE":
        return "GRACE"
    if _future(parse_date_safe(snapshot.grace_end_at), now) is not None:
        return "GRACE"
    if (snapshot.paid_days_remaining or 0) > 0:
        return "ACTIVE"
    if is_trialing(snapshot, now):
        return "TRIALING"
    return snapshot.status or "N/A"


def countdown_target(
    snapshot: SubscriptionSnapshot | None, suspended: bool, now: datetime
) -> datetime | None:
    """Pick the single deadline to count down to: grace, then paid, then grace days, then trial."""
    if suspended or snapshot is None:
        return None
    grace_end = _future(parse_date_safe(snapshot.grace_end_at), now)
    if grace_end is not None:
        return grace_end

    paid_days = snapshot.paid_days_remaining or 0
    if paid_days > 0:
        period_end = _future(parse_date_safe(snapshot.current_period_end_at), now)
        return period_end or now + timedelta(days=paid_days)

    grace_days = snapshot.grace_days_remaining or 0
    if grace_days > 0:
        return now + timedelta(days=grace_days)

    trial_end = _future(parse_date_safe(snapshot.trial_end_at), now)
    if trial_end is not None and is_trialing(snapshot, now):
        return trial_end
    return None


def format_remaining(seconds: float) -> str:
    """``Dd HH:MM:SS`` when at least a day remains, else ``HH:MM:SS``."""
    total = int(seconds)
    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)
    if days > 0:
        return f"{days}d {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def countdown_text(target: datetime | None, status: str | None, now: datetime) -> str | None:
    """Render the remaining time; a passed target only reads "Expired" for terminal statuses."""
    if target is None:
        return None
    remaining = (target - now).total_seconds()
    if remaining <= 0:
        return "Expired" if (status or "").upper() in HARD_TERMINAL else None
    return format_remaining(remaining)


def can_start_trial(snapshot: SubscriptionSnapshot | None, suspended: bool) -> bool:
    if snapshot is None or suspended:
        return False
    if snapshot.trial_start_at or snapshot.trial_end_at:
        return False
    if snapshot.cancel_at_period_end:
        return False
    return snapshot.status_label in HARD_TERMINAL or not snapshot.status


def can_set_trial_days(snapshot: SubscriptionSnapshot | None) -> bool:
    if snapshot is None:
        return False
    if snapshot.status_label in ("TRIALING", "ACTIVE"):
        return False
    return not snapshot.trial_end_at


def render(
    snapshot: SubscriptionSnapshot | None,
    events: Sequence[SubscriptionEvent],
    pending_intent: PendingIntent | None = None,
    now: datetime | None = None,
    legacy: bool = False,
) -> SubscriptionView:
    now = now or datetime.now(UTC)
    suspended = is_suspended(snapshot, events, pending_intent, legacy)
    status = display_status(snapshot, suspended, now)
    target = countdown_target(snapshot, suspended, now)
    return SubscriptionView(
        display_status=status,
        suspended=suspended,
        countdown_target=target,
        countdown_text=countdown_text(target, snapshot.status if snapshot else None, now),
        suspension_reason=suspension_reason(events, legacy) if suspended else None,
        can_start_trial=can_start_trial(snapshot, suspended),
        can_set_trial_days=can_set_trial_days(snapshot),
    )
