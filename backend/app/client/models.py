"""Client-side views of server payloads.

Timestamps are kept raw (ISO string, epoch number or legacy ``dd/MM/yyyy``)
and parsed by the reconciler, so a malformed value degrades to "no data"
instead of failing the whole payload. Field names accept both snake_case
and camelCase.
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

RawTimestamp = str | int | float | None


def _alias(snake: str, camel: str) -> Any:
    return Field(default=None, validation_alias=AliasChoices(snake, camel))


class SubscriptionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    restaurant_id: str | int | None = _alias("restaurant_id", "restaurantId")
    status: str | None = None
    trial_start_at: RawTimestamp = _alias("trial_start_at", "trialStartAt")
    trial_end_at: RawTimestamp = _alias("trial_end_at", "trialEndAt")
    trial_days_remaining: int | None = _alias("trial_days_remaining", "trialDaysRemaining")
    current_period_end_at: RawTimestamp = _alias("current_period_end_at", "currentPeriodEndAt")
    paid_days_remaining: int | None = _alias("paid_days_remaining", "paidDaysRemaining")
    grace_end_at: RawTimestamp = _alias("grace_end_at", "graceEndAt")
    grace_days_remaining: int | None = _alias("grace_days_remaining", "graceDaysRemaining")
    cancel_at_period_end: bool = Field(
        default=False,
        validation_alias=AliasChoices("cancel_at_period_end", "cancelAtPeriodEnd"),
    )

    @property
    def status_label(self) -> str:
        return (self.status or "").upper()


class SubscriptionEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str | int | None = None
    event_type: str = Field(
        default="", validation_alias=AliasChoices("event_type", "eventType")
    )
    # JSON document or plain text
    metadata: Any = None
    created_at: RawTimestamp = _alias("created_at", "createdAt")


class RealtimeNotification(BaseModel):
    """Payload delivered over either realtime transport."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: str | int
    title: str | None = None
    body: str | None = None
    data: Any = None
    status: str | None = None
    created_at: RawTimestamp = _alias("created_at", "createdAt")

    @classmethod
    def parse(cls, raw: Any) -> "RealtimeNotification | None":
        """Return None unless ``raw`` is an object carrying a non-null id."""
        if not isinstance(raw, dict) or raw.get("id") is None:
            return None
        try:
            return cls.model_validate(raw)
        except ValidationError:
            return None

    @property
    def toast_text(self) -> str:
        title = self.title or "Notification"
        return f"{title}: {self.body}" if self.body else title


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    in_app_enabled: bool = Field(
        default=True, validation_alias=AliasChoices("in_app_enabled", "inAppEnabled")
    )
    email_enabled: bool = Field(
        default=False, validation_alias=AliasChoices("email_enabled", "emailEnabled")
    )
