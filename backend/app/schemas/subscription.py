from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.restaurant_subscription import SubscriptionStatus


class RestaurantSubscriptionResponse(BaseModel):
    """Authoritative subscription snapshot, with remaining-day counters derived at read time."""

    id: UUID
    restaurant_id: UUID
    plan: str
    status: SubscriptionStatus
    trial_start_at: datetime | None
    trial_end_at: datetime | None
    current_period_start_at: datetime | None
    current_period_end_at: datetime | None
    grace_end_at: datetime | None
    cancel_at_period_end: bool
    canceled_at: datetime | None
    trial_days_remaining: int | None = None
    paid_days_remaining: int | None = None
    grace_days_remaining: int | None = None

    model_config = {"from_attributes": True}


class SubscriptionEventResponse(BaseModel):
    id: UUID
    subscription_id: UUID
    event_type: str
    metadata: str | None = Field(default=None, validation_alias="event_metadata")
    created_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class DaysRequest(BaseModel):
    """Request body for grant / set-trial-days / set-paid-days."""

    days: int = Field(..., gt=0, le=3650, description="Number of whole days, must be > 0.")


class SuspendRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class DailyCheckResponse(BaseModel):
    status: str = "ok"
    transitions: int
