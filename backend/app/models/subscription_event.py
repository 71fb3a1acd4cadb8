"""Append-only log of subscription lifecycle transitions."""

from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, String, Text

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid, utc_now


class SubscriptionEventType(str, Enum):
    CREATED = "CREATED"
    TRIAL_STARTED = "TRIAL_STARTED"
    TRIAL_DAYS_SET = "TRIAL_DAYS_SET"
    PAID_DAYS_SET = "PAID_DAYS_SET"
    ADMIN_GRANT = "ADMIN_GRANT"
    MANUAL_PAYMENT_GRANT = "MANUAL_PAYMENT_GRANT"
    SUSPENDED = "SUSPENDED"
    UNSUSPENDED = "UNSUSPENDED"
    ACTIVATED = "ACTIVATED"
    TRIAL_GRACE_STARTED = "TRIAL_GRACE_STARTED"
    TRIAL_EXPIRED = "TRIAL_EXPIRED"
    PERIOD_GRACE_STARTED = "PERIOD_GRACE_STARTED"
    SUBSCRIPTION_EXPIRED = "SUBSCRIPTION_EXPIRED"


class SubscriptionEvent(Base):
    __tablename__ = "restaurant_subscription_events"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    subscription_id = Column(
        UUIDType,
        ForeignKey("restaurant_subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event_type = Column(String(32), nullable=False, index=True)
    # JSON document or plain text, stored verbatim
    event_metadata = Column("metadata", Text, nullable=True)
    # Python-side default keeps sub-second ordering on SQLite
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
