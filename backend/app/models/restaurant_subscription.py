from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, func

from app.core.database import Base
from app.models.restaurant import SubscriptionPlan
from app.models.shared import UUIDType, generate_uuid


class SubscriptionStatus(str, Enum):
    TRIALING = "TRIALING"
    ACTIVE = "ACTIVE"
    GRACE = "GRACE"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"
    CANCELED = "CANCELED"


class RestaurantSubscription(Base):
    __tablename__ = "restaurant_subscriptions"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    restaurant_id = Column(
        UUIDType,
        ForeignKey("restaurants.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        index=True,
    )
    plan = Column(String(10), nullable=False, default=SubscriptionPlan.PRO.value)
    status = Column(
        String(20), nullable=False, default=SubscriptionStatus.EXPIRED.value, index=True
    )
    trial_start_at = Column(DateTime(timezone=True), nullable=True)
    trial_end_at = Column(DateTime(timezone=True), nullable=True)
    current_period_start_at = Column(DateTime(timezone=True), nullable=True)
    current_period_end_at = Column(DateTime(timezone=True), nullable=True)
    grace_end_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
