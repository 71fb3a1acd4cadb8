"""Notification model for the per-user in-app notification feed."""

from enum import Enum

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String

from app.core.database import Base
from app.models.shared import UUIDType, generate_uuid, utc_now


class NotificationType(str, Enum):
    GENERIC = "GENERIC"
    ORDER = "ORDER"
    SUBSCRIPTION = "SUBSCRIPTION"
    BROADCAST = "BROADCAST"


class NotificationStatus(str, Enum):
    NEW = "NEW"
    READ = "READ"


class Notification(Base):
    """Notification model - one row per recipient, pushed over the realtime gateway."""

    __tablename__ = "notifications"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    target_user_id = Column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    restaurant_id = Column(
        UUIDType,
        ForeignKey("restaurants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    type = Column(String(20), nullable=False, default=NotificationType.GENERIC.value)
    title = Column(String(255), nullable=False)
    body = Column(String(1000), nullable=False, default="")
    data = Column(JSON, nullable=True)
    status = Column(String(10), nullable=False, default=NotificationStatus.NEW.value, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
