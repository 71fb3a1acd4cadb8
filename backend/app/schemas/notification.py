"""Pydantic schemas for Notification."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    id: UUID
    target_user_id: UUID
    restaurant_id: UUID | None
    type: str
    title: str
    body: str
    data: dict[str, Any] | None
    status: str
    read_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationPage(BaseModel):
    items: list[NotificationResponse]
    total: int
    page: int
    size: int


class NotificationCountResponse(BaseModel):
    unread_count: int


class RealtimePayload(BaseModel):
    """Shape pushed over both realtime transports."""

    id: UUID
    title: str | None = None
    body: str | None = None
    data: dict[str, Any] | None = None
    status: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class NotificationPreferenceResponse(BaseModel):
    in_app_enabled: bool
    email_enabled: bool

    model_config = {"from_attributes": True}


class NotificationPreferenceUpdate(BaseModel):
    in_app_enabled: bool | None = None
    email_enabled: bool | None = None
