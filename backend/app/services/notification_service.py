"""Service for creating and delivering in-app notifications."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.notification import Notification, NotificationType
from app.models.notification_preference import NotificationPreference
from app.repositories.notification_preference_repository import NotificationPreferenceRepository
from app.repositories.notification_repository import NotificationRepository
from app.schemas.notification import NotificationPreferenceUpdate, RealtimePayload
from app.services.realtime_gateway import RealtimeGateway, get_gateway

logger = logging.getLogger(__name__)


class NotificationService:
    """Persist notifications and push them to the recipient's live connections."""

    def __init__(self, db: Session, gateway: RealtimeGateway | None = None):
        self.db = db
        self.repo = NotificationRepository(db)
        self.preference_repo = NotificationPreferenceRepository(db)
        self.gateway = gateway or get_gateway()

    def create_notification(
        self,
        *,
        target_user_id: UUID,
        title: str,
        body: str = "",
        restaurant_id: UUID | None = None,
        type: NotificationType = NotificationType.GENERIC,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Create a notification and push it over the realtime gateway."""
        notification = self.repo.create(
            target_user_id=target_user_id,
            title=title,
            body=body,
            type=type,
            restaurant_id=restaurant_id,
            data=data,
        )
        payload = RealtimePayload.model_validate(notification).model_dump(mode="json")
        delivered = self.gateway.send_to_user(target_user_id, payload)
        logger.debug(
            "Notification %s for user %s pushed to %d connection(s)",
            notification.id,
            target_user_id,
            delivered,
        )
        return notification

    def list_for_user(
        self,
        user_id: UUID,
        *,
        page: int = 1,
        size: int = 20,
        unread_only: bool = False,
        order_by: str | None = None,
    ) -> tuple[list[Notification], int]:
        items = self.repo.get_for_user(
            user_id,
            skip=(page - 1) * size,
            limit=size,
            unread_only=unread_only,
            order_by=order_by,
        )
        total = self.repo.count_for_user(user_id, unread_only=unread_only)
        return items, total

    def unread_count(self, user_id: UUID) -> int:
        return self.repo.count_for_user(user_id, unread_only=True)

    def mark_read(self, user_id: UUID, notification_id: UUID) -> Notification:
        notification = self.repo.get_by_id(notification_id)
        if notification is None or notification.target_user_id != user_id:
            raise LookupError("Notification not found")
        result = self.repo.mark_as_read(notification_id)
        assert result is not None
        return result

    def mark_all_read(self, user_id: UUID) -> int:
        return self.repo.mark_all_as_read(user_id)

    def get_preferences(self, user_id: UUID) -> NotificationPreference:
        return self.preference_repo.get_or_create(user_id)

    def update_preferences(
        self, user_id: UUID, data: NotificationPreferenceUpdate
    ) -> NotificationPreference:
        return self.preference_repo.update(user_id, data)
