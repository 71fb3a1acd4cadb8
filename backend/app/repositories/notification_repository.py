"""Repository for Notification CRUD operations."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.sorting import apply_order_by
from app.models.notification import Notification, NotificationStatus, NotificationType
from app.models.shared import utc_now


SORTABLE_FIELDS = ("created_at", "read_at", "title", "status", "type")


class NotificationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        target_user_id: UUID,
        title: str,
        body: str = "",
        type: NotificationType = NotificationType.GENERIC,
        restaurant_id: UUID | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        notification = Notification(
            target_user_id=target_user_id,
            restaurant_id=restaurant_id,
            type=type.value,
            title=title,
            body=body,
            data=data,
            status=NotificationStatus.NEW.value,
        )
        self.db.add(notification)
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def get_by_id(self, notification_id: UUID) -> Notification | None:
        return (
            self.db.query(Notification)
            .filter(Notification.id == notification_id)
            .first()
        )

    def get_for_user(
        self,
        user_id: UUID,
        skip: int = 0,
        limit: int = 20,
        unread_only: bool = False,
        order_by: str | None = None,
    ) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.target_user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        query = apply_order_by(query, Notification, order_by, SORTABLE_FIELDS)
        return query.offset(skip).limit(limit).all()

    def count_for_user(self, user_id: UUID, unread_only: bool = False) -> int:
        query = self.db.query(Notification).filter(Notification.target_user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        return query.count()

    def mark_as_read(self, notification_id: UUID) -> Notification | None:
        notification = self.get_by_id(notification_id)
        if notification is None:
            return None
        if notification.read_at is None:
            notification.read_at = utc_now()  # type: ignore[assignment]
        notification.status = NotificationStatus.READ.value  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: UUID) -> int:
        count = (
            self.db.query(Notification)
            .filter(
                Notification.target_user_id == user_id,
                Notification.read_at.is_(None),
            )
            .update(
                {"read_at": utc_now(), "status": NotificationStatus.READ.value},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return count
