"""Service for restaurant subscription lifecycle: trials, paid periods, suspension and daily checks."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.notification import NotificationType
from app.models.restaurant import SubscriptionPlan
from app.models.restaurant_subscription import RestaurantSubscription, SubscriptionStatus
from app.models.shared import as_utc, utc_now
from app.models.subscription_event import SubscriptionEvent, SubscriptionEventType
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.subscription_event_repository import SubscriptionEventRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.schemas.subscription import RestaurantSubscriptionResponse
from app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

ACCESS_STATUSES = {
    SubscriptionStatus.TRIALING.value,
    SubscriptionStatus.ACTIVE.value,
    SubscriptionStatus.GRACE.value,
}


class SubscriptionErrorType(str, Enum):
    RESTAURANT_NOT_FOUND = "RESTAURANT_NOT_FOUND"
    INVALID_PARAMETERS = "INVALID_PARAMETERS"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    TRIAL_ALREADY_USED = "TRIAL_ALREADY_USED"
    NOT_SUSPENDED = "NOT_SUSPENDED"


class SubscriptionError(ValueError):
    """Lifecycle rule violation; routers map RESTAURANT_NOT_FOUND to 404 and the rest to 400."""

    def __init__(self, error_type: SubscriptionErrorType, message: str):
        super().__init__(message)
        self.error_type = error_type


def days_remaining(end: datetime | None, now: datetime) -> int | None:
    """Calendar days from today until the end date, floored at 0."""
    end = as_utc(end)
    if end is None:
        return None
    return max((end.date() - now.date()).days, 0)


class SubscriptionService:
    """Service owning every subscription state transition."""

    def __init__(
        self,
        db: Session,
        notification_service: NotificationService | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.subscription_repo = SubscriptionRepository(db)
        self.event_repo = SubscriptionEventRepository(db)
        self.restaurant_repo = RestaurantRepository(db)
        self.notification_service = notification_service or NotificationService(db)
        self.clock = clock

    # ── Reads ──

    def ensure_subscription(self, restaurant_id: UUID) -> RestaurantSubscription:
        """Return the restaurant's subscription, creating an EXPIRED one on first access."""
        subscription = self.subscription_repo.get_by_restaurant_id(restaurant_id)
        if subscription is not None:
            return subscription

        if self.restaurant_repo.get_by_id(restaurant_id) is None:
            raise SubscriptionError(
                SubscriptionErrorType.RESTAURANT_NOT_FOUND,
                f"Restaurant {restaurant_id} not found",
            )
        subscription = self.subscription_repo.create(restaurant_id)
        self._record(subscription, SubscriptionEventType.CREATED)
        logger.info("Created subscription %s for restaurant %s", subscription.id, restaurant_id)
        return subscription

    def list_events(self, restaurant_id: UUID) -> list[SubscriptionEvent]:
        subscription = self.ensure_subscription(restaurant_id)
        return self.event_repo.get_for_subscription(subscription.id)  # type: ignore[arg-type]

    def to_response(self, subscription: RestaurantSubscription) -> RestaurantSubscriptionResponse:
        """Serialize a snapshot with the derived remaining-day counters."""
        now = self.clock()
        response = RestaurantSubscriptionResponse.model_validate(subscription)
        response.trial_days_remaining = days_remaining(subscription.trial_end_at, now)  # type: ignore[arg-type]
        response.paid_days_remaining = days_remaining(subscription.current_period_end_at, now)  # type: ignore[arg-type]
        response.grace_days_remaining = days_remaining(subscription.grace_end_at, now)  # type: ignore[arg-type]
        return response

    # ── Owner actions ──

    def start_trial(self, restaurant_id: UUID) -> RestaurantSubscription:
        subscription = self.ensure_subscription(restaurant_id)
        if not settings.SUB_TRIAL_ENABLED:
            raise SubscriptionError(
                SubscriptionErrorType.INVALID_STATE_TRANSITION, "Trial is currently disabled"
            )
        if subscription.status == SubscriptionStatus.SUSPENDED.value:
            raise SubscriptionError(
                SubscriptionErrorType.INVALID_STATE_TRANSITION,
                "Cannot start a trial while the subscription is suspended",
            )
        if settings.SUB_TRIAL_ONCE_PER_RESTAURANT and subscription.trial_start_at is not None:
            raise SubscriptionError(
                SubscriptionErrorType.TRIAL_ALREADY_USED, "Trial already used for this restaurant"
            )
        if subscription.status in (
            SubscriptionStatus.TRIALING.value,
            SubscriptionStatus.ACTIVE.value,
        ):
            raise SubscriptionError(
                SubscriptionErrorType.INVALID_STATE_TRANSITION,
                f"Cannot start a trial from status {subscription.status}",
            )

        now = self.clock()
        subscription.trial_start_at = now  # type: ignore[assignment]
        subscription.trial_end_at = now + timedelta(days=settings.SUB_TRIAL_DAYS_DEFAULT)  # type: ignore[assignment]
        subscription.grace_end_at = None  # type: ignore[assignment]
        subscription.status = SubscriptionStatus.TRIALING.value  # type: ignore[assignment]
        subscription = self.subscription_repo.save(subscription)
        self._record(subscription, SubscriptionEventType.TRIAL_STARTED)
        self._sync_plan(subscription, SubscriptionPlan.PRO)
        return subscription

    # ── Admin actions ──

    def set_trial_days(self, restaurant_id: UUID, days: int) -> RestaurantSubscription:
        """Overwrite the trial window with now..now+days."""
        self._validate_days(days)
        subscription = self.ensure_subscription(restaurant_id)
        now = self.clock()

        subscription.trial_start_at = now  # type: ignore[assignment]
        subscription.trial_end_at = now + timedelta(days=days)  # type: ignore[assignment]
        period_end = as_utc(subscription.current_period_end_at)  # type: ignore[arg-type]
        paid_running = period_end is not None and period_end > now
        if not paid_running and not self._is_suspended(subscription):
            subscription.status = SubscriptionStatus.TRIALING.value  # type: ignore[assignment]
            subscription.grace_end_at = None  # type: ignore[assignment]
        subscription = self.subscription_repo.save(subscription)

        self._record(subscription, SubscriptionEventType.TRIAL_DAYS_SET, {"days": days})
        if not paid_running:
            self._sync_plan(subscription, SubscriptionPlan.PRO)
        return subscription

    def set_paid_days(self, restaurant_id: UUID, days: int) -> RestaurantSubscription:
        """Overwrite the paid period with now..now+days."""
        self._validate_days(days)
        subscription = self.ensure_subscription(restaurant_id)
        now = self.clock()

        subscription.current_period_start_at = now  # type: ignore[assignment]
        subscription.current_period_end_at = now + timedelta(days=days)  # type: ignore[assignment]
        self._activate(subscription)
        subscription = self.subscription_repo.save(subscription)

        self._sync_plan(subscription, SubscriptionPlan.PRO)
        self._record(subscription, SubscriptionEventType.PAID_DAYS_SET, {"days": days})
        return subscription

    def grant_paid_days(
        self,
        restaurant_id: UUID,
        days: int,
        source: str = "ADMIN",
        metadata: dict[str, Any] | None = None,
    ) -> RestaurantSubscription:
        """Extend the paid period by ``days``, stacking on a still-running period."""
        self._validate_days(days)
        try:
            event_type = SubscriptionEventType(f"{source.strip().upper()}_GRANT")
        except ValueError:
            raise SubscriptionError(
                SubscriptionErrorType.INVALID_PARAMETERS, f"Unknown grant source: {source}"
            ) from None

        subscription = self.ensure_subscription(restaurant_id)
        now = self.clock()
        period_end = as_utc(subscription.current_period_end_at)  # type: ignore[arg-type]
        if period_end is None or period_end < now:
            subscription.current_period_start_at = now  # type: ignore[assignment]
            new_end = now + timedelta(days=days)
        else:
            new_end = period_end + timedelta(days=days)
        subscription.current_period_end_at = new_end  # type: ignore[assignment]
        self._activate(subscription)
        subscription = self.subscription_repo.save(subscription)

        self._sync_plan(subscription, SubscriptionPlan.PRO)
        self._record(subscription, event_type, {"days": days, **(metadata or {})})
        self._notify_owner(
            subscription,
            "Subscription extended",
            f"Your PRO subscription has been extended to {new_end.date().isoformat()}.",
            {
                "subscription_id": str(subscription.id),
                "current_period_end_at": new_end.isoformat(),
                "source": source.upper(),
            },
        )
        return subscription

    def suspend(self, restaurant_id: UUID, reason: str | None = None) -> RestaurantSubscription:
        """Suspend immediately: end the paid period now and revoke PRO entitlements."""
        subscription = self.ensure_subscription(restaurant_id)
        now = self.clock()

        subscription.current_period_end_at = now  # type: ignore[assignment]
        subscription.status = SubscriptionStatus.SUSPENDED.value  # type: ignore[assignment]
        subscription.cancel_at_period_end = True  # type: ignore[assignment]
        subscription.canceled_at = now  # type: ignore[assignment]
        subscription.grace_end_at = None  # type: ignore[assignment]
        subscription = self.subscription_repo.save(subscription)

        self._sync_plan(subscription, SubscriptionPlan.BASIC)
        reason = (reason or "").strip() or None
        self._record(
            subscription,
            SubscriptionEventType.SUSPENDED,
            {"reason": reason} if reason else None,
        )
        body = "Your subscription has been suspended."
        if reason:
            body += f" Reason: {reason}"
        self._notify_owner(
            subscription, "Subscription suspended", body, {"subscription_id": str(subscription.id)}
        )
        logger.info("Suspended subscription %s (restaurant %s)", subscription.id, restaurant_id)
        return subscription

    def unsuspend(self, restaurant_id: UUID) -> RestaurantSubscription:
        """Lift a suspension, restoring the status the timelines imply."""
        subscription = self.ensure_subscription(restaurant_id)
        if not self._is_suspended(subscription):
            raise SubscriptionError(
                SubscriptionErrorType.NOT_SUSPENDED, "Subscription is not suspended"
            )

        now = self.clock()
        grace = timedelta(days=settings.SUB_GRACE_DAYS_DEFAULT)
        period_end = as_utc(subscription.current_period_end_at)  # type: ignore[arg-type]
        trial_end = as_utc(subscription.trial_end_at)  # type: ignore[arg-type]

        new_status = SubscriptionStatus.EXPIRED
        grace_end: datetime | None = None
        window_end = period_end if period_end is not None else trial_end
        if window_end is not None:
            if now < window_end:
                new_status = (
                    SubscriptionStatus.ACTIVE
                    if period_end is not None
                    else SubscriptionStatus.TRIALING
                )
            elif now < window_end + grace:
                new_status = SubscriptionStatus.GRACE
                grace_end = window_end + grace

        subscription.status = new_status.value  # type: ignore[assignment]
        subscription.grace_end_at = grace_end  # type: ignore[assignment]
        if new_status.value in ACCESS_STATUSES:
            subscription.cancel_at_period_end = False  # type: ignore[assignment]
            subscription.canceled_at = None  # type: ignore[assignment]
        subscription = self.subscription_repo.save(subscription)

        self._sync_plan(
            subscription,
            SubscriptionPlan.PRO if new_status.value in ACCESS_STATUSES else SubscriptionPlan.BASIC,
        )
        self._record(subscription, SubscriptionEventType.UNSUSPENDED)
        logger.info(
            "Unsuspended subscription %s (restaurant %s) -> %s",
            subscription.id,
            restaurant_id,
            new_status.value,
        )
        return subscription

    # ── Scheduled checks ──

    def run_daily_checks(self) -> int:
        """Send expiry reminders and apply GRACE/EXPIRED transitions.

        Returns the number of status transitions applied.
        """
        now = self.clock()
        grace = timedelta(days=settings.SUB_GRACE_DAYS_DEFAULT)
        trial_notice = timedelta(days=settings.SUB_NOTIFY_DAYS_BEFORE_TRIAL_END)
        period_notice = timedelta(days=settings.SUB_NOTIFY_DAYS_BEFORE_PERIOD_END)
        transitions = 0

        for subscription in self.subscription_repo.get_unsuspended():
            if self.restaurant_repo.get_by_id(subscription.restaurant_id) is None:  # type: ignore[arg-type]
                continue
            trial_end = as_utc(subscription.trial_end_at)  # type: ignore[arg-type]
            period_end = as_utc(subscription.current_period_end_at)  # type: ignore[arg-type]

            if trial_end is not None and period_end is None:
                if (
                    subscription.status == SubscriptionStatus.TRIALING.value
                    and trial_end - trial_notice <= now < trial_end
                ):
                    self._notify_owner(
                        subscription,
                        "Trial ending soon",
                        f"Your trial ends on {trial_end.date().isoformat()}.",
                        {"subscription_id": str(subscription.id), "phase": "TRIAL"},
                    )
                if now >= trial_end:
                    transitions += self._expire_window(
                        subscription,
                        now,
                        trial_end + grace,
                        SubscriptionEventType.TRIAL_GRACE_STARTED,
                        SubscriptionEventType.TRIAL_EXPIRED,
                        ("Trial expired", "Your trial has expired."),
                    )

            if (
                subscription.status
                in (SubscriptionStatus.ACTIVE.value, SubscriptionStatus.GRACE.value)
                and period_end is not None
            ):
                if period_end - period_notice <= now < period_end:
                    self._notify_owner(
                        subscription,
                        "Subscription ending soon",
                        f"Your PRO period ends on {period_end.date().isoformat()}.",
                        {"subscription_id": str(subscription.id), "phase": "PAID"},
                    )
                if now >= period_end:
                    transitions += self._expire_window(
                        subscription,
                        now,
                        period_end + grace,
                        SubscriptionEventType.PERIOD_GRACE_STARTED,
                        SubscriptionEventType.SUBSCRIPTION_EXPIRED,
                        ("Subscription expired", "Your PRO subscription has expired."),
                    )

        logger.info("Daily subscription checks applied %d transition(s)", transitions)
        return transitions

    def _expire_window(
        self,
        subscription: RestaurantSubscription,
        now: datetime,
        grace_end: datetime,
        grace_event: SubscriptionEventType,
        expired_event: SubscriptionEventType,
        expired_message: tuple[str, str],
    ) -> int:
        if now < grace_end:
            self._sync_plan(subscription, SubscriptionPlan.PRO)
            if subscription.status == SubscriptionStatus.GRACE.value:
                return 0
            subscription.status = SubscriptionStatus.GRACE.value  # type: ignore[assignment]
            subscription.grace_end_at = grace_end  # type: ignore[assignment]
            self.subscription_repo.save(subscription)
            self._record(subscription, grace_event)
            return 1

        self._sync_plan(subscription, SubscriptionPlan.BASIC)
        if subscription.status == SubscriptionStatus.EXPIRED.value:
            return 0
        subscription.status = SubscriptionStatus.EXPIRED.value  # type: ignore[assignment]
        self.subscription_repo.save(subscription)
        self._record(subscription, expired_event)
        title, body = expired_message
        self._notify_owner(subscription, title, body, {"subscription_id": str(subscription.id)})
        return 1

    # ── Helpers ──

    @staticmethod
    def _validate_days(days: int) -> None:
        if days <= 0:
            raise SubscriptionError(SubscriptionErrorType.INVALID_PARAMETERS, "Days must be > 0")

    @staticmethod
    def _is_suspended(subscription: RestaurantSubscription) -> bool:
        return subscription.status == SubscriptionStatus.SUSPENDED.value

    def _activate(self, subscription: RestaurantSubscription) -> None:
        # A suspension stays in force until explicitly lifted
        if self._is_suspended(subscription):
            return
        subscription.status = SubscriptionStatus.ACTIVE.value  # type: ignore[assignment]
        subscription.cancel_at_period_end = False  # type: ignore[assignment]
        subscription.canceled_at = None  # type: ignore[assignment]
        subscription.grace_end_at = None  # type: ignore[assignment]

    def _sync_plan(self, subscription: RestaurantSubscription, plan: SubscriptionPlan) -> None:
        if self._is_suspended(subscription):
            plan = SubscriptionPlan.BASIC
        self.restaurant_repo.set_plan(subscription.restaurant_id, plan)  # type: ignore[arg-type]

    def _record(
        self,
        subscription: RestaurantSubscription,
        event_type: SubscriptionEventType,
        metadata: dict[str, Any] | None = None,
    ) -> SubscriptionEvent:
        return self.event_repo.create(
            subscription.id,  # type: ignore[arg-type]
            event_type,
            json.dumps(metadata) if metadata else None,
        )

    def _notify_owner(
        self,
        subscription: RestaurantSubscription,
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> None:
        """Notify the restaurant owner; delivery failures never roll back a transition."""
        restaurant = self.restaurant_repo.get_by_id(subscription.restaurant_id)  # type: ignore[arg-type]
        if restaurant is None:
            return
        owner_id, restaurant_id = restaurant.owner_id, restaurant.id
        try:
            self.notification_service.create_notification(
                target_user_id=owner_id,  # type: ignore[arg-type]
                restaurant_id=restaurant_id,  # type: ignore[arg-type]
                type=NotificationType.SUBSCRIPTION,
                title=title,
                body=body,
                data=data,
            )
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Failed to notify owner %s of restaurant %s: %s", owner_id, restaurant_id, title
            )
