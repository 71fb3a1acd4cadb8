from uuid import UUID

from sqlalchemy.orm import Session

from app.models.subscription_event import SubscriptionEvent, SubscriptionEventType


class SubscriptionEventRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        subscription_id: UUID,
        event_type: SubscriptionEventType,
        metadata: str | None = None,
    ) -> SubscriptionEvent:
        event = SubscriptionEvent(
            subscription_id=subscription_id,
            event_type=event_type.value,
            event_metadata=metadata,
        )
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_for_subscription(self, subscription_id: UUID) -> list[SubscriptionEvent]:
        """Return the event log newest first."""
        return (
            self.db.query(SubscriptionEvent)
            .filter(SubscriptionEvent.subscription_id == subscription_id)
            .order_by(SubscriptionEvent.created_at.desc())
            .all()
        )
