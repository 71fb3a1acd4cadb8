from uuid import UUID

from sqlalchemy.orm import Session

from app.models.restaurant_subscription import RestaurantSubscription, SubscriptionStatus


class SubscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> list[RestaurantSubscription]:
        return self.db.query(RestaurantSubscription).all()

    def get_by_id(self, subscription_id: UUID) -> RestaurantSubscription | None:
        return (
            self.db.query(RestaurantSubscription)
            .filter(RestaurantSubscription.id == subscription_id)
            .first()
        )

    def get_by_restaurant_id(self, restaurant_id: UUID) -> RestaurantSubscription | None:
        return (
            self.db.query(RestaurantSubscription)
            .filter(RestaurantSubscription.restaurant_id == restaurant_id)
            .first()
        )

    def get_unsuspended(self) -> list[RestaurantSubscription]:
        return (
            self.db.query(RestaurantSubscription)
            .filter(RestaurantSubscription.status != SubscriptionStatus.SUSPENDED.value)
            .all()
        )

    def create(self, restaurant_id: UUID) -> RestaurantSubscription:
        subscription = RestaurantSubscription(
            restaurant_id=restaurant_id,
            status=SubscriptionStatus.EXPIRED.value,
        )
        self.db.add(subscription)
        self.db.commit()
        self.db.refresh(subscription)
        return subscription

    def save(self, subscription: RestaurantSubscription) -> RestaurantSubscription:
        self.db.commit()
        self.db.refresh(subscription)
        return subscription
