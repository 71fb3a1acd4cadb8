from uuid import UUID

from sqlalchemy.orm import Session

from app.models.restaurant import Restaurant, SubscriptionPlan


class RestaurantRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, restaurant_id: UUID) -> Restaurant | None:
        return self.db.query(Restaurant).filter(Restaurant.id == restaurant_id).first()

    def get_by_owner_id(self, owner_id: UUID) -> Restaurant | None:
        return self.db.query(Restaurant).filter(Restaurant.owner_id == owner_id).first()

    def create(
        self,
        *,
        name: str,
        owner_id: UUID,
        address: str | None = None,
        phone: str | None = None,
    ) -> Restaurant:
        restaurant = Restaurant(name=name, owner_id=owner_id, address=address, phone=phone)
        self.db.add(restaurant)
        self.db.commit()
        self.db.refresh(restaurant)
        return restaurant

    def set_plan(self, restaurant_id: UUID, plan: SubscriptionPlan) -> bool:
        """Sync the entitlement flag; returns True when the plan actually changed."""
        restaurant = self.get_by_id(restaurant_id)
        if restaurant is None or restaurant.subscription_plan == plan.value:
            return False
        restaurant.subscription_plan = plan.value  # type: ignore[assignment]
        self.db.commit()
        return True
