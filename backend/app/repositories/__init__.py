from app.repositories.notification_preference_repository import NotificationPreferenceRepository
from app.repositories.notification_repository import NotificationRepository
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.subscription_event_repository import SubscriptionEventRepository
from app.repositories.subscription_repository import SubscriptionRepository
from app.repositories.user_repository import UserRepository

__all__ = [
    "NotificationPreferenceRepository",
    "NotificationRepository",
    "RestaurantRepository",
    "SubscriptionEventRepository",
    "SubscriptionRepository",
    "UserRepository",
]
