from app.models.notification import Notification, NotificationStatus, NotificationType
from app.models.notification_preference import NotificationPreference
from app.models.restaurant import Restaurant, SubscriptionPlan
from app.models.restaurant_subscription import RestaurantSubscription, SubscriptionStatus
from app.models.subscription_event import SubscriptionEvent, SubscriptionEventType
from app.models.user import User, UserRole

__all__ = [
    "Notification",
    "NotificationPreference",
    "NotificationStatus",
    "NotificationType",
    "Restaurant",
    "RestaurantSubscription",
    "SubscriptionEvent",
    "SubscriptionEventType",
    "SubscriptionPlan",
    "SubscriptionStatus",
    "User",
    "UserRole",
]
