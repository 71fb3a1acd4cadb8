from app.schemas.account import RestaurantDetailResponse, UserDetailResponse
from app.schemas.notification import (
    NotificationCountResponse,
    NotificationPage,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    NotificationResponse,
    RealtimePayload,
)
from app.schemas.subscription import (
    DailyCheckResponse,
    DaysRequest,
    RestaurantSubscriptionResponse,
    SubscriptionEventResponse,
    SuspendRequest,
)

__all__ = [
    "DailyCheckResponse",
    "DaysRequest",
    "NotificationCountResponse",
    "NotificationPage",
    "NotificationPreferenceResponse",
    "NotificationPreferenceUpdate",
    "NotificationResponse",
    "RealtimePayload",
    "RestaurantDetailResponse",
    "RestaurantSubscriptionResponse",
    "SubscriptionEventResponse",
    "SuspendRequest",
    "UserDetailResponse",
]
