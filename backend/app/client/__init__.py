from app.client.actions import (
    ConfirmGate,
    OwnerSubscriptionController,
    SubscriptionController,
    ValidationError,
)
from app.client.api import (
    AdminLookupApi,
    ApiError,
    NotificationApi,
    OwnerSubscriptionApi,
    SubscriptionApi,
    create_http_client,
)
from app.client.config import ClientSettings
from app.client.countdown import CountdownTicker
from app.client.enhancer import DetailCache, NotificationEnhancer
from app.client.event_history import EventHistory
from app.client.polling import IntervalPoller
from app.client.reconciler import PendingIntent, SubscriptionView, render
from app.client.toasts import ToastSink, ToastType
from app.client.transport import (
    ChannelRole,
    ConnectionState,
    Phase,
    RealtimeTransportManager,
)

__all__ = [
    "AdminLookupApi",
    "ApiError",
    "ChannelRole",
    "ClientSettings",
    "ConfirmGate",
    "ConnectionState",
    "CountdownTicker",
    "DetailCache",
    "EventHistory",
    "IntervalPoller",
    "NotificationApi",
    "NotificationEnhancer",
    "OwnerSubscriptionApi",
    "OwnerSubscriptionController",
    "PendingIntent",
    "Phase",
    "RealtimeTransportManager",
    "SubscriptionApi",
    "SubscriptionController",
    "SubscriptionView",
    "ToastSink",
    "ToastType",
    "ValidationError",
    "render",
]
