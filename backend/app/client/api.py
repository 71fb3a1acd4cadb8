"""Async REST clients for the subscription, notification and lookup endpoints."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

import httpx

from app.client.config import ClientSettings
from app.client.models import NotificationPreferences, SubscriptionEvent, SubscriptionSnapshot

logger = logging.getLogger(__name__)

Identifier = UUID | str | int


class ApiError(Exception):
    """A non-2xx response or a failed request; ``message`` is the server's detail when present."""

    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase or f"HTTP {response.status_code}"
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    if isinstance(detail, list):
        # FastAPI validation errors
        return "; ".join(str(item.get("msg", item)) for item in detail if isinstance(item, dict))
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return response.reason_phrase or f"HTTP {response.status_code}"


def create_http_client(
    token: str | None = None,
    settings: ClientSettings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    settings = settings or ClientSettings()
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return httpx.AsyncClient(
        base_url=settings.rest_base,
        headers=headers,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
        transport=transport,
    )


class _ApiBase:
    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(None, str(exc) or exc.__class__.__name__) from exc
        if response.is_error:
            raise ApiError(response.status_code, error_message(response))
        if not response.content:
            return None
        return response.json()


class SubscriptionApi(_ApiBase):
    """Super-admin lifecycle endpoints for any restaurant."""

    prefix = "/admin/subscriptions"

    async def get(self, restaurant_id: Identifier) -> SubscriptionSnapshot:
        data = await self._request("GET", f"{self.prefix}/{restaurant_id}")
        return SubscriptionSnapshot.model_validate(data)

    async def get_events(self, restaurant_id: Identifier) -> list[SubscriptionEvent]:
        data = await self._request("GET", f"{self.prefix}/{restaurant_id}/events")
        return [SubscriptionEvent.model_validate(item) for item in data or []]

    async def grant(self, restaurant_id: Identifier, days: int) -> SubscriptionSnapshot:
        return await self._mutate(restaurant_id, "grant", {"days": days})

    async def set_trial_days(self, restaurant_id: Identifier, days: int) -> SubscriptionSnapshot:
        return await self._mutate(restaurant_id, "set-trial-days", {"days": days})

    async def set_paid_days(self, restaurant_id: Identifier, days: int) -> SubscriptionSnapshot:
        return await self._mutate(restaurant_id, "set-paid-days", {"days": days})

    async def suspend(
        self, restaurant_id: Identifier, reason: str | None = None
    ) -> SubscriptionSnapshot:
        return await self._mutate(restaurant_id, "suspend", {"reason": reason})

    async def unsuspend(self, restaurant_id: Identifier) -> SubscriptionSnapshot:
        return await self._mutate(restaurant_id, "unsuspend")

    async def start_trial(self, restaurant_id: Identifier) -> SubscriptionSnapshot:
        return await self._mutate(restaurant_id, "start-trial")

    async def debug_run_daily(self) -> int:
        """Run the server's daily sweep now; returns the number of transitions applied."""
        data = await self._request("POST", f"{self.prefix}/debug/run-daily")
        return int((data or {}).get("transitions", 0))

    async def _mutate(
        self, restaurant_id: Identifier, action: str, body: dict[str, Any] | None = None
    ) -> SubscriptionSnapshot:
        data = await self._request("POST", f"{self.prefix}/{restaurant_id}/{action}", json=body)
        return SubscriptionSnapshot.model_validate(data)


class OwnerSubscriptionApi(_ApiBase):
    """The signed-in owner's own subscription."""

    prefix = "/owner/subscription"

    async def get(self) -> SubscriptionSnapshot:
        return SubscriptionSnapshot.model_validate(await self._request("GET", self.prefix))

    async def get_events(self) -> list[SubscriptionEvent]:
        data = await self._request("GET", f"{self.prefix}/events")
        return [SubscriptionEvent.model_validate(item) for item in data or []]

    async def start_trial(self) -> SubscriptionSnapshot:
        data = await self._request("POST", f"{self.prefix}/start-trial")
        return SubscriptionSnapshot.model_validate(data)


class NotificationApi(_ApiBase):
    prefix = "/notifications"

    async def get_preferences(self) -> NotificationPreferences:
        data = await self._request("GET", f"{self.prefix}/preferences")
        return NotificationPreferences.model_validate(data or {})

    async def update_preferences(self, **changes: bool) -> NotificationPreferences:
        data = await self._request("PUT", f"{self.prefix}/preferences", json=changes)
        return NotificationPreferences.model_validate(data or {})

    async def list_notifications(
        self, page: int = 1, size: int = 20, unread_only: bool = False
    ) -> dict[str, Any]:
        params = {"page": page, "size": size, "unread_only": str(unread_only).lower()}
        return await self._request("GET", self.prefix, params=params)

    async def unread_count(self) -> int:
        data = await self._request("GET", f"{self.prefix}/unread-count")
        return int((data or {}).get("unread_count", 0))

    async def mark_read(self, notification_id: Identifier) -> dict[str, Any]:
        return await self._request("POST", f"{self.prefix}/{notification_id}/read")

    async def mark_all_read(self) -> int:
        data = await self._request("POST", f"{self.prefix}/read-all")
        return int((data or {}).get("unread_count", 0))


class AdminLookupApi(_ApiBase):
    async def get_user_details(self, user_id: Identifier) -> dict[str, Any]:
        return await self._request("GET", f"/admin/users/{user_id}")

    async def get_restaurant_details(self, restaurant_id: Identifier) -> dict[str, Any]:
        return await self._request("GET", f"/admin/restaurants/{restaurant_id}")
