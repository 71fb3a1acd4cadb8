"""Attach user and restaurant details to admin notification listings."""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from app.client.api import AdminLookupApi, ApiError

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def fallback_user(user_id: Any) -> Record:
    return {
        "id": user_id,
        "full_name": f"User {user_id}",
        "email": "unknown@example.com",
        "role": "UNKNOWN",
    }


def fallback_restaurant(restaurant_id: Any) -> Record:
    return {
        "id": restaurant_id,
        "name": f"Restaurant {restaurant_id}",
        "address": "Unknown address",
        "phone": "Unknown phone",
    }


class DetailCache:
    """Get-or-fetch cache; a failed fetch caches a placeholder record instead."""

    def __init__(
        self,
        fetch: Callable[[Any], Awaitable[Record]],
        fallback: Callable[[Any], Record],
    ):
        self.fetch = fetch
        self.fallback = fallback
        self._entries: dict[str, Record] = {}

    def __contains__(self, key: Any) -> bool:
        return str(key) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: Any) -> Record:
        cache_key = str(key)
        if cache_key in self._entries:
            return self._entries[cache_key]
        try:
            record = await self.fetch(key)
        except ApiError as exc:
            logger.warning("Detail lookup for %s failed: %s", key, exc)
            record = self.fallback(key)
        self._entries[cache_key] = record
        return record

    async def prefetch(self, keys: Iterable[Any]) -> None:
        missing = {str(key): key for key in keys if key is not None and key not in self}
        if missing:
            await asyncio.gather(*(self.get(key) for key in missing.values()))

    def clear(self) -> None:
        self._entries.clear()


def _field(notification: Record, snake: str, camel: str) -> Any:
    value = notification.get(snake)
    return value if value is not None else notification.get(camel)


class NotificationEnhancer:
    def __init__(self, lookup: AdminLookupApi):
        self.users = DetailCache(lookup.get_user_details, fallback_user)
        self.restaurants = DetailCache(lookup.get_restaurant_details, fallback_restaurant)

    async def enhance(self, notification: Record) -> Record:
        enhanced = dict(notification)

        data = notification.get("data")
        if isinstance(data, str) and data:
            try:
                enhanced["parsed_data"] = json.loads(data)
            except ValueError:
                logger.warning("Notification %s has non-JSON data", notification.get("id"))
        elif isinstance(data, dict | list):
            enhanced["parsed_data"] = data

        user_id = _field(notification, "target_user_id", "targetUserId")
        if user_id is not None:
            enhanced["target_user"] = await self.users.get(user_id)

        restaurant_id = _field(notification, "restaurant_id", "restaurantId")
        if restaurant_id is not None:
            enhanced["restaurant"] = await self.restaurants.get(restaurant_id)
        return enhanced

    async def enhance_many(self, notifications: list[Record]) -> list[Record]:
        """Enhance a page, fetching each distinct user and restaurant once."""
        await asyncio.gather(
            self.users.prefetch(_field(n, "target_user_id", "targetUserId") for n in notifications),
            self.restaurants.prefetch(_field(n, "restaurant_id", "restaurantId") for n in notifications),
        )
        return list(await asyncio.gather(*(self.enhance(n) for n in notifications)))

    def clear(self) -> None:
        self.users.clear()
        self.restaurants.clear()
