"""Tests for admin notification enhancement."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.client.api import AdminLookupApi, ApiError
from app.client.enhancer import DetailCache, NotificationEnhancer, fallback_restaurant, fallback_user


@pytest.fixture
def lookup():
    api = MagicMock(spec=AdminLookupApi)
    api.get_user_details = AsyncMock(side_effect=lambda uid: {"id": uid, "full_name": f"Name {uid}"})
    api.get_restaurant_details = AsyncMock(side_effect=lambda rid: {"id": rid, "name": f"Place {rid}"})
    return api


class TestDetailCache:
    @pytest.mark.asyncio
    async def test_fetches_once(self):
        fetch = AsyncMock(return_value={"id": 1})
        cache = DetailCache(fetch, fallback_user)
        await cache.get(1)
        await cache.get("1")
        fetch.assert_awaited_once_with(1)
        assert 1 in cache
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_failure_caches_placeholder(self):
        fetch = AsyncMock(side_effect=ApiError(404, "User not found"))
        cache = DetailCache(fetch, fallback_user)
        record = await cache.get("u-9")
        assert record == {
            "id": "u-9",
            "full_name": "User u-9",
            "email": "unknown@example.com",
            "role": "UNKNOWN",
        }
        await cache.get("u-9")
        assert fetch.await_count == 1

    @pytest.mark.asyncio
    async def test_prefetch_dedups_and_skips_none(self):
        fetch = AsyncMock(side_effect=lambda key: {"id": key})
        cache = DetailCache(fetch, fallback_restaurant)
        await cache.prefetch(["r-1", None, "r-1", "r-2"])
        assert fetch.await_count == 2
        await cache.prefetch(["r-2"])
        assert fetch.await_count == 2
        cache.clear()
        assert len(cache) == 0


class TestNotificationEnhancer:
    @pytest.mark.asyncio
    async def test_enhance_attaches_details(self, lookup):
        enhancer = NotificationEnhancer(lookup)
        enhanced = await enhancer.enhance(
            {"id": 1, "data": '{"days": 7}', "target_user_id": "u-1", "restaurantId": "r-1"}
        )
        assert enhanced["parsed_data"] == {"days": 7}
        assert enhanced["target_user"]["full_name"] == "Name u-1"
        assert enhanced["restaurant"]["name"] == "Place r-1"

    @pytest.mark.asyncio
    async def test_non_json_data_kept_raw(self, lookup):
        enhanced = await NotificationEnhancer(lookup).enhance({"id": 2, "data": "plain text"})
        assert "parsed_data" not in enhanced
        assert enhanced["data"] == "plain text"
        assert "target_user" not in enhanced

    @pytest.mark.asyncio
    async def test_dict_data_passes_through(self, lookup):
        enhanced = await NotificationEnhancer(lookup).enhance({"id": 3, "data": {"phase": "TRIAL"}})
        assert enhanced["parsed_data"] == {"phase": "TRIAL"}

    @pytest.mark.asyncio
    async def test_enhance_many_fetches_each_id_once(self, lookup):
        enhancer = NotificationEnhancer(lookup)
        page = [
            {"id": 1, "target_user_id": "u-1", "restaurant_id": "r-1"},
            {"id": 2, "target_user_id": "u-1", "restaurant_id": "r-2"},
            {"id": 3, "targetUserId": "u-2"},
        ]
        enhanced = await enhancer.enhance_many(page)

        assert [n["id"] for n in enhanced] == [1, 2, 3]
        assert lookup.get_user_details.await_count == 2
        assert lookup.get_restaurant_details.await_count == 2
        assert "restaurant" not in enhanced[2]

    @pytest.mark.asyncio
    async def test_failed_lookup_uses_placeholder(self, lookup):
        lookup.get_restaurant_details.side_effect = ApiError(None, "timeout")
        enhanced = await NotificationEnhancer(lookup).enhance({"id": 1, "restaurant_id": "r-5"})
        assert enhanced["restaurant"]["name"] == "Restaurant r-5"
        assert enhanced["restaurant"]["address"] == "Unknown address"
