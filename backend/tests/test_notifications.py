"""Tests for notification API endpoints, repository, service, and the SSE stream helpers."""

import asyncio
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from app.models.notification import NotificationStatus, NotificationType
from app.repositories.notification_preference_repository import NotificationPreferenceRepository
from app.repositories.notification_repository import NotificationRepository
from app.routers.notifications import sse_events
from app.schemas.notification import NotificationPreferenceUpdate
from app.services.notification_service import NotificationService
from app.services.realtime_gateway import (
    SSE_INIT_EVENT,
    SSE_KEEPALIVE,
    RealtimeGateway,
    format_sse_event,
)

BASE = "/api/notifications"


@pytest.fixture
def repo(db_session):
    """Create a NotificationRepository instance."""
    return NotificationRepository(db_session)


@pytest.fixture
def seed_notifications(repo, owner_user, admin_user):
    """Seed notifications for the owner plus one for another user."""
    n1 = repo.create(target_user_id=owner_user.id, title="New order", body="Table 4")
    n2 = repo.create(
        target_user_id=owner_user.id,
        title="Trial ending soon",
        body="3 days left",
        type=NotificationType.SUBSCRIPTION,
        data={"phase": "TRIAL"},
    )
    n3 = repo.create(target_user_id=owner_user.id, title="Broadcast", type=NotificationType.BROADCAST)
    other = repo.create(target_user_id=admin_user.id, title="Admin only")
    return n1, n2, n3, other


# ── Repository ──


class TestNotificationRepository:
    def test_create_defaults(self, repo, owner_user):
        notification = repo.create(target_user_id=owner_user.id, title="Hello")
        assert notification.status == NotificationStatus.NEW.value
        assert notification.type == NotificationType.GENERIC.value
        assert notification.read_at is None
        assert notification.body == ""

    def test_get_for_user_newest_first(self, repo, owner_user, seed_notifications):
        titles = [n.title for n in repo.get_for_user(owner_user.id, order_by="created_at:desc")]
        assert titles == ["Broadcast", "Trial ending soon", "New order"]

    def test_count_and_unread_filter(self, repo, owner_user, seed_notifications):
        n1 = seed_notifications[0]
        repo.mark_as_read(n1.id)
        assert repo.count_for_user(owner_user.id) == 3
        assert repo.count_for_user(owner_user.id, unread_only=True) == 2
        unread = repo.get_for_user(owner_user.id, unread_only=True)
        assert n1.id not in {n.id for n in unread}

    def test_mark_all_as_read(self, repo, owner_user, admin_user, seed_notifications):
        assert repo.mark_all_as_read(owner_user.id) == 3
        assert repo.count_for_user(owner_user.id, unread_only=True) == 0
        assert repo.count_for_user(admin_user.id, unread_only=True) == 1

    def test_mark_missing(self, repo):
        assert repo.mark_as_read(uuid4()) is None


class TestPreferenceRepository:
    def test_get_or_create_defaults(self, db_session, owner_user):
        pref = NotificationPreferenceRepository(db_session).get_or_create(owner_user.id)
        assert pref.in_app_enabled is True
        assert pref.email_enabled is False

    def test_partial_update(self, db_session, owner_user):
        repo = NotificationPreferenceRepository(db_session)
        repo.update(owner_user.id, NotificationPreferenceUpdate(in_app_enabled=False))
        pref = repo.get_or_create(owner_user.id)
        assert pref.in_app_enabled is False
        assert pref.email_enabled is False


# ── Service ──


class TestNotificationService:
    def test_create_pushes_to_gateway(self, db_session, owner_user, restaurant):
        gateway = MagicMock(spec=RealtimeGateway)
        gateway.send_to_user.return_value = 1
        service = NotificationService(db_session, gateway=gateway)

        notification = service.create_notification(
            target_user_id=owner_user.id,
            restaurant_id=restaurant.id,
            title="Subscription extended",
            body="Until June",
            data={"days": 7},
        )

        gateway.send_to_user.assert_called_once()
        user_id, payload = gateway.send_to_user.call_args.args
        assert user_id == owner_user.id
        assert payload["id"] == str(notification.id)
        assert payload["title"] == "Subscription extended"
        assert payload["body"] == "Until June"
        assert payload["data"] == {"days": 7}
        assert payload["status"] == "NEW"

    def test_list_pages(self, db_session, owner_user, seed_notifications):
        service = NotificationService(db_session, gateway=MagicMock())
        items, total = service.list_for_user(owner_user.id, page=2, size=2)
        assert total == 3
        assert [n.title for n in items] == ["New order"]

    def test_mark_read_of_other_user(self, db_session, owner_user, seed_notifications):
        service = NotificationService(db_session, gateway=MagicMock())
        other = seed_notifications[3]
        with pytest.raises(LookupError, match="Notification not found"):
            service.mark_read(owner_user.id, other.id)

    def test_unread_count(self, db_session, owner_user, seed_notifications):
        service = NotificationService(db_session, gateway=MagicMock())
        service.mark_read(owner_user.id, seed_notifications[1].id)
        assert service.unread_count(owner_user.id) == 2


# ── API ──


class TestNotificationApi:
    def test_list(self, client, owner_headers, seed_notifications):
        response = client.get(BASE, headers=owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert data["page"] == 1
        assert data["items"][0]["title"] == "Broadcast"
        assert data["items"][1]["data"] == {"phase": "TRIAL"}

    def test_list_unread_only(self, client, owner_headers, seed_notifications):
        client.post(f"{BASE}/{seed_notifications[0].id}/read", headers=owner_headers)
        response = client.get(BASE, params={"unread_only": "true"}, headers=owner_headers)
        assert response.json()["total"] == 2

    def test_requires_auth(self, client):
        assert client.get(BASE).status_code == 401

    def test_unread_count_and_read_all(self, client, owner_headers, seed_notifications):
        assert client.get(f"{BASE}/unread-count", headers=owner_headers).json() == {
            "unread_count": 3
        }
        response = client.post(f"{BASE}/read-all", headers=owner_headers)
        assert response.json() == {"unread_count": 3}
        assert client.get(f"{BASE}/unread-count", headers=owner_headers).json() == {
            "unread_count": 0
        }

    def test_mark_read(self, client, owner_headers, seed_notifications):
        response = client.post(f"{BASE}/{seed_notifications[0].id}/read", headers=owner_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "READ"
        assert response.json()["read_at"] is not None

    def test_mark_read_not_found(self, client, owner_headers, seed_notifications):
        response = client.post(f"{BASE}/{seed_notifications[3].id}/read", headers=owner_headers)
        assert response.status_code == 404

    def test_preferences(self, client, owner_headers):
        response = client.get(f"{BASE}/preferences", headers=owner_headers)
        assert response.json() == {"in_app_enabled": True, "email_enabled": False}

        response = client.put(
            f"{BASE}/preferences", json={"in_app_enabled": False}, headers=owner_headers
        )
        assert response.status_code == 200
        assert response.json() == {"in_app_enabled": False, "email_enabled": False}

    def test_stream_requires_query_token(self, client):
        response = client.get(f"{BASE}/stream")
        assert response.status_code == 401
        assert response.json()["detail"] == "Access token is required"

    def test_stream_rejects_bad_token(self, client):
        response = client.get(f"{BASE}/stream", params={"access_token": "nope"})
        assert response.status_code == 401

    def test_stream_disabled(self, client, owner_token):
        from app.services.realtime_gateway import gateway

        gateway.sse_enabled = False
        response = client.get(f"{BASE}/stream", params={"access_token": owner_token})
        assert response.status_code == 503
        assert response.json()["detail"] == "SSE transport is disabled"


# ── SSE stream ──


class TestSseEvents:
    def test_format_event(self):
        text = format_sse_event({"id": "n-1", "title": "Hi"})
        assert text == 'id: n-1\ndata: {"id": "n-1", "title": "Hi"}\n\n'

    def test_format_event_without_id(self):
        assert format_sse_event({"title": "x"}) == 'data: {"title": "x"}\n\n'

    @pytest.mark.asyncio
    async def test_init_then_payload(self):
        gateway = RealtimeGateway(queue_size=5, ws_enabled=True, sse_enabled=True)
        user_id = uuid4()
        stream = sse_events(gateway, user_id, heartbeat_seconds=5)

        assert await anext(stream) == SSE_INIT_EVENT
        assert gateway.subscriber_count(user_id) == 1

        assert gateway.send_to_user(user_id, {"id": "n1", "title": "Order ready"}) == 1
        chunk = await anext(stream)
        assert chunk.startswith("id: n1\n")
        assert '"Order ready"' in chunk

        await stream.aclose()
        assert gateway.subscriber_count(user_id) == 0

    @pytest.mark.asyncio
    async def test_keepalive_when_idle(self):
        gateway = RealtimeGateway(queue_size=5, ws_enabled=True, sse_enabled=True)
        stream = sse_events(gateway, uuid4(), heartbeat_seconds=0.01)
        await anext(stream)
        assert await asyncio.wait_for(anext(stream), timeout=1) == SSE_KEEPALIVE
        await stream.aclose()
