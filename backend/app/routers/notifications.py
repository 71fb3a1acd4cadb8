"""Notification API endpoints, including the SSE fallback stream."""

import asyncio
from collections.abc import AsyncIterator
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.core.auth import get_current_user, get_stream_user
from app.core.config import settings
from app.core.database import get_db
from app.models.user import User
from app.schemas.notification import (
    NotificationCountResponse,
    NotificationPage,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    NotificationResponse,
)
from app.services.notification_service import NotificationService
from app.services.realtime_gateway import (
    SSE_INIT_EVENT,
    SSE_KEEPALIVE,
    TRANSPORT_SSE,
    RealtimeGateway,
    format_sse_event,
    get_gateway,
)

router = APIRouter()

AUTH_RESPONSES: dict[int | str, dict[str, str]] = {
    401: {"description": "Unauthorized – invalid or missing bearer token"},
}


@router.get(
    "",
    response_model=NotificationPage,
    summary="List my notifications",
    responses=AUTH_RESPONSES,
)
async def list_notifications(
    page: int = Query(default=1, ge=1),
    size: int = Query(default=20, ge=1, le=200),
    unread_only: bool = False,
    order_by: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> NotificationPage:
    """List notifications, newest first unless `order_by` (e.g. `title:asc`) says otherwise."""
    items, total = NotificationService(db).list_for_user(
        user.id,  # type: ignore[arg-type]
        page=page,
        size=size,
        unread_only=unread_only,
        order_by=order_by,
    )
    return NotificationPage(
        items=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        page=page,
        size=size,
    )


@router.get(
    "/unread-count",
    response_model=NotificationCountResponse,
    summary="Get unread notification count",
    responses=AUTH_RESPONSES,
)
async def get_unread_count(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> NotificationCountResponse:
    count = NotificationService(db).unread_count(user.id)  # type: ignore[arg-type]
    return NotificationCountResponse(unread_count=count)


@router.post(
    "/read-all",
    response_model=NotificationCountResponse,
    summary="Mark all notifications as read",
    responses=AUTH_RESPONSES,
)
async def mark_all_as_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> NotificationCountResponse:
    """Mark all unread notifications as read. Returns how many were updated."""
    count = NotificationService(db).mark_all_read(user.id)  # type: ignore[arg-type]
    return NotificationCountResponse(unread_count=count)


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark a notification as read",
    responses={**AUTH_RESPONSES, 404: {"description": "Notification not found"}},
)
async def mark_as_read(
    notification_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> NotificationResponse:
    try:
        notification = NotificationService(db).mark_read(user.id, notification_id)  # type: ignore[arg-type]
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return NotificationResponse.model_validate(notification)


@router.get(
    "/preferences",
    response_model=NotificationPreferenceResponse,
    summary="Get my notification preferences",
    responses=AUTH_RESPONSES,
)
async def get_preferences(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> NotificationPreferenceResponse:
    pref = NotificationService(db).get_preferences(user.id)  # type: ignore[arg-type]
    return NotificationPreferenceResponse.model_validate(pref)


@router.put(
    "/preferences",
    response_model=NotificationPreferenceResponse,
    summary="Update my notification preferences",
    responses=AUTH_RESPONSES,
)
async def update_preferences(
    data: NotificationPreferenceUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> NotificationPreferenceResponse:
    pref = NotificationService(db).update_preferences(user.id, data)  # type: ignore[arg-type]
    return NotificationPreferenceResponse.model_validate(pref)


async def sse_events(
    gateway: RealtimeGateway,
    user_id: UUID,
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Yield the init event, then notifications and keepalive comments until cancelled."""
    subscriber = gateway.register(user_id, TRANSPORT_SSE)
    try:
        yield SSE_INIT_EVENT
        while True:
            try:
                payload = await asyncio.wait_for(subscriber.queue.get(), timeout=heartbeat_seconds)
            except TimeoutError:
                yield SSE_KEEPALIVE
                continue
            yield format_sse_event(payload)
    finally:
        gateway.unregister(subscriber)


@router.get(
    "/stream",
    summary="Server-sent notification stream",
    responses={
        **AUTH_RESPONSES,
        503: {"description": "SSE transport disabled"},
    },
)
async def stream_notifications(
    user: User = Depends(get_stream_user),
    gateway: RealtimeGateway = Depends(get_gateway),
) -> StreamingResponse:
    """Fallback transport; the token is passed as the ``access_token`` query parameter."""
    if not gateway.sse_enabled:
        raise HTTPException(status_code=503, detail="SSE transport is disabled")
    return StreamingResponse(
        sse_events(gateway, user.id, settings.SSE_HEARTBEAT_SECONDS),  # type: ignore[arg-type]
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
