"""Super-admin subscription lifecycle endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import require_super_admin
from app.core.database import get_db
from app.models.user import User
from app.schemas.subscription import (
    DailyCheckResponse,
    DaysRequest,
    RestaurantSubscriptionResponse,
    SubscriptionEventResponse,
    SuspendRequest,
)
from app.services.subscription_service import (
    SubscriptionError,
    SubscriptionErrorType,
    SubscriptionService,
)

router = APIRouter()

AUTH_RESPONSES: dict[int | str, dict[str, str]] = {
    401: {"description": "Unauthorized – invalid or missing bearer token"},
    403: {"description": "Forbidden – super admin role required"},
}
ACTION_RESPONSES: dict[int | str, dict[str, str]] = {
    **AUTH_RESPONSES,
    400: {"description": "Invalid parameters or state transition"},
    404: {"description": "Restaurant not found"},
}


def subscription_http_error(error: SubscriptionError) -> HTTPException:
    if error.error_type == SubscriptionErrorType.RESTAURANT_NOT_FOUND:
        return HTTPException(status_code=404, detail=str(error))
    return HTTPException(status_code=400, detail=str(error))


@router.post(
    "/debug/run-daily",
    response_model=DailyCheckResponse,
    summary="Run the daily subscription checks now",
    responses=AUTH_RESPONSES,
)
async def run_daily_checks(
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> DailyCheckResponse:
    """Trigger the scheduled reminder and expiry pass immediately."""
    transitions = SubscriptionService(db).run_daily_checks()
    return DailyCheckResponse(transitions=transitions)


@router.get(
    "/{restaurant_id}",
    response_model=RestaurantSubscriptionResponse,
    summary="Get a restaurant's subscription",
    responses={**AUTH_RESPONSES, 404: {"description": "Restaurant not found"}},
)
async def get_subscription(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.ensure_subscription(restaurant_id)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.get(
    "/{restaurant_id}/events",
    response_model=list[SubscriptionEventResponse],
    summary="List a restaurant's subscription events",
    responses={**AUTH_RESPONSES, 404: {"description": "Restaurant not found"}},
)
async def list_subscription_events(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> list[SubscriptionEventResponse]:
    """Full event log, newest first."""
    try:
        events = SubscriptionService(db).list_events(restaurant_id)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return [SubscriptionEventResponse.model_validate(event) for event in events]


@router.post(
    "/{restaurant_id}/grant",
    response_model=RestaurantSubscriptionResponse,
    summary="Grant additional paid days",
    responses=ACTION_RESPONSES,
)
async def grant_paid_days(
    restaurant_id: UUID,
    data: DaysRequest,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.grant_paid_days(restaurant_id, data.days, source="ADMIN")
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.post(
    "/{restaurant_id}/start-trial",
    response_model=RestaurantSubscriptionResponse,
    summary="Start the default trial",
    responses=ACTION_RESPONSES,
)
async def start_trial(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.start_trial(restaurant_id)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.post(
    "/{restaurant_id}/set-trial-days",
    response_model=RestaurantSubscriptionResponse,
    summary="Overwrite the trial window",
    responses=ACTION_RESPONSES,
)
async def set_trial_days(
    restaurant_id: UUID,
    data: DaysRequest,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.set_trial_days(restaurant_id, data.days)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.post(
    "/{restaurant_id}/set-paid-days",
    response_model=RestaurantSubscriptionResponse,
    summary="Overwrite the paid period",
    responses=ACTION_RESPONSES,
)
async def set_paid_days(
    restaurant_id: UUID,
    data: DaysRequest,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.set_paid_days(restaurant_id, data.days)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.post(
    "/{restaurant_id}/suspend",
    response_model=RestaurantSubscriptionResponse,
    summary="Suspend a subscription",
    responses=ACTION_RESPONSES,
)
async def suspend(
    restaurant_id: UUID,
    data: SuspendRequest | None = None,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.suspend(restaurant_id, data.reason if data else None)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.post(
    "/{restaurant_id}/unsuspend",
    response_model=RestaurantSubscriptionResponse,
    summary="Lift a suspension",
    responses=ACTION_RESPONSES,
)
async def unsuspend(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.unsuspend(restaurant_id)
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)
