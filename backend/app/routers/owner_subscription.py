"""Restaurant-owner view of their own subscription."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import require_restaurant_owner
from app.core.database import get_db
from app.models.restaurant import Restaurant
from app.models.user import User
from app.repositories.restaurant_repository import RestaurantRepository
from app.routers.admin_subscriptions import subscription_http_error
from app.schemas.subscription import RestaurantSubscriptionResponse, SubscriptionEventResponse
from app.services.subscription_service import SubscriptionError, SubscriptionService

router = APIRouter()

OWNER_RESPONSES: dict[int | str, dict[str, str]] = {
    401: {"description": "Unauthorized – invalid or missing bearer token"},
    403: {"description": "Forbidden – restaurant owner role required"},
    404: {"description": "No restaurant for this owner"},
}


def get_owned_restaurant(
    user: User = Depends(require_restaurant_owner),
    db: Session = Depends(get_db),
) -> Restaurant:
    restaurant = RestaurantRepository(db).get_by_owner_id(user.id)  # type: ignore[arg-type]
    if restaurant is None:
        raise HTTPException(status_code=404, detail="No restaurant for this owner")
    return restaurant


@router.get(
    "",
    response_model=RestaurantSubscriptionResponse,
    summary="Get my subscription",
    responses=OWNER_RESPONSES,
)
async def get_my_subscription(
    restaurant: Restaurant = Depends(get_owned_restaurant),
    db: Session = Depends(get_db),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.ensure_subscription(restaurant.id)  # type: ignore[arg-type]
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.post(
    "/start-trial",
    response_model=RestaurantSubscriptionResponse,
    summary="Start my free trial",
    responses={**OWNER_RESPONSES, 400: {"description": "Trial not available"}},
)
async def start_my_trial(
    restaurant: Restaurant = Depends(get_owned_restaurant),
    db: Session = Depends(get_db),
) -> RestaurantSubscriptionResponse:
    service = SubscriptionService(db)
    try:
        subscription = service.start_trial(restaurant.id)  # type: ignore[arg-type]
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return service.to_response(subscription)


@router.get(
    "/events",
    response_model=list[SubscriptionEventResponse],
    summary="List my subscription events",
    responses=OWNER_RESPONSES,
)
async def list_my_events(
    restaurant: Restaurant = Depends(get_owned_restaurant),
    db: Session = Depends(get_db),
) -> list[SubscriptionEventResponse]:
    try:
        events = SubscriptionService(db).list_events(restaurant.id)  # type: ignore[arg-type]
    except SubscriptionError as e:
        raise subscription_http_error(e) from e
    return [SubscriptionEventResponse.model_validate(event) for event in events]
