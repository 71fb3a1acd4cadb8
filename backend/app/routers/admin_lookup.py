"""User and restaurant detail lookups used to enrich notifications."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import require_super_admin
from app.core.database import get_db
from app.models.user import User
from app.repositories.restaurant_repository import RestaurantRepository
from app.repositories.user_repository import UserRepository
from app.schemas.account import RestaurantDetailResponse, UserDetailResponse

router = APIRouter()


@router.get(
    "/users/{user_id}",
    response_model=UserDetailResponse,
    summary="Get user details",
    responses={404: {"description": "User not found"}},
)
async def get_user(
    user_id: UUID,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> UserDetailResponse:
    user = UserRepository(db).get_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserDetailResponse.model_validate(user)


@router.get(
    "/restaurants/{restaurant_id}",
    response_model=RestaurantDetailResponse,
    summary="Get restaurant details",
    responses={404: {"description": "Restaurant not found"}},
)
async def get_restaurant(
    restaurant_id: UUID,
    db: Session = Depends(get_db),
    _admin: User = Depends(require_super_admin),
) -> RestaurantDetailResponse:
    restaurant = RestaurantRepository(db).get_by_id(restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return RestaurantDetailResponse.model_validate(restaurant)
