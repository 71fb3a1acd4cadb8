from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class UserDetailResponse(BaseModel):
    id: UUID
    username: str
    full_name: str | None
    email: str | None
    role: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class RestaurantDetailResponse(BaseModel):
    id: UUID
    name: str
    owner_id: UUID
    subscription_plan: str
    address: str | None
    phone: str | None

    model_config = {"from_attributes": True}
