from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import init_db
from app.routers import (
    admin_lookup,
    admin_subscriptions,
    notifications,
    owner_subscription,
    realtime,
)

OPENAPI_TAGS = [
    {"name": "Admin Subscriptions", "description": "Super-admin subscription lifecycle actions."},
    {"name": "Owner Subscription", "description": "A restaurant owner's own subscription."},
    {"name": "Notifications", "description": "In-app notification feed and SSE stream."},
    {"name": "Admin Lookup", "description": "User and restaurant details for notifications."},
    {"name": "Realtime", "description": "STOMP-over-WebSocket notification delivery."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    init_db()
    yield

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.version,
    description=(
        "Restaurant subscription lifecycle and realtime notification API. "
        "Trials, paid periods, grace and suspension, with notifications pushed "
        "over WebSocket (STOMP) or server-sent events."
    ),
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(
    admin_subscriptions.router,
    prefix="/api/admin/subscriptions",
    tags=["Admin Subscriptions"],
)
app.include_router(admin_lookup.router, prefix="/api/admin", tags=["Admin Lookup"])
app.include_router(
    owner_subscription.router,
    prefix="/api/owner/subscription",
    tags=["Owner Subscription"],
)
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(realtime.router, tags=["Realtime"])


@app.get("/")
async def root() -> dict[str, str]:
    return {
        "app": settings.APP_NAME,
        "version": settings.version,
        "domain": settings.APP_DOMAIN,
        "status": "running",
    }
