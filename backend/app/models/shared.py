"""Column types and defaults shared by the subscription and notification tables."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import String, TypeDecorator
from sqlalchemy.engine import Dialect


def _coerce_uuid(value: Any) -> uuid.UUID | None:
    if value is None or isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


class UUIDType(TypeDecorator[uuid.UUID]):
    """UUID primary and foreign keys stored as 36-character strings.

    Accepts UUID instances or their string form on the way in; always hands
    back ``uuid.UUID`` so ids compare equal to the values in JWT claims.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        coerced = _coerce_uuid(value)
        return None if coerced is None else str(coerced)

    def process_result_value(self, value: Any, dialect: Dialect) -> uuid.UUID | None:
        return _coerce_uuid(value)


def generate_uuid() -> uuid.UUID:
    return uuid.uuid4()


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Lifecycle timestamps read back from SQLite are naive; they were written as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
