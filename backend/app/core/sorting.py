"""``field:direction`` ordering for list queries, restricted to whitelisted columns."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from app.core.database import Base

DIRECTIONS = {"asc": asc, "desc": desc}


def parse_order_by(
    order_by: str | None,
    allowed_fields: Iterable[str],
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> tuple[str, str]:
    """Split ``"title:asc"`` into a (field, direction) pair.

    Unknown fields fall back to the default field and direction. A missing
    direction means ascending; an unknown one means the default.
    """
    if not order_by:
        return default_field, default_direction
    field, _, direction = order_by.partition(":")
    field = field.strip()
    if field not in set(allowed_fields):
        return default_field, default_direction
    direction = direction.strip().lower() or "asc"
    if direction not in DIRECTIONS:
        direction = default_direction
    return field, direction


def apply_order_by(
    query: Query,  # type: ignore[type-arg]
    model: type[Base],
    order_by: str | None,
    allowed_fields: Iterable[str] = ("created_at",),
    default_field: str = "created_at",
    default_direction: str = "desc",
) -> Query:  # type: ignore[type-arg]
    field, direction = parse_order_by(order_by, allowed_fields, default_field, default_direction)
    return query.order_by(DIRECTIONS[direction](getattr(model, field)))
