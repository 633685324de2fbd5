"""Small helpers shared by the services."""

from __future__ import annotations

import enum
import json
import math
from datetime import UTC, datetime
from typing import Any


def safe_json_loads(value: str | None) -> Any:
    """Parse a JSON column, returning None for empty or malformed values."""
    if not value:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return None


def enum_value(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def pagination(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }
