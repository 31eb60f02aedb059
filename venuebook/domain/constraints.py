"""Domain-level validation rules shared by the service and the engine."""

from __future__ import annotations

from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name!r}") from exc


def validate_schedule_month(year: int, month: int, *, min_year: int, max_year: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError("Valid year/month required: month must be between 1 and 12")
    if not min_year <= year <= max_year:
        raise ValueError(
            f"Valid year/month required: year must be between {min_year} and {max_year}"
        )


def normalize_rejection_reason(reason: Optional[str]) -> str:
    """Return the trimmed reason, or raise when nothing is left."""
    trimmed = (reason or "").strip()
    if not trimmed:
        raise ValueError("Rejection reason is required.")
    return trimmed
