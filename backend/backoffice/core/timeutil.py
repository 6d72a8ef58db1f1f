"""Date helpers shared by models and services."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from backoffice.core.config import settings


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise an aware datetime to naive UTC; naive values pass through."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def financial_year(at: datetime) -> int:
    """Accounting year starting in April: Jan–Mar belong to the previous year."""
    return at.year if at.month >= 4 else at.year - 1


def business_financial_year(at: Optional[datetime] = None) -> int:
    """Financial year of a naive-UTC instant, read on the business-zone calendar."""
    instant = (at or utcnow()).replace(tzinfo=timezone.utc)
    return financial_year(instant.astimezone(ZoneInfo(settings.BUSINESS_TIMEZONE)))
