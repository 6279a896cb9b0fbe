"""
Shared utility functions for routers and services
"""
import calendar
import json
import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the form stored in the database)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_months(value: datetime, months: int = 1) -> datetime:
    """
    Add calendar months, clamping the day to the end of the target month.

    Example:
        add_months(datetime(2025, 1, 31)) -> datetime(2025, 2, 28)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def log_endpoint_event(endpoint: str, user_id: Optional[int] = None, result: str = "success", details: Optional[dict] = None):
    """Log endpoint execution to app.log"""
    logger.info(f"{endpoint} | user={user_id or 'none'} | {result} | {json.dumps(details or {}, default=str)}")
