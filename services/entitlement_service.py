"""
Entitlement evaluation: pure functions over a user snapshot.

Nothing in here touches the database or mutates the user. `now` can be
passed explicitly so callers (and tests) evaluate against a fixed instant.
"""
import math
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from config.settings import PLAN_PREMIER, STATUS_ACTIVE, STATUS_TRIAL
from utils.shared_utils import utcnow

ADMIN_STATUS = "admin"
# Display placeholder for admins, not a real expiry
ADMIN_DAYS_REMAINING = 999

SECONDS_PER_DAY = 86400


@dataclass
class EntitlementStatus:
    is_active: bool
    has_reached_limit: bool
    days_remaining: int
    usage_percentage: float
    status: str
    plan: Optional[str]
    usage_count: int
    usage_limit: Optional[int]

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "isActive": data["is_active"],
            "hasReachedLimit": data["has_reached_limit"],
            "daysRemaining": data["days_remaining"],
            "usagePercentage": data["usage_percentage"],
            "status": data["status"],
            "plan": data["plan"],
            "usageCount": data["usage_count"],
            "usageLimit": data["usage_limit"],
        }


def _relevant_end_date(user) -> Optional[datetime]:
    if user.subscription_status == STATUS_TRIAL:
        return user.trial_end_date
    if user.subscription_status == STATUS_ACTIVE:
        return user.subscription_end_date
    return None


def is_subscription_active(user, now: Optional[datetime] = None) -> bool:
    """
    Trial users are active until trial_end_date, paying users until
    subscription_end_date. Every other status is inactive whatever the dates say.
    """
    now = now or utcnow()
    if user.subscription_status not in (STATUS_TRIAL, STATUS_ACTIVE):
        return False
    end_date = _relevant_end_date(user)
    return end_date is not None and now < end_date


def has_reached_usage_limit(user) -> bool:
    if user.usage_limit is None:
        return False
    return (user.usage_count or 0) >= user.usage_limit


def get_days_remaining(user, now: Optional[datetime] = None) -> int:
    now = now or utcnow()
    end_date = _relevant_end_date(user)
    if end_date is None:
        return 0
    seconds = (end_date - now).total_seconds()
    return max(0, math.ceil(seconds / SECONDS_PER_DAY))


def get_usage_percentage(user) -> float:
    if user.usage_limit is None:
        return 0
    if user.usage_limit <= 0:
        return 100
    return min(100, max(0, (user.usage_count or 0) / user.usage_limit * 100))


def evaluate(user, now: Optional[datetime] = None) -> EntitlementStatus:
    """
    Compute the full entitlement snapshot for a user.
    Administrators bypass every check and get the "admin" sentinel status.
    """
    if user.is_admin:
        return EntitlementStatus(
            is_active=True,
            has_reached_limit=False,
            days_remaining=ADMIN_DAYS_REMAINING,
            usage_percentage=0,
            status=ADMIN_STATUS,
            plan=user.subscription_plan,
            usage_count=user.usage_count or 0,
            usage_limit=None,
        )

    now = now or utcnow()
    return EntitlementStatus(
        is_active=is_subscription_active(user, now),
        has_reached_limit=has_reached_usage_limit(user),
        days_remaining=get_days_remaining(user, now),
        usage_percentage=get_usage_percentage(user),
        status=user.subscription_status,
        plan=user.subscription_plan,
        usage_count=user.usage_count or 0,
        usage_limit=user.usage_limit,
    )


def has_premier_entitlement(user, now: Optional[datetime] = None) -> bool:
    """Active premier subscription whose end date has not passed."""
    now = now or utcnow()
    return (
        user.subscription_plan == PLAN_PREMIER
        and user.subscription_status == STATUS_ACTIVE
        and user.subscription_end_date is not None
        and user.subscription_end_date >= now
    )
