"""
PlanRepository for the subscription plan catalogue
"""

import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import PLAN_BASIC, PLAN_PREMIER, PLAN_PREMIUM, PLAN_TRIAL, TRIAL_USAGE_LIMIT
from database_models import SubscriptionPlan, User

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "plan_key": PLAN_TRIAL,
        "name": "Trial",
        "description": "Free trial period",
        "price_monthly": Decimal("0"),
        "price_yearly": Decimal("0"),
        "usage_limit": TRIAL_USAGE_LIMIT,
        "features": ["Full access to all features", "14-day trial period",
                     f"Up to {TRIAL_USAGE_LIMIT} session saves", "Track map access", "Weather integration"],
        "sort_order": 1,
    },
    {
        "plan_key": PLAN_BASIC,
        "name": "Basic Plan",
        "description": "Perfect for weekend warriors",
        "price_monthly": Decimal("9.99"),
        "price_yearly": Decimal("99.99"),
        "usage_limit": 500,
        "features": ["500 session saves per month", "Track map access", "Weather integration",
                     "Previous track data", "Export capabilities"],
        "sort_order": 2,
    },
    {
        "plan_key": PLAN_PREMIUM,
        "name": "Premium Plan",
        "description": "For serious racers",
        "price_monthly": Decimal("19.99"),
        "price_yearly": Decimal("199.99"),
        "usage_limit": None,
        "features": ["Unlimited session saves", "Everything in Basic", "Priority support", "Advanced analytics"],
        "sort_order": 3,
    },
    {
        "plan_key": PLAN_PREMIER,
        "name": "Premier Plan",
        "description": "For race teams",
        "price_monthly": Decimal("49.99"),
        "price_yearly": Decimal("499.99"),
        "usage_limit": None,
        "features": ["Everything in Premium", "Create and manage a team", "Shared team motorcycles"],
        "sort_order": 4,
    },
]


class PlanRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def seed_default_plans(self) -> int:
        """Insert the default catalogue if the table is empty. Returns rows inserted."""
        count = await self.db.scalar(select(func.count()).select_from(SubscriptionPlan))
        if count:
            return 0
        for plan in DEFAULT_PLANS:
            self.db.add(SubscriptionPlan(is_active=True, **plan))
        await self.db.flush()
        logger.info(f"Seeded {len(DEFAULT_PLANS)} default subscription plans")
        return len(DEFAULT_PLANS)

    async def list_plans(self, active_only: bool = False) -> List[SubscriptionPlan]:
        query = select(SubscriptionPlan)
        if active_only:
            query = query.where(SubscriptionPlan.is_active.is_(True))
        result = await self.db.execute(query.order_by(SubscriptionPlan.sort_order, SubscriptionPlan.plan_key))
        return list(result.scalars().all())

    async def get_by_key(self, plan_key: str, active_only: bool = False) -> Optional[SubscriptionPlan]:
        query = select(SubscriptionPlan).where(SubscriptionPlan.plan_key == plan_key)
        if active_only:
            query = query.where(SubscriptionPlan.is_active.is_(True))
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_by_id(self, plan_id: int) -> Optional[SubscriptionPlan]:
        return await self.db.get(SubscriptionPlan, plan_id)

    async def save(self, plan: SubscriptionPlan) -> SubscriptionPlan:
        self.db.add(plan)
        await self.db.flush()
        await self.db.refresh(plan)
        return plan

    async def count_users_on_plan(self, plan_key: str) -> int:
        return await self.db.scalar(
            select(func.count()).select_from(User).where(User.subscription_plan == plan_key)
        ) or 0

    async def delete(self, plan: SubscriptionPlan) -> None:
        await self.db.execute(delete(SubscriptionPlan).where(SubscriptionPlan.id == plan.id))
