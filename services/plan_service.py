"""
Plan Service - subscription plan catalogue management
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import DEFAULT_PLAN_USAGE_LIMIT
from crud.plan import PlanRepository
from database_models import SubscriptionPlan
from errors import Conflict, NotFound
from models.subscription import PlanRequest

logger = logging.getLogger(__name__)


def serialize_plan(plan: SubscriptionPlan) -> dict:
    return {
        "id": plan.id,
        "planKey": plan.plan_key,
        "name": plan.name,
        "description": plan.description,
        "priceMonthly": float(plan.price_monthly) if plan.price_monthly is not None else None,
        "priceYearly": float(plan.price_yearly) if plan.price_yearly is not None else None,
        "usageLimit": plan.usage_limit,
        "features": list(plan.features or []),
        "isActive": plan.is_active,
        "sortOrder": plan.sort_order,
    }


class PlanService:

    def __init__(self, db: AsyncSession):
        self.db = db
        self.plans = PlanRepository(db)

    async def list_plans(self) -> List[SubscriptionPlan]:
        await self.plans.seed_default_plans()
        return await self.plans.list_plans()

    async def usage_limit_for(self, plan_key: str) -> Optional[int]:
        """
        Usage limit of a catalogue plan. None means unlimited; plans missing
        from the catalogue fall back to DEFAULT_PLAN_USAGE_LIMIT.
        """
        plan = await self.plans.get_by_key(plan_key)
        if plan is None:
            logger.warning(f"Plan '{plan_key}' not in catalogue, using default usage limit {DEFAULT_PLAN_USAGE_LIMIT}")
            return DEFAULT_PLAN_USAGE_LIMIT
        return plan.usage_limit

    async def save_plan(self, request: PlanRequest) -> SubscriptionPlan:
        if request.id is not None:
            plan = await self.plans.get_by_id(request.id)
            if not plan:
                raise NotFound("Subscription plan not found")
        else:
            plan = SubscriptionPlan()

        plan.plan_key = request.plan_key
        plan.name = request.name
        plan.description = request.description
        plan.price_monthly = request.price_monthly
        plan.price_yearly = request.price_yearly
        plan.usage_limit = request.usage_limit
        plan.features = list(request.features)
        plan.is_active = request.is_active
        plan.sort_order = request.sort_order

        try:
            return await self.plans.save(plan)
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("A subscription plan with this key already exists", error="Plan key already exists")

    async def delete_plan(self, plan_id: int) -> dict:
        """
        Delete a plan, or only deactivate it while users are still on it.

        Returns:
            {"plan": SubscriptionPlan, "deleted": bool}
        """
        plan = await self.plans.get_by_id(plan_id)
        if not plan:
            raise NotFound("Subscription plan not found")

        if await self.plans.count_users_on_plan(plan.plan_key):
            plan.is_active = False
            await self.plans.save(plan)
            logger.info(f"Plan {plan.plan_key} deactivated (still in use)")
            return {"plan": plan, "deleted": False}

        await self.plans.delete(plan)
        logger.info(f"Plan {plan.plan_key} deleted")
        return {"plan": plan, "deleted": True}
