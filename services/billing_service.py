"""
Billing Service - Stripe checkout/portal integration and billing event reconciliation
"""

import logging
from typing import Optional

import stripe
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import (
    PLAN_TRIAL,
    STATUS_ACTIVE,
    STATUS_CANCELLED,
    STATUS_PAYMENT_FAILED,
    settings,
)
from crud.plan import PlanRepository
from crud.user import UserRepository
from database_models import User
from errors import InvalidInput, NotFound, UpstreamUnavailable
from models.subscription import (
    BillingEvent,
    CheckoutCompleted,
    PaymentFailed,
    PaymentSucceeded,
    SubscriptionCanceled,
)
from services.plan_service import PlanService
from utils.shared_utils import add_months, utcnow

logger = logging.getLogger(__name__)

# Initialize Stripe client
if settings.stripe_secret_key:
    stripe.api_key = settings.stripe_secret_key
else:
    logger.warning("STRIPE_SECRET_KEY is not set. Stripe functionality will be unavailable.")


def _invoice_subscription_id(invoice) -> Optional[str]:
    # Newer Stripe API versions moved the subscription under parent.subscription_details
    subscription_id = invoice.get("subscription")
    if subscription_id:
        return subscription_id
    parent = invoice.get("parent") or {}
    details = parent.get("subscription_details") or {}
    return details.get("subscription")


def normalize_stripe_event(event) -> Optional[BillingEvent]:
    """
    Translate a verified Stripe event into a BillingEvent.

    Returns None for event types we do not handle and for events that lack
    the data needed to correlate them with a user.
    """
    event_type = event["type"]
    obj = event["data"]["object"]

    if event_type == "checkout.session.completed":
        metadata = obj.get("metadata") or {}
        user_id = metadata.get("user_id")
        plan = metadata.get("plan")
        if not user_id or not plan:
            logger.error(f"Missing metadata in checkout session {obj.get('id')}: {dict(metadata)}")
            return None
        try:
            return CheckoutCompleted(
                user_id=user_id,
                plan=plan,
                customer_id=obj.get("customer"),
                subscription_id=obj.get("subscription"),
            )
        except ValidationError as e:
            logger.error(f"Uncorrelatable checkout session {obj.get('id')}: {e}")
            return None

    if event_type in ("invoice.payment_succeeded", "invoice.payment_failed"):
        subscription_id = _invoice_subscription_id(obj)
        if not subscription_id:
            logger.info(f"Invoice {obj.get('id')} has no subscription, ignoring")
            return None
        if event_type == "invoice.payment_succeeded":
            return PaymentSucceeded(subscription_id=subscription_id)
        return PaymentFailed(subscription_id=subscription_id)

    if event_type == "customer.subscription.deleted":
        return SubscriptionCanceled(subscription_id=obj["id"])

    logger.info(f"Unhandled event type {event_type}")
    return None


class BillingReconciler:
    """
    Applies billing lifecycle events to user subscription state.

    Every handler can be replayed: each writes an absolute state computed
    from "now", so a duplicate delivery re-applies the same state rather
    than compounding it. Events that match no user are no-ops.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.plan_service = PlanService(db)

    async def apply(self, event: BillingEvent) -> int:
        """
        Apply one event.

        Returns:
            Number of user rows changed (0 when nothing matched)
        """
        if isinstance(event, CheckoutCompleted):
            return await self.checkout_completed(event)
        if isinstance(event, PaymentSucceeded):
            return await self.payment_succeeded(event)
        if isinstance(event, PaymentFailed):
            return await self.payment_failed(event)
        if isinstance(event, SubscriptionCanceled):
            return await self.subscription_canceled(event)
        raise TypeError(f"Unsupported billing event: {event!r}")

    async def checkout_completed(self, event: CheckoutCompleted) -> int:
        now = utcnow()
        usage_limit = await self.plan_service.usage_limit_for(event.plan)
        updates = {
            "subscription_status": STATUS_ACTIVE,
            "subscription_plan": event.plan,
            "subscription_start_date": now,
            "subscription_end_date": add_months(now, 1),
            "usage_limit": usage_limit,
        }
        if event.customer_id:
            updates["stripe_customer_id"] = event.customer_id
        if event.subscription_id:
            updates["stripe_subscription_id"] = event.subscription_id

        updated = await self.users.update_by_id(event.user_id, updates)
        if updated:
            logger.info(f"User {event.user_id} subscription activated: {event.plan}")
        else:
            logger.warning(f"Checkout completed for unknown user {event.user_id}, nothing updated")
        return updated

    async def payment_succeeded(self, event: PaymentSucceeded) -> int:
        updated = await self.users.update_by_subscription_id(event.subscription_id, {
            "subscription_status": STATUS_ACTIVE,
            "subscription_end_date": add_months(utcnow(), 1),
        })
        logger.info(f"Subscription {event.subscription_id} renewed ({updated} user(s))")
        return updated

    async def payment_failed(self, event: PaymentFailed) -> int:
        updated = await self.users.update_by_subscription_id(event.subscription_id, {
            "subscription_status": STATUS_PAYMENT_FAILED,
        })
        logger.info(f"Subscription {event.subscription_id} payment failed ({updated} user(s))")
        return updated

    async def subscription_canceled(self, event: SubscriptionCanceled) -> int:
        # Access continues until subscription_end_date; only the status changes
        updated = await self.users.update_by_subscription_id(event.subscription_id, {
            "subscription_status": STATUS_CANCELLED,
            "stripe_subscription_id": None,
        })
        logger.info(f"Subscription {event.subscription_id} marked as cancelled ({updated} user(s))")
        return updated


class BillingService:
    """
    Service class for Stripe-facing billing operations.
    Stripe failures surface as UpstreamUnavailable.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)
        self.plans = PlanRepository(db)

    @staticmethod
    def _require_stripe() -> None:
        if not settings.stripe_secret_key:
            logger.error("STRIPE_SECRET_KEY is not set. Cannot call Stripe.")
            raise UpstreamUnavailable("Stripe configuration missing")

    async def _ensure_customer(self, user: User) -> str:
        if user.stripe_customer_id:
            return user.stripe_customer_id
        customer = stripe.Customer.create(
            email=user.email,
            name=user.name,
            metadata={"user_id": str(user.id)},
        )
        await self.users.update_user(user, {"stripe_customer_id": customer.id})
        return customer.id

    async def create_checkout_session(self, user: User, plan_key: str, origin: Optional[str] = None) -> dict:
        """
        Create a Stripe Checkout session for a monthly subscription.

        Returns:
            {"checkout_url": str, "session_id": str}
        """
        if user.is_admin:
            raise InvalidInput("Admin users do not need subscriptions")

        plan = await self.plans.get_by_key(plan_key, active_only=True)
        if not plan or plan.plan_key == PLAN_TRIAL:
            raise NotFound("Subscription plan not found or inactive")

        self._require_stripe()
        return_base = origin or settings.frontend_url or settings.base_url

        try:
            customer_id = await self._ensure_customer(user)
            checkout_session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": "usd",
                        "product_data": {
                            "name": plan.name,
                            "description": plan.description or plan.name,
                        },
                        "unit_amount": int(round(float(plan.price_monthly) * 100)),
                        "recurring": {"interval": "month"},
                    },
                    "quantity": 1,
                }],
                mode="subscription",
                success_url=f"{return_base}?session_id={{CHECKOUT_SESSION_ID}}&success=true",
                cancel_url=f"{return_base}?canceled=true",
                metadata={"user_id": str(user.id), "plan": plan.plan_key},
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session: {e}", exc_info=True)
            raise UpstreamUnavailable(f"Failed to create checkout session: {e}")

        return {"checkout_url": checkout_session.url, "session_id": checkout_session.id}

    async def cancel_subscription(self, user: User) -> dict:
        """Cancel at period end; the user keeps access until subscription_end_date."""
        if not user.stripe_subscription_id:
            raise InvalidInput("No active subscription found")
        self._require_stripe()
        try:
            stripe.Subscription.modify(user.stripe_subscription_id, cancel_at_period_end=True)
        except stripe.StripeError as e:
            logger.error(f"Cancel subscription error: {e}", exc_info=True)
            raise UpstreamUnavailable(f"Failed to cancel subscription: {e}")
        await self.users.update_user(user, {"subscription_status": STATUS_CANCELLED})
        return {"message": "Subscription will be canceled at the end of your current billing period"}

    async def reactivate_subscription(self, user: User) -> dict:
        if not user.stripe_subscription_id:
            raise InvalidInput("No subscription found")
        self._require_stripe()
        try:
            stripe.Subscription.modify(user.stripe_subscription_id, cancel_at_period_end=False)
        except stripe.StripeError as e:
            logger.error(f"Reactivate subscription error: {e}", exc_info=True)
            raise UpstreamUnavailable(f"Failed to reactivate subscription: {e}")
        await self.users.update_user(user, {"subscription_status": STATUS_ACTIVE})
        return {"message": "Subscription reactivated successfully"}

    async def create_billing_portal_session(self, user: User, origin: Optional[str] = None) -> dict:
        if not user.stripe_customer_id:
            raise InvalidInput("No Stripe customer found")
        self._require_stripe()
        try:
            portal_session = stripe.billing_portal.Session.create(
                customer=user.stripe_customer_id,
                return_url=origin or settings.frontend_url or settings.base_url,
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create billing portal session: {e}", exc_info=True)
            raise UpstreamUnavailable(f"Failed to create portal session: {e}")
        return {"portal_url": portal_session.url}

    async def process_webhook(self, event) -> dict:
        """
        Reconcile a verified Stripe webhook event.

        Returns:
            Normalized response: {"data": {...}, "is_error": False}
        """
        event_type = event["type"]
        logger.info(f"Processing Stripe webhook event: {event_type} ({event.get('id')})")

        billing_event = normalize_stripe_event(event)
        if billing_event is None:
            return {"data": {"event_type": event_type, "handled": False, "updated": 0}, "is_error": False}

        updated = await BillingReconciler(self.db).apply(billing_event)
        return {"data": {"event_type": event_type, "handled": True, "updated": updated}, "is_error": False}
