"""
Subscription Router - entitlement status, plan catalogue and Stripe billing
Webhook is defined FIRST so it stays independent of the auth dependencies
"""

import logging

import stripe
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth import get_current_user, require_admin
from backend.utils.responses import error_response, success_response
from config.settings import settings
from crud.plan import PlanRepository
from database import get_db
from database_models import User
from models.subscription import CheckoutRequest, ManageSubscriptionRequest, PlanRequest
from services import entitlement_service
from services.billing_service import BillingService
from services.plan_service import PlanService, serialize_plan
from utils.shared_utils import isoformat_or_none, log_endpoint_event

logger = logging.getLogger(__name__)

subscription_router = APIRouter(prefix="/api/subscription", tags=["subscription"])


# WEBHOOK ENDPOINT - no bearer token, authenticated by the Stripe signature
@subscription_router.post("/webhook")
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Handle Stripe webhook events with signature verification.

    Returns 400 for unverifiable requests and 500 when processing fails so
    Stripe retries the delivery.
    """
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET environment variable is not set")
        return error_response("Stripe configuration missing", status=500, message="Webhook secret not configured")

    # Raw body is required for signature verification
    payload = await request.body()
    stripe_signature = request.headers.get("stripe-signature")
    if not stripe_signature:
        logger.error("Missing Stripe-Signature header")
        return error_response("Missing signature header", status=400, message="Webhook signature missing")

    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Stripe webhook signature verification failed: {e}")
        return error_response("Invalid webhook signature", status=400, message=str(e))
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        return error_response("Invalid payload format", status=400, message=str(e))

    try:
        result = await BillingService(db).process_webhook(event)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"Webhook processing error: {e}", exc_info=True)
        return error_response("Webhook processing failed", status=500, message=str(e))

    return success_response({"received": True, **result["data"]})


@subscription_router.get("/status")
async def subscription_status(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    status = entitlement_service.evaluate(user)
    plan = await PlanRepository(db).get_by_key(user.subscription_plan) if user.subscription_plan else None

    data = status.to_dict()
    data.update({
        "trialEndDate": isoformat_or_none(user.trial_end_date),
        "subscriptionEndDate": isoformat_or_none(user.subscription_end_date),
        "planDetails": serialize_plan(plan) if plan else None,
        "stripeCustomerId": user.stripe_customer_id,
        "stripeSubscriptionId": user.stripe_subscription_id,
    })
    return success_response(data)


@subscription_router.get("/plans")
async def list_plans(db: AsyncSession = Depends(get_db)):
    plans = await PlanService(db).list_plans()
    return success_response({"plans": [serialize_plan(p) for p in plans]})


@subscription_router.post("/plans")
async def save_plan(
    request: PlanRequest,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    plan = await PlanService(db).save_plan(request)
    await db.commit()
    log_endpoint_event("/subscription/plans", admin.id, "success", {"plan_key": plan.plan_key})
    return success_response({"plan": serialize_plan(plan)}, "Plan saved successfully")


@subscription_router.delete("/plans/{plan_id}")
async def delete_plan(
    plan_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await PlanService(db).delete_plan(plan_id)
    await db.commit()
    message = "Plan deleted successfully" if result["deleted"] else "Plan is in use and has been deactivated"
    return success_response({"plan": serialize_plan(result["plan"]), "deleted": result["deleted"]}, message)


@subscription_router.post("/checkout")
async def create_checkout_session(
    request: CheckoutRequest,
    http_request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await BillingService(db).create_checkout_session(
        user, request.plan, origin=http_request.headers.get("origin")
    )
    await db.commit()
    log_endpoint_event("/subscription/checkout", user.id, "success", {"plan": request.plan})
    return success_response(result)


@subscription_router.post("/manage")
async def manage_subscription(
    request: ManageSubscriptionRequest,
    http_request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    billing_service = BillingService(db)
    if request.action == "cancel":
        result = await billing_service.cancel_subscription(user)
    elif request.action == "reactivate":
        result = await billing_service.reactivate_subscription(user)
    else:
        result = await billing_service.create_billing_portal_session(
            user, origin=http_request.headers.get("origin")
        )
    await db.commit()
    log_endpoint_event("/subscription/manage", user.id, "success", {"action": request.action})
    return success_response(result, result.get("message", "OK"))
