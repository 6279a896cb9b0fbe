"""
Tests for the subscription endpoints: status, plan catalogue, checkout and the Stripe webhook
"""
from types import SimpleNamespace
from unittest.mock import patch

import stripe

from config.settings import settings
from conftest import auth_headers, create_user, reload_user


def checkout_event(user_id: int, plan: str = "premier") -> dict:
    return {
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_1",
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"user_id": str(user_id), "plan": plan},
        }},
    }


async def test_status_for_trial_user(async_client, test_db):
    user = await create_user(test_db, usage_count=250)

    response = await async_client.get("/api/subscription/status", headers=auth_headers(user))

    data = response.json()["data"]
    assert data["status"] == "trial"
    assert data["isActive"] is True
    assert data["usagePercentage"] == 25
    assert data["daysRemaining"] == 14
    assert data["planDetails"]["planKey"] == "trial"


async def test_plans_are_seeded_and_ordered(async_client):
    response = await async_client.get("/api/subscription/plans")

    plans = response.json()["data"]["plans"]
    assert [p["planKey"] for p in plans] == ["trial", "basic", "premium", "premier"]
    assert plans[1]["usageLimit"] == 500
    assert plans[3]["usageLimit"] is None


async def test_admin_manages_plans(async_client, test_db):
    admin = await create_user(test_db, email="admin@example.com", is_admin=True)
    rider = await create_user(test_db, email="rider@example.com", subscription_plan="basic")
    plan = {"plan_key": "team-lite", "name": "Team Lite", "price_monthly": "29.99", "usage_limit": 2000}

    forbidden = await async_client.post("/api/subscription/plans", headers=auth_headers(rider), json=plan)
    created = await async_client.post("/api/subscription/plans", headers=auth_headers(admin), json=plan)
    duplicate = await async_client.post("/api/subscription/plans", headers=auth_headers(admin), json=plan)

    assert forbidden.status_code == 403
    assert created.status_code == 200
    assert created.json()["data"]["plan"]["priceMonthly"] == 29.99
    assert duplicate.status_code == 409

    plans = (await async_client.get("/api/subscription/plans")).json()["data"]["plans"]
    basic_id = next(p["id"] for p in plans if p["planKey"] == "basic")
    new_id = created.json()["data"]["plan"]["id"]

    in_use = await async_client.delete(f"/api/subscription/plans/{basic_id}", headers=auth_headers(admin))
    unused = await async_client.delete(f"/api/subscription/plans/{new_id}", headers=auth_headers(admin))

    assert in_use.json()["data"]["deleted"] is False
    assert in_use.json()["data"]["plan"]["isActive"] is False
    assert unused.json()["data"]["deleted"] is True


async def test_checkout_refused_for_admin_and_unknown_plan(async_client, test_db):
    admin = await create_user(test_db, email="admin@example.com", is_admin=True)
    rider = await create_user(test_db, email="rider@example.com")

    admin_response = await async_client.post("/api/subscription/checkout", headers=auth_headers(admin), json={"plan": "basic"})
    trial_response = await async_client.post("/api/subscription/checkout", headers=auth_headers(rider), json={"plan": "trial"})
    unknown_response = await async_client.post("/api/subscription/checkout", headers=auth_headers(rider), json={"plan": "gold"})

    assert admin_response.status_code == 400
    assert trial_response.status_code == 404
    assert unknown_response.status_code == 404


async def test_checkout_creates_customer_and_session(async_client, test_db):
    rider = await create_user(test_db, email="rider@example.com")

    with patch.object(settings, "stripe_secret_key", "sk_test_123"), \
         patch("stripe.Customer.create", return_value=SimpleNamespace(id="cus_new")) as create_customer, \
         patch("stripe.checkout.Session.create",
               return_value=SimpleNamespace(id="cs_123", url="https://checkout.stripe.test/cs_123")) as create_session:
        response = await async_client.post("/api/subscription/checkout", headers=auth_headers(rider), json={"plan": "premier"})

    assert response.status_code == 200
    assert response.json()["data"]["checkout_url"] == "https://checkout.stripe.test/cs_123"
    create_customer.assert_called_once()
    kwargs = create_session.call_args.kwargs
    assert kwargs["metadata"] == {"user_id": str(rider.id), "plan": "premier"}
    assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 4999
    assert (await reload_user(test_db, rider.id)).stripe_customer_id == "cus_new"


async def test_checkout_reports_stripe_failure(async_client, test_db):
    rider = await create_user(test_db, email="rider@example.com", stripe_customer_id="cus_1")

    with patch.object(settings, "stripe_secret_key", "sk_test_123"), \
         patch("stripe.checkout.Session.create", side_effect=stripe.StripeError("card network down")):
        response = await async_client.post("/api/subscription/checkout", headers=auth_headers(rider), json={"plan": "basic"})

    assert response.status_code == 502
    assert response.json()["ok"] is False


async def test_manage_cancel_requires_subscription(async_client, test_db):
    rider = await create_user(test_db)

    response = await async_client.post("/api/subscription/manage", headers=auth_headers(rider), json={"action": "cancel"})

    assert response.status_code == 400


# ------------------------------------------------------------------ webhook

async def test_webhook_applies_checkout(async_client, test_db):
    rider = await create_user(test_db)

    with patch.object(settings, "stripe_webhook_secret", "whsec_test"), \
         patch("stripe.Webhook.construct_event", return_value=checkout_event(rider.id)):
        response = await async_client.post(
            "/api/subscription/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

    assert response.status_code == 200
    assert response.json()["data"]["updated"] == 1
    user = await reload_user(test_db, rider.id)
    assert user.subscription_status == "active"
    assert user.subscription_plan == "premier"
    assert user.usage_limit is None


async def test_webhook_ignores_unknown_events(async_client):
    event = {"id": "evt_2", "type": "customer.created", "data": {"object": {"id": "cus_1"}}}

    with patch.object(settings, "stripe_webhook_secret", "whsec_test"), \
         patch("stripe.Webhook.construct_event", return_value=event):
        response = await async_client.post(
            "/api/subscription/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

    assert response.status_code == 200
    assert response.json()["data"]["handled"] is False


async def test_webhook_acknowledges_uncorrelatable_checkout(async_client, test_db):
    """A checkout whose metadata names no local user is a no-op, not a retryable failure."""
    rider = await create_user(test_db)
    event = checkout_event(rider.id)
    event["data"]["object"]["metadata"]["user_id"] = "abc"

    with patch.object(settings, "stripe_webhook_secret", "whsec_test"), \
         patch("stripe.Webhook.construct_event", return_value=event):
        response = await async_client.post(
            "/api/subscription/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

    assert response.status_code == 200
    assert response.json()["data"]["handled"] is False
    assert (await reload_user(test_db, rider.id)).subscription_status == "trial"


async def test_webhook_rejects_bad_signature(async_client):
    error = stripe.SignatureVerificationError("No signatures found", "t=1,v1=bad")

    with patch.object(settings, "stripe_webhook_secret", "whsec_test"), \
         patch("stripe.Webhook.construct_event", side_effect=error):
        bad = await async_client.post(
            "/api/subscription/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=bad"}
        )
        missing = await async_client.post("/api/subscription/webhook", content=b"{}")

    assert bad.status_code == 400
    assert missing.status_code == 400


async def test_webhook_processing_error_returns_500(async_client, test_db):
    rider = await create_user(test_db)

    with patch.object(settings, "stripe_webhook_secret", "whsec_test"), \
         patch("stripe.Webhook.construct_event", return_value=checkout_event(rider.id)), \
         patch("services.billing_service.BillingReconciler.apply", side_effect=RuntimeError("db down")):
        response = await async_client.post(
            "/api/subscription/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"}
        )

    assert response.status_code == 500
    assert (await reload_user(test_db, rider.id)).subscription_status == "trial"
