from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    plan: str = Field(min_length=1, max_length=50)


class ManageSubscriptionRequest(BaseModel):
    action: Literal["cancel", "reactivate", "get_portal_url"]


class PlanRequest(BaseModel):
    """Create (no id) or update (with id) a catalogue entry."""
    id: Optional[int] = None
    plan_key: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    price_monthly: Decimal = Field(ge=0)
    price_yearly: Optional[Decimal] = Field(default=None, ge=0)
    usage_limit: Optional[int] = Field(default=None, ge=1)
    features: List[str] = []
    is_active: bool = True
    sort_order: int = 0


# ---------------------------------------------------------------------------
# Billing events: provider-neutral shape of the lifecycle signals the
# reconciler applies to user subscription state.
# ---------------------------------------------------------------------------

class CheckoutCompleted(BaseModel):
    type: Literal["checkout_completed"] = "checkout_completed"
    user_id: int
    plan: str
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None


class PaymentSucceeded(BaseModel):
    type: Literal["payment_succeeded"] = "payment_succeeded"
    subscription_id: str


class PaymentFailed(BaseModel):
    type: Literal["payment_failed"] = "payment_failed"
    subscription_id: str


class SubscriptionCanceled(BaseModel):
    type: Literal["subscription_canceled"] = "subscription_canceled"
    subscription_id: str


BillingEvent = Annotated[
    Union[CheckoutCompleted, PaymentSucceeded, PaymentFailed, SubscriptionCanceled],
    Field(discriminator="type"),
]
