"""
Billing Endpoints

Hosted checkout and payment-method flows, subscription cancellation and the
member's billing history.
"""

from fastapi import APIRouter, Depends

from covetalks.auth.session import SessionUser
from covetalks.dependencies import get_billing_service, get_current_user
from covetalks.models.requests import (
    CheckoutRequest,
    PaymentMethodRequest,
    SubscriptionActionRequest,
)
from covetalks.services.billing_service import BillingService

router = APIRouter(tags=["billing"])


@router.post("/api/stripe/create-checkout")
async def create_checkout(
    body: CheckoutRequest,
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    url = await billing.create_checkout_session(body.plan_type, body.billing_period, user.id)
    return {"url": url}


@router.post("/api/stripe/create-setup-intent")
async def create_setup_intent(
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    url = await billing.create_setup_session(user.id)
    return {"url": url}


@router.post("/api/stripe/cancel-subscription")
async def cancel_subscription(
    body: SubscriptionActionRequest,
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    subscription = await billing.cancel_subscription(body.subscription_id, user.id)
    return {"success": True, "subscription": subscription}


@router.post("/api/stripe/reactivate-subscription")
async def reactivate_subscription(
    body: SubscriptionActionRequest,
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    subscription = await billing.reactivate_subscription(body.subscription_id, user.id)
    return {"success": True, "subscription": subscription}


@router.get("/api/stripe/payment-methods")
async def payment_methods(
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return {"paymentMethods": await billing.list_payment_methods(user.id)}


@router.delete("/api/stripe/remove-payment-method")
async def remove_payment_method(
    body: PaymentMethodRequest,
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    await billing.remove_payment_method(body.payment_method_id, user.id)
    return {"success": True}


@router.post("/api/stripe/set-default-payment-method")
async def set_default_payment_method(
    body: PaymentMethodRequest,
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    await billing.set_default_payment_method(body.payment_method_id, user.id)
    return {"success": True}


@router.get("/api/stripe/prices")
async def prices(billing: BillingService = Depends(get_billing_service)):
    return {"prices": await billing.list_prices()}


@router.get("/api/billing/subscription")
def current_subscription(
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return {"subscription": billing.get_current_subscription(user.id)}


@router.get("/api/billing/payments")
def payment_history(
    user: SessionUser = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    return {"payments": billing.list_payments(user.id)}
