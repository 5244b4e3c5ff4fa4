"""
Test data factories for Stripe webhook events.
"""

import random
import string
import time
from typing import Any, Dict, Optional


class StripeEventFactory:
    """Factory for creating Stripe event payloads."""

    @staticmethod
    def _random_id(prefix: str) -> str:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=14))
        return f"{prefix}_{suffix}"

    @classmethod
    def event(cls, event_type: str, obj: Dict[str, Any], event_id: Optional[str] = None) -> Dict[str, Any]:
        return {
            "id": event_id or cls._random_id("evt"),
            "object": "event",
            "api_version": "2024-06-20",
            "created": int(time.time()),
            "type": event_type,
            "livemode": False,
            "data": {"object": obj},
        }

    @classmethod
    def subscription(
        cls,
        subscription_id: str = "sub_test123",
        status: str = "active",
        customer: str = "cus_test123",
        cancel_at_period_end: bool = False,
        price_id: str = "price_standard_monthly",
        unit_amount: int = 2900,
    ) -> Dict[str, Any]:
        now = int(time.time())
        return {
            "id": subscription_id,
            "object": "subscription",
            "customer": customer,
            "status": status,
            "cancel_at_period_end": cancel_at_period_end,
            "current_period_start": now,
            "current_period_end": now + 2592000,
            "items": {
                "data": [
                    {
                        "price": {
                            "id": price_id,
                            "unit_amount": unit_amount,
                            "currency": "usd",
                        }
                    }
                ]
            },
            "metadata": {},
        }

    @classmethod
    def checkout_completed(
        cls,
        member_id: Optional[str] = "speaker-1",
        subscription_id: Optional[str] = "sub_test123",
        customer: str = "cus_test123",
        plan_type: str = "Standard",
        billing_period: str = "Monthly",
        event_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        metadata = {"plan_type": plan_type, "billing_period": billing_period}
        if member_id:
            metadata["supabase_user_id"] = member_id
        return cls.event(
            "checkout.session.completed",
            {
                "id": cls._random_id("cs"),
                "object": "checkout.session",
                "mode": "subscription" if subscription_id else "setup",
                "customer": customer,
                "subscription": subscription_id,
                "payment_status": "paid",
                "status": "complete",
                "metadata": metadata,
            },
            event_id,
        )

    @classmethod
    def subscription_updated(cls, event_id: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
        return cls.event("customer.subscription.updated", cls.subscription(**kwargs), event_id)

    @classmethod
    def subscription_deleted(cls, event_id: Optional[str] = None, **kwargs: Any) -> Dict[str, Any]:
        kwargs.setdefault("status", "canceled")
        return cls.event("customer.subscription.deleted", cls.subscription(**kwargs), event_id)

    @classmethod
    def invoice_payment_succeeded(
        cls,
        invoice_id: str = "in_test123",
        subscription_id: Optional[str] = "sub_test123",
        customer: str = "cus_test123",
        amount_paid: int = 2900,
        metadata: Optional[Dict[str, Any]] = None,
        event_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        return cls.event(
            "invoice.payment_succeeded",
            {
                "id": invoice_id,
                "object": "invoice",
                "customer": customer,
                "subscription": subscription_id,
                "charge": "ch_test123",
                "amount_paid": amount_paid,
                "currency": "usd",
                "created": int(time.time()),
                "hosted_invoice_url": f"https://invoice.stripe.test/{invoice_id}",
                "metadata": metadata or {},
            },
            event_id,
        )
