"""
Billing Service

Customer-facing billing operations (hosted checkout, payment methods,
cancellation) and the verified entry point for Stripe webhooks.
"""

from typing import Any, Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from covetalks.config import BILLING_PERIODS, PLAN_TYPES, Settings
from covetalks.handlers import EventRouter, PaymentHandler, SubscriptionHandler
from covetalks.models.records import Member, PlanType, Subscription
from covetalks.repositories import Repositories
from covetalks.services.stripe_service import StripeService
from covetalks.utils.exceptions import ConfigurationError, Forbidden, NotFound
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import utc_now_iso

logger = get_logger(__name__)


PLAN_FEATURES: Dict[str, List[str]] = {
    PlanType.FREE.value: [
        "Basic profile",
        "5 applications per month",
        "Basic search filters",
        "Email support",
    ],
    PlanType.STANDARD.value: [
        "Everything in Free",
        "Unlimited applications",
        "Advanced search filters",
        "Priority support",
        "Featured profile badge",
        "Speaking opportunity alerts",
    ],
    PlanType.PLUS.value: [
        "Everything in Standard",
        "Priority listing",
        "Analytics dashboard",
        "Booking management tools",
        "Custom speaker tags",
        "Phone support",
    ],
    PlanType.PREMIUM.value: [
        "Everything in Plus",
        "Top search placement",
        "Dedicated account manager",
        "API access",
        "White-label options",
        "Premium opportunities",
    ],
}

POPULAR_PLAN = PlanType.PLUS.value


class BillingService:
    """Billing operations for one request"""

    def __init__(
        self,
        settings: Settings,
        repositories: Repositories,
        stripe_service: StripeService,
    ):
        self.settings = settings
        self.repositories = repositories
        self.stripe_service = stripe_service
        self.event_router = EventRouter(
            SubscriptionHandler(repositories, stripe_service),
            PaymentHandler(repositories),
        )

    @property
    def _billing_url(self) -> str:
        return f"{self.settings.app_url.rstrip('/')}/settings?tab=billing"

    def _get_member(self, member_id: str) -> Member:
        row = self.repositories.members.get(member_id)
        if row is None:
            raise NotFound("Member", member_id)
        return Member.model_validate(row)

    async def _resolve_customer(self, member_id: str) -> str:
        """
        Return the member's Stripe customer id, creating the customer first
        if needed. A new id is persisted before it is returned.
        """
        member = await run_in_threadpool(self._get_member, member_id)
        if member.stripe_customer_id:
            return member.stripe_customer_id

        customer_id = await self.stripe_service.create_customer(
            email=member.email,
            name=member.name,
            member_id=member_id,
        )
        await run_in_threadpool(
            self.repositories.members.update, member_id, {"stripe_customer_id": customer_id}
        )

        logger.info(
            "Linked new Stripe customer to member",
            extra={"member_id": member_id, "customer_id": customer_id},
        )
        return customer_id

    def _price_id(self, plan: str, period: str) -> str:
        price_id = self.settings.price_id_for(plan, period)
        if not price_id:
            raise ConfigurationError(
                f"No Stripe price configured for {plan} {period}",
                details={"plan_type": plan, "billing_period": period},
            )
        return price_id

    async def create_checkout_session(self, plan: str, period: str, member_id: str) -> str:
        """
        Open a hosted subscription checkout for a member.

        Returns:
            Checkout URL

        Raises:
            ConfigurationError: If no price id is configured for (plan, period)
        """
        price_id = self._price_id(plan, period)
        customer_id = await self._resolve_customer(member_id)

        return await self.stripe_service.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            metadata={
                "supabase_user_id": member_id,
                "plan_type": plan,
                "billing_period": period,
            },
            success_url=f"{self._billing_url}&subscription=success",
            cancel_url=self._billing_url,
        )

    async def create_setup_session(self, member_id: str) -> str:
        """Open a hosted payment-method setup flow; returns its URL"""
        customer_id = await self._resolve_customer(member_id)
        return await self.stripe_service.create_setup_session(
            customer_id=customer_id,
            member_id=member_id,
            success_url=f"{self._billing_url}&payment=success",
            cancel_url=self._billing_url,
        )

    def _owned_subscription(self, subscription_id: str, member_id: str) -> Subscription:
        row = self.repositories.subscriptions.get_by_stripe_id(subscription_id)
        if row is None:
            raise NotFound("Subscription", subscription_id)
        subscription = Subscription.model_validate(row)
        if subscription.member_id != member_id:
            logger.warning(
                "Subscription action on another member's subscription rejected",
                extra={"subscription_id": subscription_id, "member_id": member_id},
            )
            raise Forbidden("Subscription belongs to another member")
        return subscription

    async def cancel_subscription(self, subscription_id: str, member_id: str) -> Dict[str, Any]:
        """Cancel at period end, in Stripe first and then locally"""
        await run_in_threadpool(self._owned_subscription, subscription_id, member_id)
        await self.stripe_service.set_cancel_at_period_end(subscription_id, True)

        now = utc_now_iso()
        rows = await run_in_threadpool(
            self.repositories.subscriptions.update_by_stripe_id,
            subscription_id,
            {"cancel_at_period_end": True, "cancelled_at": now, "updated_at": now},
            member_id=member_id,
        )
        logger.info(
            "Subscription scheduled for cancellation",
            extra={"subscription_id": subscription_id, "member_id": member_id},
        )
        return rows[0] if rows else {}

    async def reactivate_subscription(self, subscription_id: str, member_id: str) -> Dict[str, Any]:
        """Undo a scheduled cancellation"""
        await run_in_threadpool(self._owned_subscription, subscription_id, member_id)
        await self.stripe_service.set_cancel_at_period_end(subscription_id, False)

        rows = await run_in_threadpool(
            self.repositories.subscriptions.update_by_stripe_id,
            subscription_id,
            {"cancel_at_period_end": False, "cancelled_at": None, "updated_at": utc_now_iso()},
            member_id=member_id,
        )
        logger.info(
            "Subscription reactivated",
            extra={"subscription_id": subscription_id, "member_id": member_id},
        )
        return rows[0] if rows else {}

    async def handle_webhook(self, raw_body: bytes, signature_header: str) -> Dict[str, Any]:
        """
        Verify a Stripe webhook and apply it.

        Raises:
            InvalidSignature: Before any state is touched, if verification fails
        """
        event = await self.stripe_service.verify_webhook_signature(raw_body, signature_header)
        return await self.event_router.route_event(event)

    async def list_payment_methods(self, member_id: str) -> List[Dict[str, Any]]:
        member = await run_in_threadpool(self._get_member, member_id)
        if not member.stripe_customer_id:
            return []

        methods = await self.stripe_service.list_card_payment_methods(member.stripe_customer_id)
        customer = await self.stripe_service.get_customer(member.stripe_customer_id)
        default_id = (customer.get("invoice_settings") or {}).get("default_payment_method")

        formatted = []
        for method in methods:
            card = method.get("card") or {}
            formatted.append(
                {
                    "id": method["id"],
                    "brand": card.get("brand") or "unknown",
                    "last4": card.get("last4") or "",
                    "exp_month": card.get("exp_month") or 0,
                    "exp_year": card.get("exp_year") or 0,
                    "is_default": method["id"] == default_id,
                }
            )
        return formatted

    async def _owned_payment_method(self, payment_method_id: str, member_id: str) -> str:
        """Return the member's customer id after checking it owns the method"""
        member = await run_in_threadpool(self._get_member, member_id)
        method = await self.stripe_service.get_payment_method(payment_method_id)
        if not member.stripe_customer_id or method.get("customer") != member.stripe_customer_id:
            raise Forbidden("Payment method belongs to another customer")
        return member.stripe_customer_id

    async def remove_payment_method(self, payment_method_id: str, member_id: str) -> None:
        await self._owned_payment_method(payment_method_id, member_id)
        await self.stripe_service.detach_payment_method(payment_method_id)

    async def set_default_payment_method(self, payment_method_id: str, member_id: str) -> None:
        customer_id = await self._owned_payment_method(payment_method_id, member_id)
        await self.stripe_service.set_default_payment_method(customer_id, payment_method_id)

    async def list_prices(self) -> Dict[str, Any]:
        """Free plan plus each paid plan with amounts fetched from Stripe"""
        prices: Dict[str, Any] = {
            PlanType.FREE.value: {
                "name": PlanType.FREE.value,
                "monthly": 0,
                "yearly": 0,
                "popular": False,
                "features": PLAN_FEATURES[PlanType.FREE.value],
            }
        }

        for plan in PLAN_TYPES:
            amounts: Dict[str, float] = {}
            price_ids: Dict[str, Optional[str]] = {}
            for period in BILLING_PERIODS:
                price_id = self._price_id(plan, period)
                price = await self.stripe_service.get_price(price_id)
                amounts[period] = (price.get("unit_amount") or 0) / 100
                price_ids[period] = price_id

            prices[plan] = {
                "name": plan,
                "monthly": amounts["Monthly"],
                "yearly": amounts["Yearly"],
                "popular": plan == POPULAR_PLAN,
                "monthlyPriceId": price_ids["Monthly"],
                "yearlyPriceId": price_ids["Yearly"],
                "features": PLAN_FEATURES[plan],
            }

        return prices

    def get_current_subscription(self, member_id: str) -> Optional[Dict[str, Any]]:
        return self.repositories.subscriptions.current_for_member(member_id)

    def list_payments(self, member_id: str) -> List[Dict[str, Any]]:
        return self.repositories.payments.list_for_member(member_id)
