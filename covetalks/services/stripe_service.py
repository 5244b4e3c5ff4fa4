"""
Stripe Service

Webhook signature verification plus the Stripe API calls the billing flows
need. Stripe errors are logged and re-raised as UpstreamError so provider
internals never reach the caller.
"""

from typing import Any, Dict, List, Optional

import stripe
from fastapi import Request
from starlette.concurrency import run_in_threadpool

from covetalks.models.stripe_events import StripeEvent
from covetalks.utils.exceptions import InvalidSignature, UpstreamError, ValidationError
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)


def to_dict(obj: Any) -> Dict[str, Any]:
    """Plain dict view of a StripeObject"""
    if isinstance(obj, dict):
        return obj
    return obj.to_dict()


class StripeService:
    """Stripe webhook and API service bound to one StripeClient"""

    def __init__(self, client: stripe.StripeClient, webhook_secret: Optional[str]):
        self.client = client
        self.webhook_secret = webhook_secret

    def _upstream_error(self, action: str, error: Exception, **context: Any) -> UpstreamError:
        logger.error(
            f"Stripe call failed: {action}: {error}",
            extra={"action": action, "error": str(error), **context},
        )
        return UpstreamError(
            f"Stripe {action} failed: {error}",
            provider="stripe",
            public_message=f"Failed to {action}",
            details=context,
        )

    async def verify_webhook_signature(
        self,
        payload: bytes,
        signature: str,
    ) -> StripeEvent:
        """
        Verify Stripe webhook signature using the library's HMAC check.

        Args:
            payload: Raw request body as bytes
            signature: Stripe-Signature header value

        Returns:
            Validated StripeEvent

        Raises:
            InvalidSignature: If verification fails or the secret is not configured
            ValidationError: If the payload is not a valid event
        """
        if not self.webhook_secret:
            logger.error("Stripe webhook secret is not configured")
            raise InvalidSignature()

        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            logger.error(
                f"Stripe signature verification failed: {e}",
                extra={"error": str(e)},
            )
            raise InvalidSignature() from e
        except ValueError as e:
            logger.error(f"Invalid webhook payload: {e}")
            raise ValidationError("Invalid webhook payload") from e

        try:
            stripe_event = StripeEvent.model_validate_json(payload)
        except ValueError as e:
            logger.error(f"Webhook payload is not a Stripe event: {e}")
            raise ValidationError("Invalid webhook payload") from e

        logger.info(
            "Webhook signature verified successfully",
            extra={"event_id": stripe_event.id, "event_type": stripe_event.type},
        )
        return stripe_event

    async def extract_webhook_data(self, request: Request) -> tuple[bytes, str]:
        """
        Extract webhook payload and signature from request.

        Raises:
            ValidationError: If the signature header or body is missing
        """
        payload = await request.body()
        signature = request.headers.get("Stripe-Signature")

        if not signature:
            raise ValidationError(
                "Missing Stripe-Signature header",
                details={"header": "Stripe-Signature"},
            )

        if not payload:
            raise ValidationError("Empty request body", details={"body": "empty"})

        return payload, signature

    async def create_customer(self, email: Optional[str], name: Optional[str], member_id: str) -> str:
        """
        Create a Stripe customer for a member.

        The member id doubles as idempotency key so concurrent checkouts for
        the same member cannot create two customers.

        Returns:
            Stripe customer ID
        """
        try:
            customer = await run_in_threadpool(
                self.client.customers.create,
                params={
                    "email": email,
                    "name": name,
                    "metadata": {"supabase_user_id": member_id},
                },
                options={"idempotency_key": f"customer-{member_id}"},
            )
        except stripe.StripeError as e:
            raise self._upstream_error("create customer", e, member_id=member_id) from e

        logger.info(
            "Created Stripe customer",
            extra={"customer_id": customer.id, "member_id": member_id},
        )
        return customer.id

    async def get_customer(self, customer_id: str) -> Dict[str, Any]:
        try:
            customer = await run_in_threadpool(self.client.customers.retrieve, customer_id)
        except stripe.StripeError as e:
            raise self._upstream_error("retrieve customer", e, customer_id=customer_id) from e
        return to_dict(customer)

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> str:
        """
        Create a hosted subscription checkout.

        Returns:
            Checkout URL
        """
        try:
            session = await run_in_threadpool(
                self.client.checkout.sessions.create,
                params={
                    "customer": customer_id,
                    "payment_method_types": ["card"],
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "mode": "subscription",
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "metadata": metadata,
                    "subscription_data": {"metadata": metadata},
                }
            )
        except stripe.StripeError as e:
            raise self._upstream_error(
                "create checkout session", e, customer_id=customer_id, price_id=price_id
            ) from e

        logger.info(
            "Created checkout session",
            extra={"session_id": session.id, "customer_id": customer_id, "price_id": price_id},
        )
        return session.url

    async def create_setup_session(
        self,
        customer_id: str,
        member_id: str,
        success_url: str,
        cancel_url: str,
    ) -> str:
        """
        Create a hosted checkout in setup mode for adding a payment method.

        Returns:
            Checkout URL
        """
        try:
            session = await run_in_threadpool(
                self.client.checkout.sessions.create,
                params={
                    "customer": customer_id,
                    "payment_method_types": ["card"],
                    "mode": "setup",
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "setup_intent_data": {"metadata": {"supabase_user_id": member_id}},
                }
            )
        except stripe.StripeError as e:
            raise self._upstream_error("create setup session", e, customer_id=customer_id) from e

        logger.info(
            "Created setup session",
            extra={"session_id": session.id, "customer_id": customer_id},
        )
        return session.url

    async def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        try:
            subscription = await run_in_threadpool(self.client.subscriptions.retrieve, subscription_id)
        except stripe.StripeError as e:
            raise self._upstream_error(
                "retrieve subscription", e, subscription_id=subscription_id
            ) from e

        logger.info(
            "Retrieved subscription from Stripe",
            extra={"subscription_id": subscription_id},
        )
        return to_dict(subscription)

    async def set_cancel_at_period_end(self, subscription_id: str, cancel: bool) -> Dict[str, Any]:
        """Schedule (or unschedule) cancellation at the end of the current period"""
        action = "cancel subscription" if cancel else "reactivate subscription"
        try:
            subscription = await run_in_threadpool(
                self.client.subscriptions.update,
                subscription_id,
                params={"cancel_at_period_end": cancel},
            )
        except stripe.StripeError as e:
            raise self._upstream_error(action, e, subscription_id=subscription_id) from e

        logger.info(
            f"Subscription cancel_at_period_end set to {cancel}",
            extra={"subscription_id": subscription_id},
        )
        return to_dict(subscription)

    async def list_card_payment_methods(self, customer_id: str) -> List[Dict[str, Any]]:
        try:
            methods = await run_in_threadpool(
                self.client.payment_methods.list,
                params={"customer": customer_id, "type": "card"}
            )
        except stripe.StripeError as e:
            raise self._upstream_error("get payment methods", e, customer_id=customer_id) from e
        return [to_dict(method) for method in methods.data]

    async def get_payment_method(self, payment_method_id: str) -> Dict[str, Any]:
        try:
            method = await run_in_threadpool(self.client.payment_methods.retrieve, payment_method_id)
        except stripe.StripeError as e:
            raise self._upstream_error(
                "retrieve payment method", e, payment_method_id=payment_method_id
            ) from e
        return to_dict(method)

    async def detach_payment_method(self, payment_method_id: str) -> None:
        try:
            await run_in_threadpool(self.client.payment_methods.detach, payment_method_id)
        except stripe.StripeError as e:
            raise self._upstream_error(
                "remove payment method", e, payment_method_id=payment_method_id
            ) from e

        logger.info("Detached payment method", extra={"payment_method_id": payment_method_id})

    async def set_default_payment_method(self, customer_id: str, payment_method_id: str) -> None:
        try:
            await run_in_threadpool(
                self.client.customers.update,
                customer_id,
                params={"invoice_settings": {"default_payment_method": payment_method_id}},
            )
        except stripe.StripeError as e:
            raise self._upstream_error(
                "set default payment method", e, customer_id=customer_id
            ) from e

        logger.info(
            "Updated default payment method",
            extra={"customer_id": customer_id, "payment_method_id": payment_method_id},
        )

    async def get_price(self, price_id: str) -> Dict[str, Any]:
        try:
            price = await run_in_threadpool(self.client.prices.retrieve, price_id)
        except stripe.StripeError as e:
            raise self._upstream_error("fetch prices", e, price_id=price_id) from e
        return to_dict(price)
