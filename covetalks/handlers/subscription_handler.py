"""
Subscription Event Handler

Applies Stripe subscription lifecycle events to the local subscriptions
table. All writes are keyed by the Stripe subscription id.
"""

from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

from covetalks.models.records import PlanType, SubscriptionStatus
from covetalks.models.stripe_events import (
    StripeCheckoutSessionData,
    StripeEvent,
    StripeSubscriptionData,
)
from covetalks.repositories import Repositories
from covetalks.services.stripe_service import StripeService
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import from_unix, utc_now_iso

logger = get_logger(__name__)


STRIPE_STATUS_MAP = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAUSED,
    "canceled": SubscriptionStatus.CANCELLED,
    "incomplete_expired": SubscriptionStatus.CANCELLED,
}


def map_subscription_status(stripe_status: Optional[str]) -> SubscriptionStatus:
    """
    Map a Stripe subscription status to the local enum.

    Unknown statuses map to Past_due, which grants no paid access.
    """
    status = STRIPE_STATUS_MAP.get(stripe_status or "")
    if status is None:
        logger.warning(
            f"Unmapped Stripe subscription status: {stripe_status}",
            extra={"stripe_status": stripe_status},
        )
        return SubscriptionStatus.PAST_DUE
    return status


class SubscriptionHandler:
    """Handler for checkout and subscription events"""

    def __init__(self, repositories: Repositories, stripe_service: StripeService):
        self.repositories = repositories
        self.stripe_service = stripe_service

    def _member_for_customer(self, stripe_customer_id: Optional[str]) -> Optional[str]:
        if not stripe_customer_id:
            return None
        member = self.repositories.members.get_by_stripe_customer(stripe_customer_id)
        return member["id"] if member else None

    async def handle_checkout_completed(self, event: StripeEvent) -> Dict[str, Any]:
        """
        Handle checkout.session.completed.

        Upserts the local subscription by Stripe subscription id and moves
        the member to the purchased tier. Setup-mode sessions carry no
        subscription and are skipped.
        """
        session = StripeCheckoutSessionData(**event.event_object)

        logger.info(
            "Processing checkout.session.completed event",
            extra={
                "event_id": event.id,
                "session_id": session.id,
                "subscription_id": session.subscription,
            },
        )

        if not session.subscription:
            logger.info(
                "Checkout session has no subscription, skipping",
                extra={"session_id": session.id, "mode": session.mode},
            )
            return {"status": "skipped", "reason": "No subscription in checkout session"}

        metadata = session.metadata
        member_id = metadata.get("supabase_user_id") or await run_in_threadpool(
            self._member_for_customer, session.customer
        )
        plan_type = metadata.get("plan_type")
        billing_period = metadata.get("billing_period")

        # Read-only call; the session payload does not carry price or period data
        subscription = StripeSubscriptionData(
            **await self.stripe_service.get_subscription(session.subscription)
        )
        price = subscription.price
        unit_amount = price.get("unit_amount")

        record = {
            "member_id": member_id,
            "stripe_subscription_id": subscription.id,
            "stripe_price_id": price.get("id"),
            "plan_type": plan_type,
            "billing_period": billing_period,
            "status": map_subscription_status(subscription.status).value,
            "amount": unit_amount / 100 if unit_amount is not None else None,
            "currency": price.get("currency", "usd"),
            "current_period_start": from_unix(subscription.period_start),
            "current_period_end": from_unix(subscription.period_end),
            "cancel_at_period_end": subscription.cancel_at_period_end,
            "updated_at": utc_now_iso(),
        }
        result = await run_in_threadpool(self.repositories.subscriptions.upsert_by_stripe_id, record)

        if member_id and plan_type in {p.value for p in PlanType}:
            await run_in_threadpool(
                self.repositories.members.update, member_id, {"subscription_tier": plan_type}
            )

        logger.info(
            "Checkout session completed - subscription upserted",
            extra={
                "subscription_id": subscription.id,
                "member_id": member_id,
                "plan_type": plan_type,
            },
        )

        return {
            "status": "upserted",
            "subscription_id": subscription.id,
            "member_id": member_id,
            "record_id": result.get("id"),
        }

    async def handle_subscription_updated(self, event: StripeEvent) -> Dict[str, Any]:
        """Handle customer.subscription.updated"""
        subscription = StripeSubscriptionData(**event.event_object)
        status = map_subscription_status(subscription.status)

        logger.info(
            "Processing customer.subscription.updated event",
            extra={
                "event_id": event.id,
                "subscription_id": subscription.id,
                "stripe_status": subscription.status,
                "status": status.value,
            },
        )

        update = {
            "status": status.value,
            "cancel_at_period_end": subscription.cancel_at_period_end,
            "updated_at": utc_now_iso(),
        }
        period_end = from_unix(subscription.period_end)
        if period_end:
            update["current_period_end"] = period_end

        rows = await run_in_threadpool(
            self.repositories.subscriptions.update_by_stripe_id, subscription.id, update
        )

        if not rows:
            # checkout.session.completed creates the row; it may not have arrived yet
            logger.warning(
                "Subscription not found locally, update skipped",
                extra={"subscription_id": subscription.id},
            )
            return {"status": "not_found", "subscription_id": subscription.id}

        return {
            "status": "updated",
            "subscription_id": subscription.id,
            "local_status": status.value,
        }

    async def handle_subscription_deleted(self, event: StripeEvent) -> Dict[str, Any]:
        """Handle customer.subscription.deleted: terminate locally and drop the tier"""
        subscription = StripeSubscriptionData(**event.event_object)

        logger.warning(
            "Processing customer.subscription.deleted event",
            extra={"event_id": event.id, "subscription_id": subscription.id},
        )

        now = utc_now_iso()
        rows = await run_in_threadpool(
            self.repositories.subscriptions.update_by_stripe_id,
            subscription.id,
            {
                "status": SubscriptionStatus.CANCELLED.value,
                "ended_at": now,
                "updated_at": now,
            },
        )

        for row in rows:
            if row.get("member_id"):
                await run_in_threadpool(
                    self.repositories.members.update,
                    row["member_id"],
                    {"subscription_tier": PlanType.FREE.value},
                )

        if not rows:
            logger.warning(
                "Deleted subscription not found locally",
                extra={"subscription_id": subscription.id},
            )
            return {"status": "not_found", "subscription_id": subscription.id}

        return {"status": "cancelled", "subscription_id": subscription.id}
