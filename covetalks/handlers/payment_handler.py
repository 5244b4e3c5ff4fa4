"""
Payment Event Handler

Appends successful invoice payments to the payments ledger. The Stripe
invoice id is the idempotency key: a replayed event finds the row already
present and writes nothing.
"""

from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

from covetalks.models.records import PaymentStatus
from covetalks.models.stripe_events import StripeEvent, StripeInvoiceData
from covetalks.repositories import Repositories
from covetalks.utils.logging_config import get_logger
from covetalks.utils.timestamps import from_unix, utc_now_iso

logger = get_logger(__name__)


class PaymentHandler:
    """Handler for invoice payment events"""

    def __init__(self, repositories: Repositories):
        self.repositories = repositories

    def _resolve_member(
        self,
        invoice: StripeInvoiceData,
        local_subscription: Optional[Dict[str, Any]],
    ) -> Optional[str]:
        """
        Find the paying member.

        Invoice metadata is rarely populated for subscription invoices, so
        fall back to the local subscription and then the Stripe customer.
        """
        member_id = invoice.metadata.get("supabase_user_id")
        if member_id:
            return member_id
        if local_subscription and local_subscription.get("member_id"):
            return local_subscription["member_id"]
        if invoice.customer:
            member = self.repositories.members.get_by_stripe_customer(invoice.customer)
            if member:
                return member["id"]
        return None

    async def handle_invoice_payment_succeeded(self, event: StripeEvent) -> Dict[str, Any]:
        """Handle invoice.payment_succeeded"""
        invoice = StripeInvoiceData(**event.event_object)

        logger.info(
            "Processing invoice.payment_succeeded event",
            extra={
                "event_id": event.id,
                "invoice_id": invoice.id,
                "subscription_id": invoice.subscription,
                "amount_paid": invoice.amount_paid,
            },
        )

        local_subscription = None
        if invoice.subscription:
            local_subscription = await run_in_threadpool(
                self.repositories.subscriptions.get_by_stripe_id, invoice.subscription
            )

        member_id = await run_in_threadpool(self._resolve_member, invoice, local_subscription)
        if member_id is None:
            logger.warning(
                "No member found for invoice payment",
                extra={"invoice_id": invoice.id, "customer_id": invoice.customer},
            )

        record = {
            "member_id": member_id,
            "subscription_id": local_subscription.get("id") if local_subscription else None,
            "stripe_invoice_id": invoice.id,
            "stripe_charge_id": invoice.charge,
            "amount": invoice.amount_paid / 100,
            "currency": invoice.currency,
            "status": PaymentStatus.SUCCEEDED.value,
            "description": invoice.description or "Subscription payment",
            "invoice_url": invoice.hosted_invoice_url,
            "receipt_url": invoice.receipt_url,
            "payment_date": from_unix(invoice.created) or utc_now_iso(),
            "card_last4": invoice.card.get("last4"),
            "card_brand": invoice.card.get("brand"),
        }

        inserted = await run_in_threadpool(self.repositories.payments.insert_once, record)

        if inserted is None:
            logger.info(
                "Invoice already recorded, ledger unchanged",
                extra={"invoice_id": invoice.id},
            )
            return {"status": "duplicate", "invoice_id": invoice.id}

        logger.info(
            "Payment recorded",
            extra={"invoice_id": invoice.id, "member_id": member_id, "amount": record["amount"]},
        )
        return {
            "status": "recorded",
            "invoice_id": invoice.id,
            "payment_id": inserted.get("id"),
            "amount": record["amount"],
        }
