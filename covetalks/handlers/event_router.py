"""
Event Router

Routes verified Stripe webhook events to their handlers by event type.

There is no event-id dedup table: every handler writes through an upsert or
ignore-duplicates insert keyed by the Stripe object id, so a redelivered
event converges on the same rows. Handlers never initiate charges or other
outbound payment actions.
"""

from typing import Any, Awaitable, Callable, Dict

from covetalks.handlers.payment_handler import PaymentHandler
from covetalks.handlers.subscription_handler import SubscriptionHandler
from covetalks.models.stripe_events import StripeEvent
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)

Handler = Callable[[StripeEvent], Awaitable[Dict[str, Any]]]


class EventRouter:
    """Dispatches Stripe events to subscription and payment handlers"""

    def __init__(self, subscription_handler: SubscriptionHandler, payment_handler: PaymentHandler):
        self.handlers: Dict[str, Handler] = {
            "checkout.session.completed": subscription_handler.handle_checkout_completed,
            "customer.subscription.updated": subscription_handler.handle_subscription_updated,
            "customer.subscription.deleted": subscription_handler.handle_subscription_deleted,
            "invoice.payment_succeeded": payment_handler.handle_invoice_payment_succeeded,
        }

    def is_supported(self, event_type: str) -> bool:
        return event_type in self.handlers

    async def route_event(self, event: StripeEvent) -> Dict[str, Any]:
        """
        Route a verified event to its handler.

        Returns:
            Dictionary with status ('success' or 'ignored'), event_type,
            event_id and the handler result when one ran

        Raises:
            Exception: Handler failures propagate so the webhook answers 500
                and Stripe redelivers
        """
        handler = self.handlers.get(event.type)

        if handler is None:
            logger.info(
                f"No handler registered for event type: {event.type}",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return {"status": "ignored", "event_type": event.type, "event_id": event.id}

        logger.info(
            f"Routing event: {event.type} ({event.id})",
            extra={"event_id": event.id, "event_type": event.type},
        )

        result = await handler(event)

        logger.info(
            "Event processed successfully",
            extra={"event_id": event.id, "event_type": event.type, "result_status": result.get("status")},
        )

        return {
            "status": "success",
            "event_type": event.type,
            "event_id": event.id,
            "result": result,
        }
