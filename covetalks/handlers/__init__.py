"""Event handlers for Stripe webhook event types"""

from covetalks.handlers.event_router import EventRouter
from covetalks.handlers.payment_handler import PaymentHandler
from covetalks.handlers.subscription_handler import SubscriptionHandler, map_subscription_status

__all__ = [
    "EventRouter",
    "PaymentHandler",
    "SubscriptionHandler",
    "map_subscription_status",
]
