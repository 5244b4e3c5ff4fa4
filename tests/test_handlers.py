"""
Test Stripe Event Handlers

Tests the subscription and payment handlers and the event router against
the in-memory repositories.
"""

import pytest
import stripe

from covetalks.handlers import EventRouter, PaymentHandler, SubscriptionHandler, map_subscription_status
from covetalks.models.records import SubscriptionStatus
from covetalks.models.stripe_events import StripeEvent
from covetalks.utils.exceptions import UpstreamError
from tests.factories import StripeEventFactory


@pytest.fixture
def subscription_handler(repositories, stripe_service):
    return SubscriptionHandler(repositories, stripe_service)


@pytest.fixture
def payment_handler(repositories):
    return PaymentHandler(repositories)


@pytest.fixture
def event_router(subscription_handler, payment_handler):
    return EventRouter(subscription_handler, payment_handler)


@pytest.fixture
def active_subscription(repositories, speaker):
    return repositories.subscriptions.add(
        member_id=speaker["id"],
        stripe_subscription_id="sub_test123",
        plan_type="Standard",
        billing_period="Monthly",
        status="Active",
        cancel_at_period_end=False,
    )


def _event(payload):
    return StripeEvent.model_validate(payload)


@pytest.mark.parametrize(
    "stripe_status,expected",
    [
        ("active", SubscriptionStatus.ACTIVE),
        ("trialing", SubscriptionStatus.TRIALING),
        ("past_due", SubscriptionStatus.PAST_DUE),
        ("unpaid", SubscriptionStatus.PAST_DUE),
        ("paused", SubscriptionStatus.PAUSED),
        ("canceled", SubscriptionStatus.CANCELLED),
        ("incomplete_expired", SubscriptionStatus.CANCELLED),
        ("something_new", SubscriptionStatus.PAST_DUE),
        (None, SubscriptionStatus.PAST_DUE),
    ],
)
def test_map_subscription_status(stripe_status, expected):
    assert map_subscription_status(stripe_status) == expected


class TestCheckoutCompleted:
    @pytest.mark.asyncio
    async def test_upserts_subscription_and_sets_tier(
        self, subscription_handler, repositories, speaker, mock_stripe_client
    ):
        mock_stripe_client.subscriptions.retrieve.return_value = StripeEventFactory.subscription(
            status="trialing", price_id="price_plus_yearly", unit_amount=29000
        )
        event = _event(StripeEventFactory.checkout_completed(plan_type="Plus", billing_period="Yearly"))

        result = await subscription_handler.handle_checkout_completed(event)

        assert result["status"] == "upserted"
        row = repositories.subscriptions.get_by_stripe_id("sub_test123")
        assert row["status"] == "Trialing"
        assert row["plan_type"] == "Plus"
        assert row["billing_period"] == "Yearly"
        assert row["stripe_price_id"] == "price_plus_yearly"
        assert row["amount"] == 290.0
        assert row["current_period_end"] is not None
        assert repositories.members.get(speaker["id"])["subscription_tier"] == "Plus"
        mock_stripe_client.subscriptions.retrieve.assert_called_once_with("sub_test123")

    @pytest.mark.asyncio
    async def test_replay_keeps_single_row(self, subscription_handler, repositories, speaker, mock_stripe_client):
        mock_stripe_client.subscriptions.retrieve.return_value = StripeEventFactory.subscription()
        event = _event(StripeEventFactory.checkout_completed(event_id="evt_same"))

        await subscription_handler.handle_checkout_completed(event)
        await subscription_handler.handle_checkout_completed(event)

        assert len(repositories.subscriptions.all()) == 1

    @pytest.mark.asyncio
    async def test_member_resolved_by_customer_when_metadata_missing(
        self, subscription_handler, repositories, mock_stripe_client
    ):
        member = repositories.members.add(id="speaker-9", stripe_customer_id="cus_known")
        mock_stripe_client.subscriptions.retrieve.return_value = StripeEventFactory.subscription(
            customer="cus_known"
        )
        event = _event(StripeEventFactory.checkout_completed(member_id=None, customer="cus_known"))

        result = await subscription_handler.handle_checkout_completed(event)

        assert result["member_id"] == member["id"]
        assert repositories.members.get(member["id"])["subscription_tier"] == "Standard"

    @pytest.mark.asyncio
    async def test_setup_session_is_skipped(self, subscription_handler, repositories, mock_stripe_client):
        event = _event(StripeEventFactory.checkout_completed(subscription_id=None))

        result = await subscription_handler.handle_checkout_completed(event)

        assert result["status"] == "skipped"
        assert repositories.subscriptions.writes == 0
        mock_stripe_client.subscriptions.retrieve.assert_not_called()

    @pytest.mark.asyncio
    async def test_stripe_failure_propagates(self, subscription_handler, repositories, speaker, mock_stripe_client):
        mock_stripe_client.subscriptions.retrieve.side_effect = stripe.APIConnectionError("timeout")
        event = _event(StripeEventFactory.checkout_completed())

        with pytest.raises(UpstreamError):
            await subscription_handler.handle_checkout_completed(event)

        assert repositories.subscriptions.all() == []


class TestSubscriptionLifecycle:
    @pytest.mark.asyncio
    async def test_updated_maps_status_and_cancel_flag(
        self, subscription_handler, repositories, active_subscription
    ):
        event = _event(StripeEventFactory.subscription_updated(status="past_due", cancel_at_period_end=True))

        result = await subscription_handler.handle_subscription_updated(event)

        assert result == {"status": "updated", "subscription_id": "sub_test123", "local_status": "Past_due"}
        row = repositories.subscriptions.get_by_stripe_id("sub_test123")
        assert row["status"] == "Past_due"
        assert row["cancel_at_period_end"] is True

    @pytest.mark.asyncio
    async def test_updated_unknown_subscription_is_not_created(self, subscription_handler, repositories):
        event = _event(StripeEventFactory.subscription_updated(subscription_id="sub_unknown"))

        result = await subscription_handler.handle_subscription_updated(event)

        assert result["status"] == "not_found"
        assert repositories.subscriptions.all() == []

    @pytest.mark.asyncio
    async def test_deleted_cancels_and_resets_tier(
        self, subscription_handler, repositories, speaker, active_subscription
    ):
        repositories.members.update(speaker["id"], {"subscription_tier": "Standard"})
        event = _event(StripeEventFactory.subscription_deleted())

        result = await subscription_handler.handle_subscription_deleted(event)

        assert result["status"] == "cancelled"
        row = repositories.subscriptions.get_by_stripe_id("sub_test123")
        assert row["status"] == "Cancelled"
        assert row["ended_at"] is not None
        assert repositories.members.get(speaker["id"])["subscription_tier"] == "Free"


class TestInvoicePaymentSucceeded:
    @pytest.mark.asyncio
    async def test_records_payment_once(self, payment_handler, repositories, speaker, active_subscription):
        event = _event(StripeEventFactory.invoice_payment_succeeded(amount_paid=2900))

        first = await payment_handler.handle_invoice_payment_succeeded(event)
        second = await payment_handler.handle_invoice_payment_succeeded(event)

        assert first["status"] == "recorded"
        assert first["amount"] == 29.0
        assert second == {"status": "duplicate", "invoice_id": "in_test123"}

        payments = repositories.payments.all()
        assert len(payments) == 1
        assert payments[0]["member_id"] == speaker["id"]
        assert payments[0]["subscription_id"] == active_subscription["id"]
        assert payments[0]["status"] == "Succeeded"
        assert payments[0]["description"] == "Subscription payment"

    @pytest.mark.asyncio
    async def test_metadata_member_takes_precedence(self, payment_handler, repositories, active_subscription):
        event = _event(
            StripeEventFactory.invoice_payment_succeeded(metadata={"supabase_user_id": "organizer-7"})
        )

        await payment_handler.handle_invoice_payment_succeeded(event)

        assert repositories.payments.all()[0]["member_id"] == "organizer-7"

    @pytest.mark.asyncio
    async def test_falls_back_to_customer(self, payment_handler, repositories):
        repositories.members.add(id="speaker-5", stripe_customer_id="cus_five")
        event = _event(
            StripeEventFactory.invoice_payment_succeeded(subscription_id=None, customer="cus_five")
        )

        await payment_handler.handle_invoice_payment_succeeded(event)

        payment = repositories.payments.all()[0]
        assert payment["member_id"] == "speaker-5"
        assert payment["subscription_id"] is None

    @pytest.mark.asyncio
    async def test_unknown_payer_is_still_recorded(self, payment_handler, repositories):
        event = _event(StripeEventFactory.invoice_payment_succeeded(subscription_id=None, customer="cus_nobody"))

        result = await payment_handler.handle_invoice_payment_succeeded(event)

        assert result["status"] == "recorded"
        assert repositories.payments.all()[0]["member_id"] is None


class TestEventRouter:
    @pytest.mark.asyncio
    async def test_routes_supported_event(self, event_router, repositories, active_subscription):
        event = _event(StripeEventFactory.subscription_updated(event_id="evt_route"))

        result = await event_router.route_event(event)

        assert result["status"] == "success"
        assert result["event_id"] == "evt_route"
        assert result["result"]["status"] == "updated"

    @pytest.mark.asyncio
    async def test_ignores_unsupported_event(self, event_router, repositories):
        event = _event(StripeEventFactory.event("charge.refunded", {"id": "ch_1"}))

        result = await event_router.route_event(event)

        assert result["status"] == "ignored"
        assert repositories.subscriptions.writes == 0
        assert repositories.payments.writes == 0

    def test_is_supported(self, event_router):
        assert event_router.is_supported("invoice.payment_succeeded")
        assert event_router.is_supported("customer.subscription.deleted")
        assert not event_router.is_supported("payment_intent.succeeded")
