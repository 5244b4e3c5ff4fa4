"""
Test API Routes

Billing endpoints, error response shapes and health checks.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient


@pytest.fixture
def customer_speaker(repositories, speaker):
    repositories.members.update(speaker["id"], {"stripe_customer_id": "cus_test123"})
    repositories.subscriptions.add(
        member_id=speaker["id"],
        stripe_subscription_id="sub_test123",
        plan_type="Standard",
        billing_period="Monthly",
        status="Active",
        cancel_at_period_end=False,
    )
    return speaker


class TestBillingRoutes:
    def test_create_checkout(self, test_client, login, speaker):
        login(speaker["id"])

        response = test_client.post(
            "/api/stripe/create-checkout", json={"planType": "Standard", "billingPeriod": "Monthly"}
        )

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_test123"}

    def test_create_checkout_requires_session(self, test_client, mock_stripe_client):
        response = test_client.post(
            "/api/stripe/create-checkout", json={"planType": "Standard", "billingPeriod": "Monthly"}
        )

        assert response.status_code == 401
        mock_stripe_client.checkout.sessions.create.assert_not_called()

    def test_create_checkout_rejects_free_plan(self, test_client, login, speaker):
        login(speaker["id"])

        response = test_client.post(
            "/api/stripe/create-checkout", json={"planType": "Free", "billingPeriod": "Monthly"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_cancel_subscription(self, test_client, login, customer_speaker):
        login(customer_speaker["id"])

        response = test_client.post("/api/stripe/cancel-subscription", json={"subscriptionId": "sub_test123"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["subscription"]["cancel_at_period_end"] is True

    def test_cancel_foreign_subscription(self, test_client, login, customer_speaker, organizer):
        login(organizer["id"])

        response = test_client.post("/api/stripe/cancel-subscription", json={"subscriptionId": "sub_test123"})

        assert response.status_code == 403
        assert response.json() == {"error": "Subscription belongs to another member", "code": "FORBIDDEN"}

    def test_payment_methods(self, test_client, login, customer_speaker, mock_stripe_client):
        mock_stripe_client.payment_methods.list.return_value = SimpleNamespace(
            data=[{"id": "pm_1", "card": {"brand": "visa", "last4": "4242", "exp_month": 4, "exp_year": 2029}}]
        )
        login(customer_speaker["id"])

        response = test_client.get("/api/stripe/payment-methods")

        assert response.status_code == 200
        assert response.json()["paymentMethods"][0]["last4"] == "4242"

    def test_remove_payment_method(self, test_client, login, customer_speaker, mock_stripe_client):
        mock_stripe_client.payment_methods.retrieve.return_value = {"id": "pm_1", "customer": "cus_test123"}
        login(customer_speaker["id"])

        response = test_client.request(
            "DELETE", "/api/stripe/remove-payment-method", json={"paymentMethodId": "pm_1"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True}

    def test_prices_are_public(self, test_client):
        response = test_client.get("/api/stripe/prices")

        assert response.status_code == 200
        assert response.json()["prices"]["Plus"]["popular"] is True

    def test_stripe_outage_hides_provider_details(self, test_client, mock_stripe_client):
        mock_stripe_client.prices.retrieve.side_effect = stripe.APIConnectionError("upstream exploded")

        response = test_client.get("/api/stripe/prices")

        assert response.status_code == 503
        assert response.json() == {"error": "Failed to fetch prices", "code": "UPSTREAM_ERROR"}

    def test_subscription_and_payments(self, test_client, login, repositories, customer_speaker):
        repositories.payments.add(member_id=customer_speaker["id"], stripe_invoice_id="in_1", amount=29.0)
        login(customer_speaker["id"])

        assert test_client.get("/api/billing/subscription").json()["subscription"]["plan_type"] == "Standard"
        assert len(test_client.get("/api/billing/payments").json()["payments"]) == 1


class TestErrorResponses:
    def test_not_found_shape(self, test_client, login, speaker):
        login(speaker["id"])

        response = test_client.get("/api/members/ghost")

        assert response.status_code == 404
        assert response.json() == {"error": "Member not found", "code": "NOT_FOUND"}

    def test_unexpected_error_is_generic(self, app, mock_stripe_client):
        mock_stripe_client.prices.retrieve.side_effect = RuntimeError("secret internals")
        client = TestClient(app, raise_server_exceptions=False)

        response = client.get("/api/stripe/prices")

        assert response.status_code == 500
        assert response.json() == {"error": "An unexpected error occurred", "code": "INTERNAL_ERROR"}

    def test_correlation_id_is_echoed(self, test_client):
        response = test_client.get("/health", headers={"X-Correlation-ID": "corr-123"})

        assert response.headers["X-Correlation-ID"] == "corr-123"


class TestHealth:
    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_liveness(self, test_client):
        assert test_client.get("/health/live").status_code == 200

    def test_readiness(self, app, test_client):
        app.state.clients._supabase = MagicMock()

        response = test_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["dependencies"]["supabase"]["status"] == "healthy"
        assert response.json()["dependencies"]["stripe"]["status"] == "healthy"

    def test_readiness_with_database_down(self, app, test_client):
        supabase = MagicMock()
        supabase.table.return_value.select.return_value.limit.return_value.execute.side_effect = Exception(
            "connection refused"
        )
        app.state.clients._supabase = supabase

        response = test_client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"

    def test_root(self, test_client):
        assert test_client.get("/").json()["name"] == "CoveTalks API"
