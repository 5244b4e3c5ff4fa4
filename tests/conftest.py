"""
Pytest Configuration and Fixtures

Environment variables are set before the application is imported so the
cached settings pick them up.
"""

import hashlib
import hmac
import json
import os
import time
from types import SimpleNamespace
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("APP_URL", "https://app.covetalks.test")
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "service-role-key")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STRIPE_PRICE_STANDARD_MONTHLY", "price_standard_monthly")
os.environ.setdefault("STRIPE_PRICE_STANDARD_YEARLY", "price_standard_yearly")
os.environ.setdefault("STRIPE_PRICE_PLUS_MONTHLY", "price_plus_monthly")
os.environ.setdefault("STRIPE_PRICE_PLUS_YEARLY", "price_plus_yearly")
os.environ.setdefault("STRIPE_PRICE_PREMIUM_MONTHLY", "price_premium_monthly")
os.environ.setdefault("STRIPE_PRICE_PREMIUM_YEARLY", "price_premium_yearly")
os.environ.setdefault("AUTH_SECRET", "auto-login-test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from covetalks.auth.session import ACCESS_COOKIE, ResolvedSession, SessionUser  # noqa: E402
from covetalks.config import get_settings  # noqa: E402
from covetalks.dependencies import get_repositories, get_stripe_service  # noqa: E402
from covetalks.main import create_app  # noqa: E402
from covetalks.services.stripe_service import StripeService  # noqa: E402
from tests.fakes import make_repositories  # noqa: E402

WEBHOOK_SECRET = "whsec_test_secret"


def generate_stripe_signature(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    """
    Generate a valid Stripe-Signature header for a payload.

    Args:
        payload: JSON payload as string
        secret: Webhook secret

    Returns:
        Stripe-Signature header value
    """
    timestamp = str(int(time.time()))
    signed_payload = f"{timestamp}.{payload}"

    signature = hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    return f"t={timestamp},v1={signature}"


class FakeSessionResolver:
    """Maps access-token cookie values to users"""

    def __init__(self):
        self.users: Dict[str, SessionUser] = {}
        self.onboarded: Dict[str, bool] = {}
        self.refreshed = None
        self.signed_out = []

    def login(self, token: str, user_id: str, onboarded: bool = True) -> None:
        self.users[token] = SessionUser(id=user_id, email=f"{user_id}@example.com")
        self.onboarded[user_id] = onboarded

    def resolve_request(self, connection) -> ResolvedSession:
        user = self.users.get(connection.cookies.get(ACCESS_COOKIE, ""))
        return ResolvedSession(user=user, refreshed=self.refreshed if user else None)

    def onboarding_completed(self, user_id: str) -> bool:
        return self.onboarded.get(user_id, False)

    def sign_out(self, access_token: Optional[str]) -> None:
        self.signed_out.append(access_token)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def repositories():
    return make_repositories()


@pytest.fixture
def mock_stripe_client():
    """StripeClient stand-in with the resources the services call"""
    client = MagicMock()
    client.customers.create.return_value = SimpleNamespace(id="cus_new123")
    client.customers.retrieve.return_value = {
        "id": "cus_new123",
        "invoice_settings": {"default_payment_method": None},
    }
    client.checkout.sessions.create.return_value = SimpleNamespace(
        id="cs_test123", url="https://checkout.stripe.test/cs_test123"
    )
    client.prices.retrieve.side_effect = lambda price_id: {"id": price_id, "unit_amount": 2900}
    return client


@pytest.fixture
def stripe_service(mock_stripe_client):
    return StripeService(mock_stripe_client, WEBHOOK_SECRET)


@pytest.fixture
def session_resolver():
    return FakeSessionResolver()


@pytest.fixture
def app(settings, repositories, stripe_service, session_resolver):
    application = create_app(settings)
    application.state.session_resolver = session_resolver
    application.dependency_overrides[get_repositories] = lambda: repositories
    application.dependency_overrides[get_stripe_service] = lambda: stripe_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def test_client(app):
    """FastAPI test client; redirects are not followed"""
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def login(test_client, session_resolver):
    """Sign a member in on the test client"""

    def _login(member_id: str, onboarded: bool = True) -> None:
        token = f"token-{member_id}"
        session_resolver.login(token, member_id, onboarded)
        test_client.cookies.set(ACCESS_COOKIE, token)

    return _login


@pytest.fixture
def speaker(repositories):
    return repositories.members.add(
        id="speaker-1",
        email="speaker@example.com",
        name="Sam Speaker",
        member_type="Speaker",
        onboarding_completed=True,
        status="Active",
    )


@pytest.fixture
def organizer(repositories):
    member = repositories.members.add(
        id="organizer-1",
        email="events@example.org",
        name="Olive Organizer",
        member_type="Organization",
        onboarding_completed=True,
        status="Active",
    )
    organization = repositories.organizations.add(id="org-1", name="Tech Summit")
    repositories.organizations.add_member(organization["id"], member["id"], "Owner")
    return member


@pytest.fixture
def open_opportunity(repositories, organizer):
    return repositories.opportunities.add(
        id="opp-1",
        posted_by=organizer["id"],
        organization_id="org-1",
        title="Keynote on Distributed Systems",
        status="Open",
        application_count=0,
    )


@pytest.fixture
def signed_payload():
    """Factory returning (body, Stripe-Signature header) for an event"""

    def _signed(event: Dict[str, Any]):
        body = json.dumps(event, separators=(",", ":"))
        return body, generate_stripe_signature(body)

    return _signed
