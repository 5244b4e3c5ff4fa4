"""
Dependency Providers

API clients are built lazily, once per process, and kept on app.state.
Everything request-scoped (repositories, services, the current user) is
assembled from them through FastAPI dependencies, so tests replace any layer
with app.dependency_overrides.
"""

from typing import Optional

import stripe
from fastapi import Depends, FastAPI, Request
from supabase import Client, ClientOptions, create_client

from covetalks.auth.auto_login import AutoLoginService
from covetalks.auth.session import SessionResolver, SessionUser
from covetalks.config import Settings, get_settings
from covetalks.repositories import Repositories
from covetalks.repositories.members import MemberRepository
from covetalks.services.billing_service import BillingService
from covetalks.services.directory_service import DirectoryService
from covetalks.services.messaging_service import MessagingService
from covetalks.services.redis_service import RedisService
from covetalks.services.stripe_service import StripeService
from covetalks.services.workflow_service import WorkflowService
from covetalks.utils.exceptions import ConfigurationError, Unauthorized
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)


class Clients:
    """Process-wide API clients, constructed on first use"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._supabase: Optional[Client] = None
        self._auth_client: Optional[Client] = None
        self._stripe: Optional[stripe.StripeClient] = None
        self.redis_service = RedisService(settings.redis_url) if settings.redis_url else None

    def _create_supabase(self) -> Client:
        if not self.settings.supabase_url or not self.settings.supabase_service_key:
            raise ConfigurationError("Supabase URL and service key must be configured")
        return create_client(
            self.settings.supabase_url,
            self.settings.supabase_service_key,
            options=ClientOptions(auto_refresh_token=False, persist_session=False),
        )

    @property
    def supabase(self) -> Client:
        """Service-role client used for table access"""
        if self._supabase is None:
            self._supabase = self._create_supabase()
            logger.info("Supabase client initialized")
        return self._supabase

    @property
    def auth_client(self) -> Client:
        """
        Separate client for session lookups. Refreshing a user session on
        the table client would switch its PostgREST credentials to that user.
        """
        if self._auth_client is None:
            self._auth_client = self._create_supabase()
        return self._auth_client

    @property
    def stripe(self) -> stripe.StripeClient:
        if self._stripe is None:
            if not self.settings.stripe_secret_key:
                raise ConfigurationError("Stripe secret key must be configured")
            self._stripe = stripe.StripeClient(
                self.settings.stripe_secret_key,
                stripe_version=self.settings.stripe_api_version,
            )
            logger.info(
                "Stripe client initialized",
                extra={"api_version": self.settings.stripe_api_version},
            )
        return self._stripe


def init_clients(app: FastAPI, settings: Settings) -> Clients:
    clients = Clients(settings)
    app.state.clients = clients
    app.state.session_resolver = None
    return clients


def get_clients(request: Request) -> Clients:
    return request.app.state.clients


def session_resolver_for(request: Request) -> SessionResolver:
    """Resolver used by the session gate; app.state.session_resolver may be preset"""
    resolver = getattr(request.app.state, "session_resolver", None)
    if resolver is None:
        clients: Clients = request.app.state.clients
        resolver = SessionResolver(
            clients.auth_client,
            MemberRepository(clients.supabase),
            refresh_margin=clients.settings.session_refresh_margin,
        )
        request.app.state.session_resolver = resolver
    return resolver


def get_session_resolver(request: Request) -> SessionResolver:
    return session_resolver_for(request)


def get_current_user(request: Request) -> SessionUser:
    """The caller resolved by the session gate; 401 when anonymous"""
    user = getattr(request.state, "user", None)
    if user is None:
        raise Unauthorized()
    return user


def get_repositories(clients: Clients = Depends(get_clients)) -> Repositories:
    return Repositories.from_client(clients.supabase)


def get_stripe_service(
    clients: Clients = Depends(get_clients),
    settings: Settings = Depends(get_settings),
) -> StripeService:
    return StripeService(clients.stripe, settings.stripe_webhook_secret)


def get_redis_service(clients: Clients = Depends(get_clients)) -> Optional[RedisService]:
    return clients.redis_service


def get_billing_service(
    settings: Settings = Depends(get_settings),
    repositories: Repositories = Depends(get_repositories),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> BillingService:
    return BillingService(settings, repositories, stripe_service)


def get_workflow_service(repositories: Repositories = Depends(get_repositories)) -> WorkflowService:
    return WorkflowService(repositories)


def get_directory_service(repositories: Repositories = Depends(get_repositories)) -> DirectoryService:
    return DirectoryService(repositories)


def get_messaging_service(repositories: Repositories = Depends(get_repositories)) -> MessagingService:
    return MessagingService(repositories)


def get_auto_login_service(
    settings: Settings = Depends(get_settings),
    clients: Clients = Depends(get_clients),
    repositories: Repositories = Depends(get_repositories),
    redis_service: Optional[RedisService] = Depends(get_redis_service),
) -> AutoLoginService:
    return AutoLoginService(settings, clients.auth_client, repositories.members, redis_service)
