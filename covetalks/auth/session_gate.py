"""
Session Gate

HTTP middleware that resolves the caller on every request and applies the
route-protection redirects:

    anonymous      /dashboard*                 -> /auth/login?redirect=<path>
    authenticated  /auth/* (not allow-listed)  -> /dashboard
    authenticated  /auth/profile-setup         -> /dashboard once onboarded
    everything else passes through

The resolved identity is stored on request.state.user.
"""

import re
from typing import Callable, Optional
from urllib.parse import urlencode

from fastapi import Request, Response
from fastapi.responses import RedirectResponse
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from covetalks.auth.session import ResolvedSession, SessionResolver, set_session_cookies
from covetalks.config import Settings
from covetalks.utils.exceptions import CoveTalksException
from covetalks.utils.logging_config import get_logger, set_member_id

logger = get_logger(__name__)

PROTECTED_PREFIX = "/dashboard"
AUTH_PREFIX = "/auth"
PROFILE_SETUP = "/auth/profile-setup"
AUTH_ALLOW_LIST = (
    PROFILE_SETUP,
    "/auth/confirm",
    "/auth/onboarding",
    "/auth/logout",
)

STATIC_PATH = re.compile(
    r"^/(static/|_next/static|_next/image|favicon\.ico)|\.(svg|png|jpe?g|gif|webp|ico|css|js)$",
    re.IGNORECASE,
)


def is_static_asset(path: str) -> bool:
    return bool(STATIC_PATH.search(path))


def gate_redirect(
    path: str,
    query_params,
    session: ResolvedSession,
    onboarding_completed: Callable[[str], bool],
) -> Optional[str]:
    """
    Decide where, if anywhere, to redirect a page request.

    Returns:
        Redirect location, or None to let the request through
    """
    if not session.authenticated:
        if path.startswith(PROTECTED_PREFIX):
            return f"/auth/login?{urlencode({'redirect': path}, safe='/')}"
        return None

    if not path.startswith(AUTH_PREFIX):
        return None

    if not any(path.startswith(page) for page in AUTH_ALLOW_LIST):
        return "/dashboard"

    if path.startswith(PROFILE_SETUP) and onboarding_completed(session.user.id):
        subscription = query_params.get("subscription")
        if subscription:
            return f"/dashboard?{urlencode({'subscription': subscription})}"
        return "/dashboard"

    return None


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Resolves identity and enforces the page redirects"""

    def __init__(self, app, resolver_factory: Callable[[Request], SessionResolver], settings: Settings):
        super().__init__(app)
        self.resolver_factory = resolver_factory
        self.settings = settings

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        request.state.user = None

        if is_static_asset(path):
            return await call_next(request)

        try:
            resolver = self.resolver_factory(request)
        except CoveTalksException as e:
            logger.error(f"Session resolver unavailable: {e.message}", extra={"error": e.to_dict()})
            resolver = None

        if resolver is None:
            session = ResolvedSession()
            location = gate_redirect(path, request.query_params, session, lambda _: False)
        else:
            session = await run_in_threadpool(resolver.resolve_request, request)
            location = await run_in_threadpool(
                gate_redirect, path, request.query_params, session, resolver.onboarding_completed
            )
        request.state.user = session.user
        set_member_id(session.user.id if session.user is not None else None)

        if location is not None:
            logger.info(
                "Session gate redirect",
                extra={
                    "path": path,
                    "location": location,
                    "authenticated": session.authenticated,
                },
            )
            response: Response = RedirectResponse(location, status_code=302)
        else:
            response = await call_next(request)

        if session.refreshed is not None:
            set_session_cookies(response, session.refreshed, self.settings)

        return response
