"""
Session Resolution

Resolves the caller from the Supabase session cookies. Access tokens close to
expiry are exchanged for a fresh pair which the gate writes back as cookies.
Any failure while talking to the identity provider yields an anonymous
caller.
"""

import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Response
from jose import JWTError, jwt
from starlette.requests import HTTPConnection
from supabase import Client

from covetalks.config import Settings
from covetalks.repositories.members import MemberRepository
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"


@dataclass
class SessionUser:
    id: str
    email: Optional[str] = None


@dataclass
class SessionTokens:
    access_token: str
    refresh_token: str


@dataclass
class ResolvedSession:
    user: Optional[SessionUser] = None
    refreshed: Optional[SessionTokens] = None

    @property
    def authenticated(self) -> bool:
        return self.user is not None


def token_expires_at(access_token: str) -> Optional[int]:
    """exp claim of a JWT, read without verifying the signature"""
    try:
        exp = jwt.get_unverified_claims(access_token).get("exp")
    except JWTError:
        return None
    return int(exp) if exp is not None else None


class SessionResolver:
    """Identity lookups against Supabase Auth"""

    def __init__(self, auth_client: Client, members: MemberRepository, refresh_margin: int = 300):
        self.auth_client = auth_client
        self.members = members
        self.refresh_margin = refresh_margin

    def _needs_refresh(self, access_token: Optional[str]) -> bool:
        if not access_token:
            return True
        expires_at = token_expires_at(access_token)
        if expires_at is None:
            return False
        return expires_at - time.time() <= self.refresh_margin

    def _refresh(self, refresh_token: str) -> ResolvedSession:
        response = self.auth_client.auth.refresh_session(refresh_token)
        session = response.session
        if session is None or response.user is None:
            return ResolvedSession()

        logger.info("Session refreshed", extra={"user_id": response.user.id})
        return ResolvedSession(
            user=SessionUser(id=str(response.user.id), email=response.user.email),
            refreshed=SessionTokens(
                access_token=session.access_token,
                refresh_token=session.refresh_token,
            ),
        )

    def resolve(self, access_token: Optional[str], refresh_token: Optional[str]) -> ResolvedSession:
        """
        Resolve the session from cookie values.

        Returns:
            ResolvedSession; anonymous when there are no cookies or the
            identity provider rejects or cannot verify them
        """
        if not access_token and not refresh_token:
            return ResolvedSession()

        try:
            if refresh_token and self._needs_refresh(access_token):
                return self._refresh(refresh_token)

            if not access_token:
                return ResolvedSession()

            response = self.auth_client.auth.get_user(access_token)
            if response is None or response.user is None:
                return ResolvedSession()
            return ResolvedSession(user=SessionUser(id=str(response.user.id), email=response.user.email))
        except Exception as e:
            logger.warning(
                f"Session lookup failed, treating caller as anonymous: {e}",
                extra={"error": str(e)},
            )
            return ResolvedSession()

    def resolve_request(self, connection: HTTPConnection) -> ResolvedSession:
        return self.resolve(
            connection.cookies.get(ACCESS_COOKIE),
            connection.cookies.get(REFRESH_COOKIE),
        )

    def onboarding_completed(self, user_id: str) -> bool:
        """False when the member row is missing or cannot be read"""
        try:
            member = self.members.get(user_id)
        except Exception as e:
            logger.warning(
                f"Member lookup failed during session check: {e}",
                extra={"user_id": user_id},
            )
            return False
        return bool(member and member.get("onboarding_completed"))

    def sign_out(self, access_token: Optional[str]) -> None:
        """Revoke the session server-side; failures are logged only"""
        if not access_token:
            return
        try:
            self.auth_client.auth.admin.sign_out(access_token)
        except Exception as e:
            logger.warning(f"Sign-out request failed: {e}")


def set_session_cookies(response: Response, tokens: SessionTokens, settings: Settings) -> None:
    for name, value in ((ACCESS_COOKIE, tokens.access_token), (REFRESH_COOKIE, tokens.refresh_token)):
        response.set_cookie(
            name,
            value,
            max_age=settings.session_cookie_max_age,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
            path="/",
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
        )
