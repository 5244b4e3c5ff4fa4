"""
Auto-login

Exchanges a short-lived HS256 token issued by the marketing site for a
magic-link confirmation redirect. Each token id (jti) is accepted once.
"""

import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from jose import JWTError, jwt
from starlette.concurrency import run_in_threadpool
from supabase import Client

from covetalks.config import Settings
from covetalks.repositories.members import MemberRepository
from covetalks.services.redis_service import RedisService
from covetalks.utils.exceptions import CacheException
from covetalks.utils.logging_config import get_logger

logger = get_logger(__name__)

TOKEN_PURPOSE = "auto-login"
TOKEN_ALGORITHM = "HS256"


class AutoLoginError(Exception):
    """Auto-login rejected; reason is sent to the login page as ?error="""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


def login_error_url(reason: str) -> str:
    return f"/auth/login?{urlencode({'error': reason})}"


def landing_path(member: Optional[Dict[str, Any]], from_stripe: bool) -> str:
    """Where a member goes after auto-login, based on onboarding state"""
    if not member or not member.get("member_type"):
        return "/auth/onboarding"

    path = "/dashboard" if member.get("onboarding_completed") else "/auth/profile-setup"
    if from_stripe:
        path += "?subscription=success"
    return path


class AutoLoginService:
    def __init__(
        self,
        settings: Settings,
        auth_client: Client,
        members: MemberRepository,
        redis_service: Optional[RedisService],
    ):
        self.settings = settings
        self.auth_client = auth_client
        self.members = members
        self.redis_service = redis_service

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Check signature, purpose and age of an auto-login token.

        Raises:
            AutoLoginError: invalid_token
        """
        if not self.settings.auth_secret:
            logger.error("AUTH_SECRET is not configured, rejecting auto-login")
            raise AutoLoginError("invalid_token")

        try:
            claims = jwt.decode(token, self.settings.auth_secret, algorithms=[TOKEN_ALGORITHM])
        except JWTError as e:
            logger.warning(f"Auto-login token verification failed: {e}")
            raise AutoLoginError("invalid_token") from e

        if claims.get("purpose") != TOKEN_PURPOSE or not claims.get("jti") or not claims.get("userId"):
            logger.warning("Auto-login token has unexpected claims")
            raise AutoLoginError("invalid_token")

        issued_at = claims.get("iat")
        if issued_at is None or time.time() - float(issued_at) > self.settings.auto_login_token_ttl:
            logger.warning("Auto-login token is too old", extra={"jti": claims.get("jti")})
            raise AutoLoginError("invalid_token")

        return claims

    async def _consume(self, jti: str) -> None:
        if self.redis_service is None:
            logger.error("Replay store is not configured, rejecting auto-login")
            raise AutoLoginError("auto_login_failed")

        try:
            first_use = await self.redis_service.mark_token_used(jti, self.settings.auto_login_token_ttl)
        except CacheException as e:
            logger.error(f"Replay store unavailable, rejecting auto-login: {e.message}")
            raise AutoLoginError("auto_login_failed") from e

        if not first_use:
            logger.warning("Auto-login token replayed", extra={"jti": jti})
            raise AutoLoginError("token_already_used")

    def _magic_link_redirect(self, email: str, next_path: str) -> str:
        response = self.auth_client.auth.admin.generate_link(
            {"type": "magiclink", "email": email, "options": {"redirect_to": next_path}}
        )
        properties = response.properties
        query = {
            "token": properties.hashed_token or "",
            "type": properties.verification_type or "magiclink",
            "next": next_path,
        }
        return f"/auth/confirm?{urlencode(query)}"

    async def login(self, token: Optional[str], from_stripe: bool = False) -> str:
        """
        Run the auto-login flow.

        Returns:
            Location of the /auth/confirm redirect

        Raises:
            AutoLoginError: With the reason to report on the login page
        """
        if not token:
            raise AutoLoginError("missing_token")

        claims = self.verify_token(token)
        await self._consume(claims["jti"])

        user_id = str(claims["userId"])
        try:
            user_response = await run_in_threadpool(self.auth_client.auth.admin.get_user_by_id, user_id)
        except Exception as e:
            logger.error(f"Auto-login user lookup failed: {e}", extra={"user_id": user_id})
            raise AutoLoginError("user_not_found") from e

        user = user_response.user if user_response else None
        if user is None or not user.email:
            raise AutoLoginError("user_not_found")

        member = await run_in_threadpool(self.members.get, user_id)
        next_path = landing_path(member, from_stripe)

        try:
            location = await run_in_threadpool(self._magic_link_redirect, user.email, next_path)
        except Exception as e:
            logger.error(f"Magic link generation failed: {e}", extra={"user_id": user_id})
            raise AutoLoginError("session_failed") from e

        logger.info(
            "Auto-login accepted",
            extra={"user_id": user_id, "next": next_path, "from_stripe": from_stripe},
        )
        return location
