"""
Test Auto-login

Token verification, single use of each token id and the landing page
chosen from the member's onboarding state.
"""

import time
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlparse

import pytest
from jose import jwt

from covetalks.auth.auto_login import AutoLoginError, AutoLoginService, landing_path, login_error_url
from covetalks.dependencies import get_auto_login_service
from covetalks.services.redis_service import USED_TOKEN_PREFIX, RedisService
from covetalks.utils.exceptions import CacheException

SECRET = "auto-login-test-secret"


def make_token(secret=SECRET, age=0, **overrides):
    issued_at = int(time.time()) - age
    claims = {
        "userId": "speaker-1",
        "email": "speaker@example.com",
        "jti": "jti-123",
        "purpose": "auto-login",
        "iat": issued_at,
        "exp": issued_at + 300,
    }
    claims.update(overrides)
    return jwt.encode(claims, secret, algorithm="HS256")


@pytest.fixture
def auth_client():
    client = MagicMock()
    client.auth.admin.get_user_by_id.return_value = SimpleNamespace(
        user=SimpleNamespace(id="speaker-1", email="speaker@example.com")
    )
    client.auth.admin.generate_link.return_value = SimpleNamespace(
        properties=SimpleNamespace(hashed_token="hashed-abc", verification_type="magiclink")
    )
    return client


@pytest.fixture
def redis_service():
    service = MagicMock(spec=RedisService)
    used = set()

    async def mark_token_used(jti, ttl):
        if jti in used:
            return False
        used.add(jti)
        return True

    service.mark_token_used = AsyncMock(side_effect=mark_token_used)
    return service


@pytest.fixture
def auto_login(settings, auth_client, repositories, redis_service):
    return AutoLoginService(settings, auth_client, repositories.members, redis_service)


def _query(location):
    parsed = urlparse(location)
    return parsed.path, {key: values[0] for key, values in parse_qs(parsed.query).items()}


class TestLandingPath:
    def test_no_member_goes_to_onboarding(self):
        assert landing_path(None, False) == "/auth/onboarding"

    def test_member_without_type_goes_to_onboarding(self):
        assert landing_path({"id": "x", "member_type": None}, True) == "/auth/onboarding"

    def test_onboarded_member_goes_to_dashboard(self):
        member = {"member_type": "Speaker", "onboarding_completed": True}
        assert landing_path(member, False) == "/dashboard"
        assert landing_path(member, True) == "/dashboard?subscription=success"

    def test_unfinished_profile_goes_to_profile_setup(self):
        member = {"member_type": "Organization", "onboarding_completed": False}
        assert landing_path(member, True) == "/auth/profile-setup?subscription=success"


class TestVerifyToken:
    def test_valid_token(self, auto_login):
        claims = auto_login.verify_token(make_token())

        assert claims["userId"] == "speaker-1"
        assert claims["jti"] == "jti-123"

    @pytest.mark.parametrize(
        "token_kwargs",
        [
            {"secret": "wrong-secret"},
            {"purpose": "password-reset"},
            {"jti": None},
            {"userId": None},
            {"age": 600},
        ],
    )
    def test_rejected_tokens(self, auto_login, token_kwargs):
        with pytest.raises(AutoLoginError) as exc_info:
            auto_login.verify_token(make_token(**token_kwargs))

        assert exc_info.value.reason == "invalid_token"

    def test_garbage_token(self, auto_login):
        with pytest.raises(AutoLoginError):
            auto_login.verify_token("not-a-jwt")

    def test_missing_secret_rejects_everything(self, settings, auth_client, repositories, redis_service):
        service = AutoLoginService(
            settings.model_copy(update={"auth_secret": None}), auth_client, repositories.members, redis_service
        )

        with pytest.raises(AutoLoginError):
            service.verify_token(make_token())


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_redirects_through_magic_link(self, auto_login, auth_client, speaker):
        location = await auto_login.login(make_token(), from_stripe=True)

        path, query = _query(location)
        assert path == "/auth/confirm"
        assert query == {
            "token": "hashed-abc",
            "type": "magiclink",
            "next": "/dashboard?subscription=success",
        }
        auth_client.auth.admin.generate_link.assert_called_once_with(
            {
                "type": "magiclink",
                "email": "speaker@example.com",
                "options": {"redirect_to": "/dashboard?subscription=success"},
            }
        )

    @pytest.mark.asyncio
    async def test_token_is_single_use(self, auto_login, speaker):
        token = make_token()
        await auto_login.login(token)

        with pytest.raises(AutoLoginError) as exc_info:
            await auto_login.login(token)

        assert exc_info.value.reason == "token_already_used"

    @pytest.mark.asyncio
    async def test_missing_token(self, auto_login):
        with pytest.raises(AutoLoginError) as exc_info:
            await auto_login.login(None)

        assert exc_info.value.reason == "missing_token"

    @pytest.mark.asyncio
    async def test_unknown_user(self, auto_login, auth_client):
        auth_client.auth.admin.get_user_by_id.side_effect = Exception("User not found")

        with pytest.raises(AutoLoginError) as exc_info:
            await auto_login.login(make_token())

        assert exc_info.value.reason == "user_not_found"

    @pytest.mark.asyncio
    async def test_magic_link_failure(self, auto_login, auth_client, speaker):
        auth_client.auth.admin.generate_link.side_effect = Exception("rate limited")

        with pytest.raises(AutoLoginError) as exc_info:
            await auto_login.login(make_token())

        assert exc_info.value.reason == "session_failed"

    @pytest.mark.asyncio
    async def test_replay_store_down_fails_closed(self, auto_login, redis_service, auth_client):
        redis_service.mark_token_used.side_effect = CacheException("Redis client not connected")

        with pytest.raises(AutoLoginError) as exc_info:
            await auto_login.login(make_token())

        assert exc_info.value.reason == "auto_login_failed"
        auth_client.auth.admin.generate_link.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_replay_store_configured(self, settings, auth_client, repositories):
        service = AutoLoginService(settings, auth_client, repositories.members, None)

        with pytest.raises(AutoLoginError) as exc_info:
            await service.login(make_token())

        assert exc_info.value.reason == "auto_login_failed"


class TestAutoLoginRoute:
    @pytest.fixture
    def routed_client(self, app, test_client, auto_login):
        app.dependency_overrides[get_auto_login_service] = lambda: auto_login
        return test_client

    def test_success_redirect(self, routed_client, speaker):
        response = routed_client.get("/auth/auto-login", params={"token": make_token()})

        assert response.status_code == 302
        path, query = _query(response.headers["location"])
        assert path == "/auth/confirm"
        assert query["next"] == "/dashboard"

    def test_from_stripe_flag(self, routed_client, speaker):
        response = routed_client.get(
            "/auth/auto-login", params={"token": make_token(jti="jti-stripe"), "fromStripe": "true"}
        )

        assert _query(response.headers["location"])[1]["next"] == "/dashboard?subscription=success"

    def test_errors_redirect_to_login(self, routed_client):
        response = routed_client.get("/auth/auto-login")

        assert response.status_code == 302
        assert response.headers["location"] == login_error_url("missing_token")
        assert response.headers["location"] == "/auth/login?error=missing_token"

    def test_replay_redirects_to_login(self, routed_client, speaker):
        token = make_token(jti="jti-replay")
        routed_client.get("/auth/auto-login", params={"token": token})

        response = routed_client.get("/auth/auto-login", params={"token": token})

        assert response.headers["location"] == "/auth/login?error=token_already_used"


class TestRedisService:
    @pytest.mark.asyncio
    async def test_mark_token_used_sets_key_once(self):
        service = RedisService("redis://localhost:6379/0")
        service.redis_client = AsyncMock()
        service.redis_client.set.side_effect = [True, None]

        assert await service.mark_token_used("abc", 300) is True
        assert await service.mark_token_used("abc", 300) is False
        service.redis_client.set.assert_called_with(f"{USED_TOKEN_PREFIX}abc", "1", nx=True, ex=300)

    @pytest.mark.asyncio
    async def test_not_connected_raises(self):
        service = RedisService("redis://localhost:6379/0")

        with pytest.raises(CacheException):
            await service.mark_token_used("abc", 300)

    @pytest.mark.asyncio
    async def test_redis_error_raises(self):
        service = RedisService("redis://localhost:6379/0")
        service.redis_client = AsyncMock()
        service.redis_client.set.side_effect = ConnectionError("connection reset")

        with pytest.raises(CacheException):
            await service.set_if_absent("key", "1", 10)

    @pytest.mark.asyncio
    async def test_ping_without_connection(self):
        assert await RedisService("redis://localhost:6379/0").ping() is False
