from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from supabase import AuthApiError

from conftest import CUSTOMER_ID
from app.api.deps import get_auth
from app.core.errors import AppError, ErrorCode
from app.core.rate_limit import FixedWindowCounter, RateLimitMiddleware
from app.core.security import get_identity
from app.main import app
from app.models.db_models import UserRole
from app.services.auth_service import Identity, SessionTokens, SupabaseAuth, identity_from_user


def auth_user(user_id=CUSTOMER_ID, email="jane@example.com", role=None):
    return SimpleNamespace(id=user_id, email=email, app_metadata={"role": role} if role else {})


def mock_auth(**methods):
    auth = MagicMock(spec=SupabaseAuth)
    for name, value in methods.items():
        setattr(auth, name, AsyncMock(return_value=value))
    return auth


# --- Identity mapping ---

def test_role_comes_from_app_metadata():
    assert identity_from_user(auth_user(role="admin")).role == UserRole.ADMIN
    assert identity_from_user(auth_user()).role == UserRole.CUSTOMER
    assert identity_from_user(auth_user(role="superuser")).role == UserRole.CUSTOMER


@pytest.mark.asyncio
async def test_get_session_resolves_identity():
    client = MagicMock()
    client.auth.get_user = AsyncMock(return_value=SimpleNamespace(user=auth_user(role="cleaner")))
    auth = SupabaseAuth(client)

    identity = await auth.get_session("token-1")

    assert identity == Identity(id=CUSTOMER_ID, email="jane@example.com", role=UserRole.CLEANER)
    client.auth.get_user.assert_awaited_once_with("token-1")


@pytest.mark.asyncio
async def test_rejected_token_means_no_session():
    client = MagicMock()
    client.auth.get_user = AsyncMock(side_effect=AuthApiError("invalid JWT", 401, "bad_jwt"))
    auth = SupabaseAuth(client)

    assert await auth.get_session("expired") is None
    assert await auth.get_session("") is None
    assert client.auth.get_user.await_count == 1


@pytest.mark.asyncio
async def test_exchange_without_session_is_auth_error():
    client = MagicMock()
    client.auth.exchange_code_for_session = AsyncMock(return_value=SimpleNamespace(session=None, user=None))
    auth = SupabaseAuth(client)

    with pytest.raises(AppError) as exc_info:
        await auth.exchange_code_for_session("code-1")
    assert exc_info.value.code == ErrorCode.AUTH_ERROR
    assert exc_info.value.status_code == 401


# --- Session gate ---

def test_session_cookie_is_resolved_on_each_request(client):
    auth = mock_auth(get_session=Identity(id=CUSTOMER_ID, email="jane@example.com"))
    app.dependency_overrides.pop(get_identity)
    app.dependency_overrides[get_auth] = lambda: auth

    client.cookies.set("sb-access-token", "token-1")
    assert client.get("/api/bookings", params={"customerId": CUSTOMER_ID}).status_code == 200
    assert client.get("/api/bookings", params={"customerId": CUSTOMER_ID}).status_code == 200

    assert auth.get_session.await_count == 2
    auth.get_session.assert_awaited_with("token-1")


def test_missing_cookie_is_unauthorized(client):
    auth = mock_auth(get_session=None)
    app.dependency_overrides.pop(get_identity)
    app.dependency_overrides[get_auth] = lambda: auth

    response = client.get("/api/bookings", params={"customerId": CUSTOMER_ID})

    assert response.status_code == 401
    auth.get_session.assert_not_awaited()


# --- Auth routes ---

def test_login_sends_magic_link(client):
    auth = mock_auth(send_magic_link=None)
    app.dependency_overrides[get_auth] = lambda: auth

    response = client.post("/api/auth/login", json={"email": "jane@example.com"})

    assert response.status_code == 200
    assert response.json() == {"success": True}
    email, redirect_to = auth.send_magic_link.await_args.args
    assert email == "jane@example.com"
    assert redirect_to.endswith("/api/auth/callback")


def test_login_rejects_bad_email(client):
    app.dependency_overrides[get_auth] = lambda: mock_auth(send_magic_link=None)
    response = client.post("/api/auth/login", json={"email": "nope"})
    assert response.status_code == 400
    assert response.json()["errors"][0]["path"] == "email"


def test_callback_creates_session_and_user(client, store):
    tokens = SessionTokens(
        access_token="access-1",
        refresh_token="refresh-1",
        expires_in=3600,
        identity=Identity(id="55555555-5555-4555-8555-555555555555", email="new@example.com"),
    )
    auth = mock_auth(exchange_code_for_session=tokens)
    app.dependency_overrides[get_auth] = lambda: auth
    client.cookies.set("sb-code-verifier", "verifier-1")

    response = client.get("/api/auth/callback", params={"code": "code-1"})

    assert response.status_code == 303
    auth.exchange_code_for_session.assert_awaited_once_with("code-1", "verifier-1")
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("sb-access-token=access-1") for c in cookies)
    assert any(c.startswith("sb-refresh-token=refresh-1") for c in cookies)

    user = store.row("users", "55555555-5555-4555-8555-555555555555")
    assert user["email"] == "new@example.com"
    assert store.row("profiles", user["id"]) is not None


def test_callback_without_code_just_redirects(client):
    auth = mock_auth(exchange_code_for_session=None)
    app.dependency_overrides[get_auth] = lambda: auth

    response = client.get("/api/auth/callback")

    assert response.status_code == 303
    auth.exchange_code_for_session.assert_not_awaited()


def test_signout_clears_cookies(client):
    auth = mock_auth(sign_out=None)
    app.dependency_overrides[get_auth] = lambda: auth
    client.cookies.set("sb-access-token", "access-1")

    response = client.post("/api/auth/signout")

    assert response.status_code == 200
    auth.sign_out.assert_awaited_once_with("access-1")
    assert any(c.startswith('sb-access-token=""') for c in response.headers.get_list("set-cookie"))


def test_update_password_mismatch(client):
    auth = mock_auth(update_password=None)
    app.dependency_overrides[get_auth] = lambda: auth

    response = client.post("/api/auth/password", json={"password": "Sparkling1", "confirmPassword": "Sparkling2"})

    assert response.status_code == 400
    assert response.json()["errors"] == [{"path": "confirmPassword", "message": "Passwords don't match"}]
    auth.update_password.assert_not_awaited()


def test_update_password(client):
    auth = mock_auth(update_password=None)
    app.dependency_overrides[get_auth] = lambda: auth

    response = client.post("/api/auth/password", json={"password": "Sparkling1", "confirmPassword": "Sparkling1"})

    assert response.status_code == 200
    auth.update_password.assert_awaited_once_with(CUSTOMER_ID, "Sparkling1")


def test_auth_provider_errors_surface_as_auth_error(client):
    auth = mock_auth()
    auth.sign_up = AsyncMock(side_effect=AppError("User already registered", ErrorCode.AUTH_ERROR, 400))
    app.dependency_overrides[get_auth] = lambda: auth

    response = client.post("/api/auth/signup", json={"email": "jane@example.com", "password": "Sparkling1"})

    assert response.status_code == 400
    assert response.json() == {"error": "User already registered", "code": "AUTH_ERROR"}


# --- Rate limiting ---

def limited_app():
    small = FastAPI()
    small.add_middleware(
        RateLimitMiddleware, max_requests=3, window_seconds=60, auth_max_requests=1, auth_window_seconds=60
    )

    @small.get("/api/ping")
    async def ping():
        return {"ok": True}

    @small.post("/api/auth/login")
    async def login():
        return {"ok": True}

    @small.get("/health")
    async def health():
        return {"ok": True}

    return TestClient(small)


def test_rate_limit_returns_429_after_budget():
    client = limited_app()

    remaining = [client.get("/api/ping").headers["X-RateLimit-Remaining"] for _ in range(3)]
    assert remaining == ["2", "1", "0"]

    response = client.get("/api/ping")
    assert response.status_code == 429
    assert response.json()["code"] == "RATE_LIMIT_ERROR"
    assert int(response.headers["Retry-After"]) > 0

    # Non-API paths are not counted
    assert client.get("/health").status_code == 200


def test_auth_routes_have_a_stricter_budget():
    client = limited_app()

    assert client.post("/api/auth/login").status_code == 200
    response = client.post("/api/auth/login")
    assert response.status_code == 429
    assert response.json()["error"] == "Too many login attempts, please try again later"


def test_rate_limit_is_per_forwarded_client():
    client = limited_app()
    for _ in range(3):
        client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1, 172.16.0.1"})

    assert client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.1"}).status_code == 429
    assert client.get("/api/ping", headers={"X-Forwarded-For": "10.0.0.2"}).status_code == 200


def test_counter_resets_with_the_window():
    now = [1000.0]
    counter = FixedWindowCounter(max_requests=1, window_seconds=60, clock=lambda: now[0])

    assert counter.hit("ip")[0] is True
    assert counter.hit("ip")[0] is False
    now[0] += 60
    assert counter.hit("ip")[0] is True
