"""Tests for auth.py — login, register, logout, session status."""
import asyncio
import json

import httpx
import pytest

from health_tracker.auth import AuthManager, token_expiry
from health_tracker.client import HealthTrackerClient
from health_tracker.models.auth import TokenPair
from health_tracker.token_store import MemoryTokenStore
from health_tracker.utils.errors import AuthenticationError

from conftest import make_jwt


# ── login ────────────────────────────────────────────────────────────

def test_login_saves_pair(make_client, fake_api):
    fake_api.responses[("POST", "/api/Auth/login")] = httpx.Response(
        200, json={"accessToken": "A1", "refreshToken": "R1"},
    )
    store = MemoryTokenStore()

    async def scenario():
        async with make_client(store) as client:
            return await AuthManager(client).login("me@example.com", "pw")

    pair = asyncio.run(scenario())
    assert pair == TokenPair(access_token="A1", refresh_token="R1")
    assert asyncio.run(store.load()) == pair
    assert json.loads(fake_api.requests[0].content) == {"email": "me@example.com", "password": "pw"}


def test_login_rejected(make_client, fake_api):
    fake_api.responses[("POST", "/api/Auth/login")] = httpx.Response(401, text="Invalid credentials")
    store = MemoryTokenStore()

    async def scenario():
        async with make_client(store) as client:
            await AuthManager(client).login("me@example.com", "wrong")

    with pytest.raises(AuthenticationError, match="Invalid credentials"):
        asyncio.run(scenario())
    assert fake_api.refresh_calls == 0
    assert asyncio.run(store.load()) is None


def test_login_missing_tokens(make_client, fake_api):
    fake_api.responses[("POST", "/api/Auth/login")] = httpx.Response(200, json={"accessToken": "A1"})
    store = MemoryTokenStore()

    async def scenario():
        async with make_client(store) as client:
            await AuthManager(client).login("me@example.com", "pw")

    with pytest.raises(AuthenticationError, match="Tokens not received"):
        asyncio.run(scenario())
    assert asyncio.run(store.load()) is None


# ── register ─────────────────────────────────────────────────────────

def test_register_posts_data(make_client, fake_api):
    fake_api.responses[("POST", "/api/auth/register")] = httpx.Response(200)

    async def scenario():
        async with make_client(MemoryTokenStore()) as client:
            await AuthManager(client).register({"Email": "me@example.com"})

    asyncio.run(scenario())
    assert json.loads(fake_api.requests[0].content) == {"Email": "me@example.com"}


def test_register_failure(make_client, fake_api):
    fake_api.responses[("POST", "/api/auth/register")] = httpx.Response(400, text="Email taken")

    async def scenario():
        async with make_client(MemoryTokenStore()) as client:
            await AuthManager(client).register({"Email": "me@example.com"})

    with pytest.raises(AuthenticationError, match="Email taken"):
        asyncio.run(scenario())


# ── logout ───────────────────────────────────────────────────────────

def test_logout_revokes_and_clears(make_client, store, fake_api):
    async def scenario():
        async with make_client(store) as client:
            await AuthManager(client).logout()

    asyncio.run(scenario())
    request = fake_api.requests[0]
    assert request.url.path == "/api/auth/logout"
    assert json.loads(request.content) == {"refreshToken": "R1"}
    assert asyncio.run(store.load()) is None


def test_logout_clears_when_server_fails(make_client, store, fake_api):
    fake_api.responses[("POST", "/api/auth/logout")] = httpx.Response(500)

    async def scenario():
        async with make_client(store) as client:
            await AuthManager(client).logout()

    asyncio.run(scenario())
    assert asyncio.run(store.load()) is None


def test_logout_clears_when_unreachable(fake_config, store):
    def handler(request):
        raise httpx.ConnectError("offline")

    client = HealthTrackerClient(fake_config, store, http=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    async def scenario():
        async with client:
            await AuthManager(client).logout()

    asyncio.run(scenario())
    assert asyncio.run(store.load()) is None


def test_logout_after_rotation_revokes_live_token(make_client, store, fake_api):
    fake_api.valid_access = {"A0"}

    async def scenario():
        async with make_client(store) as client:
            await AuthManager(client).logout()

    asyncio.run(scenario())
    logouts = [r for r in fake_api.requests if r.url.path == "/api/auth/logout"]
    assert json.loads(logouts[-1].content) == {"refreshToken": "R2"}
    assert fake_api.refresh_calls == 1
    assert asyncio.run(store.load()) is None


def test_logout_without_session_skips_call(make_client, fake_api):
    async def scenario():
        async with make_client(MemoryTokenStore()) as client:
            await AuthManager(client).logout()

    asyncio.run(scenario())
    assert fake_api.requests == []


# ── status ───────────────────────────────────────────────────────────

def test_status_no_token(make_client):
    async def scenario():
        async with make_client(MemoryTokenStore()) as client:
            return await AuthManager(client).get_status()

    status = asyncio.run(scenario())
    assert status.has_token is False
    assert status.is_expired is True
    assert status.seconds_remaining is None


def test_status_valid_token(make_client):
    store = MemoryTokenStore(TokenPair(access_token=make_jwt(3600), refresh_token="R1"))

    async def scenario():
        async with make_client(store) as client:
            auth = AuthManager(client)
            return await auth.get_status(), await auth.is_authenticated()

    status, authenticated = asyncio.run(scenario())
    assert status.has_token is True
    assert status.is_expired is False
    assert 3500 < status.seconds_remaining <= 3600
    assert authenticated is True


def test_status_expired_token(make_client):
    store = MemoryTokenStore(TokenPair(access_token=make_jwt(-60), refresh_token="R1"))

    async def scenario():
        async with make_client(store) as client:
            auth = AuthManager(client)
            return await auth.get_status(), await auth.is_authenticated()

    status, authenticated = asyncio.run(scenario())
    assert status.has_token is True
    assert status.is_expired is True
    assert status.seconds_remaining is None
    assert authenticated is False


def test_opaque_token_counts_as_expired(make_client, store):
    async def scenario():
        async with make_client(store) as client:
            return await AuthManager(client).get_status()

    status = asyncio.run(scenario())
    assert status.has_token is True
    assert status.is_expired is True


# ── token_expiry ─────────────────────────────────────────────────────

def test_token_expiry_reads_exp():
    assert token_expiry(make_jwt(60)) is not None


def test_token_expiry_garbage():
    assert token_expiry("not-a-jwt") is None
