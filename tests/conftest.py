"""Shared fixtures for the health-tracker test suite."""
from __future__ import annotations

import asyncio
import json
import time

import httpx
import pytest
from jose import jwt

from health_tracker.client import HealthTrackerClient
from health_tracker.config import Config, Settings
from health_tracker.models.auth import TokenPair
from health_tracker.token_store import MemoryTokenStore

BASE_URL = "https://health.test/api"


def make_jwt(expires_in: int = 3600) -> str:
    """Signed JWT whose exp claim is *expires_in* seconds from now."""
    return jwt.encode({"sub": "user-1", "exp": int(time.time()) + expires_in}, "test-secret", algorithm="HS256")


class FakeApi:
    """Scriptable stand-in for the health-tracking API.

    Accepts bearer tokens listed in ``valid_access`` and exchanges refresh
    tokens found in ``rotations``. Every request is recorded.
    """

    def __init__(self) -> None:
        self.valid_access: set[str] = {"A1"}
        self.rotations: dict[str, tuple[str, str]] = {"R1": ("A2", "R2")}
        self.requests: list[httpx.Request] = []
        self.refresh_calls = 0
        self.refresh_delay = 0.01
        self.reject_all = False
        self.responses: dict[tuple[str, str], httpx.Response] = {}

    @property
    def api_calls(self) -> list[httpx.Request]:
        """Recorded requests other than refresh exchanges."""
        return [r for r in self.requests if not r.url.path.endswith("/auth/refresh")]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        # Let concurrent callers interleave before any response arrives
        await asyncio.sleep(0)

        if request.url.path.endswith("/auth/refresh"):
            return await self._refresh(request)

        key = (request.method, request.url.path)
        if key in self.responses:
            return self.responses[key]

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if self.reject_all or token not in self.valid_access:
            return httpx.Response(401, json={"message": "Unauthorized"})
        return httpx.Response(200, json={"path": request.url.path, "token": token})

    async def _refresh(self, request: httpx.Request) -> httpx.Response:
        self.refresh_calls += 1
        await asyncio.sleep(self.refresh_delay)
        refresh_token = json.loads(request.content).get("refreshToken")
        if refresh_token not in self.rotations:
            return httpx.Response(401, json={"message": "Invalid refresh token"})
        access, new_refresh = self.rotations.pop(refresh_token)
        self.valid_access = {access}
        return httpx.Response(200, json={"accessToken": access, "refreshToken": new_refresh})


@pytest.fixture
def fake_settings() -> Settings:
    return Settings(
        api_base_url=BASE_URL,
        timeout=5.0,
        token_file="./test-tokens.json",
    )


@pytest.fixture
def fake_config(fake_settings) -> Config:
    return Config(settings=fake_settings)


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def store() -> MemoryTokenStore:
    return MemoryTokenStore(TokenPair(access_token="A1", refresh_token="R1"))


@pytest.fixture
def make_client(fake_config, fake_api):
    """Factory for a HealthTrackerClient wired to the fake API."""
    def _make(token_store) -> HealthTrackerClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
        return HealthTrackerClient(fake_config, token_store, http=http)
    return _make
