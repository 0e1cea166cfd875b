"""Base API client for the health-tracking API.

Handles bearer header injection and transparent recovery from an expired
access token: one refresh, one replay, never a loop.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from health_tracker.config import Config
from health_tracker.models.auth import RequestDescriptor, TokenPair
from health_tracker.refresh import RefreshCoordinator
from health_tracker.token_store import TokenStore
from health_tracker.utils.errors import NetworkFailure, SessionExpired

logger = logging.getLogger(__name__)

UNAUTHORIZED = 401

# Replays allowed per call after a refresh
MAX_AUTH_RETRIES = 1


class HealthTrackerClient:
    """Async HTTP client for the health-tracking API with session handling."""

    def __init__(
        self,
        config: Config,
        store: TokenStore,
        http: httpx.AsyncClient | None = None,
        coordinator: RefreshCoordinator | None = None,
        verbose: bool = False,
    ) -> None:
        self._config = config
        self._store = store
        self._http = http or httpx.AsyncClient(timeout=config.settings.timeout)
        self._coordinator = coordinator or RefreshCoordinator(config, store, self._http)
        self._verbose = verbose

    @property
    def store(self) -> TokenStore:
        return self._store

    @property
    def coordinator(self) -> RefreshCoordinator:
        return self._coordinator

    async def __aenter__(self) -> HealthTrackerClient:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        params: dict[str, str] | None = None,
        authenticate: bool = True,
    ) -> httpx.Response:
        """Make an API request, refreshing the session once on 401.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            path: API path (e.g. "/clinical/appt/f"). Appended to the base URL.
            body: JSON request body.
            params: Query parameters.
            authenticate: Attach the stored access token and recover from 401.
                Off for login and registration.

        Returns:
            The httpx.Response. Non-401 error statuses are returned, not raised.

        Raises:
            SessionExpired: The refresh failed, or the replay was rejected too.
            NetworkFailure: The transport failed before a response arrived.
            StorageUnavailable: The token store could not be read.
        """
        descriptor = RequestDescriptor(method=method.upper(), path=path, body=body, params=params)
        if not authenticate:
            return await self._send(descriptor, None, attempt=0)

        pair = await self._store.load()
        return await self._dispatch(descriptor, pair, attempt=0)

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for GET requests."""
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for POST requests."""
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for PUT requests."""
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> httpx.Response:
        """Convenience method for DELETE requests."""
        return await self.request("DELETE", path, **kwargs)

    async def _dispatch(
        self,
        descriptor: RequestDescriptor,
        pair: TokenPair | None,
        attempt: int,
    ) -> httpx.Response:
        response = await self._send(descriptor, pair, attempt)
        if response.status_code != UNAUTHORIZED:
            return response

        if attempt >= MAX_AUTH_RETRIES:
            raise SessionExpired(
                f"{descriptor.method} {descriptor.path} still unauthorized after token refresh"
            )

        logger.warning("Got 401 on %s %s, refreshing token and retrying...", descriptor.method, descriptor.path)
        new_pair = await self._coordinator.refresh(pair.access_token if pair else "")
        return await self._dispatch(descriptor, new_pair, attempt + 1)

    async def _send(
        self,
        descriptor: RequestDescriptor,
        pair: TokenPair | None,
        attempt: int,
    ) -> httpx.Response:
        url = self._config.url(descriptor.path)
        if self._verbose:
            logger.info(f"[Attempt {attempt + 1}] {descriptor.method} {url}")
            if descriptor.body:
                logger.info(f"Body: {descriptor.body}")

        try:
            response = await self._http.request(
                method=descriptor.method,
                url=url,
                headers=self._build_headers(pair),
                json=descriptor.body,
                params=descriptor.params,
            )
        except httpx.TransportError as e:
            raise NetworkFailure(f"{descriptor.method} {url} failed: {e}") from e

        if self._verbose:
            logger.info(f"Response: {response.status_code}")
        return response

    def _build_headers(self, pair: TokenPair | None) -> dict[str, str]:
        """Build request headers, with the bearer credential when logged in."""
        headers = {"Accept": "application/json"}
        if pair is not None:
            headers["Authorization"] = f"Bearer {pair.access_token}"
        return headers

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._http.aclose()
