"""Token refresh coordination.

Exchanges the stored refresh token for a new token pair. Concurrent callers
that need a refresh while one is already outstanding attach to it instead
of starting a second exchange, and all of them receive the same outcome.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import NoReturn

import httpx
from pydantic import ValidationError

from health_tracker.config import Config
from health_tracker.models.auth import TokenPair, TokenResponse
from health_tracker.token_store import TokenStore
from health_tracker.utils.errors import HealthTrackerError, SessionExpired, StorageUnavailable

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh"


class RefreshState(str, Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"
    FAILED = "failed"


class RefreshCoordinator:
    """Single-flight refresh of the stored token pair.

    The first caller moves the coordinator out of IDLE and performs the
    exchange. Anyone arriving before the outcome is known gets a future on
    the waiter list. Success stores the new pair; failure clears the store.
    Either way every waiter is released and the state returns to IDLE.
    """

    def __init__(self, config: Config, store: TokenStore, http: httpx.AsyncClient) -> None:
        self._config = config
        self._store = store
        self._http = http
        self._state = RefreshState.IDLE
        self._waiters: list[asyncio.Future[TokenPair]] = []

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def waiting(self) -> int:
        """Number of callers attached to the outstanding attempt."""
        return len(self._waiters)

    async def refresh(self, rejected_token: str | None = None) -> TokenPair:
        """Obtain a fresh token pair.

        Args:
            rejected_token: The access token the server just rejected. If the
                store already holds a different one, another caller has
                refreshed in the meantime and that pair is returned as-is.
                None forces an exchange.

        Returns:
            The new token pair.

        Raises:
            SessionExpired: No refresh token is stored or the exchange failed.
            StorageUnavailable: The token store could not be read or written.
        """
        if self._state is not RefreshState.IDLE:
            waiter: asyncio.Future[TokenPair] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            logger.debug("Refresh in progress, %d caller(s) waiting", len(self._waiters))
            return await waiter

        self._state = RefreshState.REFRESHING
        try:
            pair = await self._attempt(rejected_token)
        except HealthTrackerError as e:
            self._release(error=e)
            raise
        except BaseException as e:
            self._release(error=SessionExpired(f"Token refresh interrupted: {e!r}"))
            raise
        self._release(pair=pair)
        return pair

    async def _attempt(self, rejected_token: str | None) -> TokenPair:
        current = await self._store.load()
        if current is not None and rejected_token is not None and current.access_token != rejected_token:
            logger.debug("Stored access token already replaced, skipping exchange")
            return current

        if current is None:
            await self._fail("No refresh token stored")

        try:
            pair = await self._exchange(current.refresh_token)
        except SessionExpired as e:
            await self._fail(str(e))

        await self._store.save(pair)
        logger.info("Access token refreshed")
        return pair

    async def _exchange(self, refresh_token: str) -> TokenPair:
        """POST the refresh token and parse the new pair."""
        url = self._config.url(REFRESH_PATH)
        try:
            response = await self._http.post(url, json={"refreshToken": refresh_token})
        except httpx.HTTPError as e:
            raise SessionExpired(f"Token refresh failed: {e}") from e

        if not response.is_success:
            error_detail = response.text
            try:
                error_json = response.json()
                if isinstance(error_json, dict):
                    error_detail = error_json.get("message", error_json.get("title", response.text))
            except ValueError:
                pass
            raise SessionExpired(
                f"Token refresh failed (HTTP {response.status_code}): {error_detail}"
            )

        try:
            pair = TokenResponse.model_validate(response.json()).to_pair()
        except (ValueError, ValidationError) as e:
            raise SessionExpired(f"Token refresh returned an unreadable body: {e}") from e
        if pair is None:
            raise SessionExpired("Token refresh response did not include both tokens")
        return pair

    async def _fail(self, reason: str) -> NoReturn:
        """Clear the stored session and raise SessionExpired."""
        self._state = RefreshState.FAILED
        logger.warning("Session expired: %s", reason)
        try:
            await self._store.clear()
        except StorageUnavailable as e:
            logger.error("Could not clear token store after failed refresh: %s", e)
            raise SessionExpired(reason) from e
        raise SessionExpired(reason)

    def _release(
        self,
        pair: TokenPair | None = None,
        error: BaseException | None = None,
    ) -> None:
        """Deliver the outcome to every waiter and return to IDLE."""
        waiters, self._waiters = self._waiters, []
        self._state = RefreshState.IDLE
        for waiter in waiters:
            if waiter.done():
                continue
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(pair)  # type: ignore[arg-type]
