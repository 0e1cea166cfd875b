"""Login, registration, logout and session status for the health-tracking API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import ValidationError

from health_tracker.client import HealthTrackerClient
from health_tracker.models.auth import TokenPair, TokenResponse, TokenStatus
from health_tracker.utils.errors import AuthenticationError, HealthTrackerError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/Auth/login"
REGISTER_PATH = "/auth/register"
LOGOUT_PATH = "/auth/logout"


def token_expiry(access_token: str) -> datetime | None:
    """Read the ``exp`` claim of a JWT without verifying its signature."""
    try:
        claims = jwt.get_unverified_claims(access_token)
    except JWTError as e:
        logger.warning(f"Failed to parse token expiration: {e}")
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


class AuthManager:
    """Manages the user's session against the health-tracking API."""

    def __init__(self, client: HealthTrackerClient) -> None:
        self._client = client
        self._store = client.store

    async def login(self, email: str, password: str) -> TokenPair:
        """Log in and persist the returned token pair."""
        response = await self._client.post(
            LOGIN_PATH,
            body={"email": email, "password": password},
            authenticate=False,
        )
        if not response.is_success:
            raise AuthenticationError(
                f"Login failed (HTTP {response.status_code}): {response.text or 'check your credentials'}"
            )

        try:
            pair = TokenResponse.model_validate(response.json()).to_pair()
        except (ValueError, ValidationError) as e:
            raise AuthenticationError(f"Login returned an unreadable body: {e}") from e
        if pair is None:
            raise AuthenticationError("Tokens not received")

        await self._store.save(pair)
        logger.info("Logged in as %s", email)
        return pair

    async def register(self, data: dict[str, Any]) -> None:
        """Create an account. The caller logs in separately afterwards."""
        response = await self._client.post(REGISTER_PATH, body=data, authenticate=False)
        if not response.is_success:
            raise AuthenticationError(
                f"Registration failed (HTTP {response.status_code}): {response.text or 'please try again'}"
            )

    async def logout(self) -> None:
        """Revoke the refresh token server-side and clear the local session.

        The local session is cleared even when the server call fails.
        """
        try:
            pair = await self._store.load()
            if pair is not None:
                response = await self._client.post(LOGOUT_PATH, body={"refreshToken": pair.refresh_token})
                current = await self._store.load()
                if current is not None and current.refresh_token != pair.refresh_token:
                    # A 401 during the call rotated the pair; revoke the live refresh token
                    response = await self._client.post(LOGOUT_PATH, body={"refreshToken": current.refresh_token})
                if not response.is_success:
                    logger.warning("Logout returned HTTP %s", response.status_code)
        except HealthTrackerError as e:
            logger.error("Logout API call error: %s", e)
        finally:
            await self._store.clear()

    async def get_status(self) -> TokenStatus:
        """Get the current session status, derived from the access token's expiry."""
        pair = await self._store.load()
        if pair is None:
            return TokenStatus(has_token=False, is_expired=True)

        expires_at = token_expiry(pair.access_token)
        now = datetime.now(timezone.utc)
        is_expired = expires_at is None or now >= expires_at
        seconds_remaining = None
        if expires_at and not is_expired:
            seconds_remaining = int((expires_at - now).total_seconds())

        return TokenStatus(
            has_token=True,
            is_expired=is_expired,
            expires_at=expires_at,
            seconds_remaining=seconds_remaining,
        )

    async def is_authenticated(self) -> bool:
        """True when a token pair is stored and its access token has not expired."""
        status = await self.get_status()
        return status.has_token and not status.is_expired
