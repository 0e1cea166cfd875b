"""Auth-related data models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TokenPair(BaseModel):
    """Access and refresh token, always stored together."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: str = Field(alias="refreshToken", min_length=1)


class TokenResponse(BaseModel):
    """Body returned by /Auth/login and /auth/refresh."""
    model_config = ConfigDict(populate_by_name=True)

    access_token: str | None = Field(default=None, alias="accessToken")
    refresh_token: str | None = Field(default=None, alias="refreshToken")

    def to_pair(self) -> TokenPair | None:
        """Return the pair, or None if either token is missing."""
        if not self.access_token or not self.refresh_token:
            return None
        return TokenPair(access_token=self.access_token, refresh_token=self.refresh_token)


class TokenStatus(BaseModel):
    """Current state of the stored session."""
    has_token: bool
    is_expired: bool
    expires_at: datetime | None = None
    seconds_remaining: int | None = None


class RequestDescriptor(BaseModel):
    """An outbound API call, replayable as-is after a token refresh."""
    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    body: Any = None
    params: dict[str, str] | None = None
