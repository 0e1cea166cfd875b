"""Error taxonomy and structured error output for the CLI."""

from __future__ import annotations

import json
import sys

from rich.console import Console

console = Console(stderr=True)


class HealthTrackerError(Exception):
    """Base class for every error raised by the client."""


class StorageUnavailable(HealthTrackerError):
    """The token store could not read or write its persistent state."""


class SessionExpired(HealthTrackerError):
    """The session cannot be recovered; the user has to log in again."""


class NetworkFailure(HealthTrackerError):
    """Transport-level failure unrelated to authorization."""


class AuthenticationError(HealthTrackerError):
    """Login or registration was rejected."""


class ApiError(HealthTrackerError):
    """The API answered with a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"API error (HTTP {status_code}): {message}")
        self.status_code = status_code


# Error code and actionable hint keyed by exception type
_ERROR_CODES: list[tuple[type[Exception], str, str | None]] = [
    (SessionExpired, "SESSION_EXPIRED", "Session expired — run `health-tracker auth login`"),
    (AuthenticationError, "AUTH_ERROR", "Check your email and password"),
    (StorageUnavailable, "STORAGE_UNAVAILABLE", "Check HEALTH_TRACKER_TOKEN_FILE is readable and writable"),
    (NetworkFailure, "CONNECTION_ERROR", "Connection error — check HEALTH_TRACKER_API_BASE_URL and network connectivity"),
    (ApiError, "API_ERROR", None),
]


def _classify(error: Exception) -> tuple[str, str | None]:
    """Map an exception to an error code and hint."""
    for exc_type, code, hint in _ERROR_CODES:
        if isinstance(error, exc_type):
            if isinstance(error, ApiError) and error.status_code == 404:
                return "NOT_FOUND", "The requested record does not exist — verify the ID"
            return code, hint
    return "RUNTIME_ERROR", None


def handle_error(error: Exception) -> None:
    """Handle an error with structured output to stdout and human-readable output to stderr.

    Outputs a JSON error object to stdout for scripted consumption:
    {"error": true, "code": "SESSION_EXPIRED", "message": "...", "hint": "..."}

    Also prints a human-readable error to stderr.
    """
    message = str(error)
    code, hint = _classify(error)

    error_obj: dict[str, object] = {
        "error": True,
        "code": code,
        "message": message,
    }
    if hint:
        error_obj["hint"] = hint

    json.dump(error_obj, sys.stdout)
    sys.stdout.write("\n")

    console.print(f"[red]Error:[/red] {message}")
    if hint:
        console.print(f"[dim]Hint: {hint}[/dim]")
