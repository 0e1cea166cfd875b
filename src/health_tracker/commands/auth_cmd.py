"""CLI commands for session management."""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console

from health_tracker.auth import AuthManager
from health_tracker.client import HealthTrackerClient
from health_tracker.config import get_config
from health_tracker.token_store import TokenStore
from health_tracker.utils.errors import HealthTrackerError, handle_error
from health_tracker.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="auth", help="Log in, log out and inspect the stored session.")


def _client(verbose: bool = False) -> HealthTrackerClient:
    config = get_config()
    return HealthTrackerClient(config, TokenStore(config.settings.token_file), verbose=verbose)


def _status_row(status) -> dict[str, object]:
    return {
        "has_token": status.has_token,
        "is_expired": status.is_expired,
        "expires_at": str(status.expires_at) if status.expires_at else "N/A",
        "seconds_remaining": status.seconds_remaining or 0,
    }


@app.command()
def login(
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email")],
    password: Annotated[str, typer.Option("--password", "-p", prompt=True, hide_input=True, help="Account password")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")] = False,
) -> None:
    """Log in and store the token pair."""
    async def run():
        async with _client(verbose) as client:
            auth = AuthManager(client)
            await auth.login(email, password)
            return await auth.get_status()

    try:
        console.print(f"Logging in as [bold]{email}[/bold]...", style="yellow")
        status = asyncio.run(run())
        print_output({"status": "authenticated", **_status_row(status)}, output, title="Authentication")
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def register(
    email: Annotated[str, typer.Option("--email", "-e", prompt=True, help="Account email")],
    password: Annotated[str, typer.Option(
        "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True, help="Account password",
    )],
    first_name: Annotated[str, typer.Option("--first-name", help="First name")] = "",
    last_name: Annotated[str, typer.Option("--last-name", help="Last name")] = "",
    gender: Annotated[str, typer.Option("--gender", help="Gender")] = "",
    date_of_birth: Annotated[str, typer.Option("--date-of-birth", help="YYYY-MM-DD")] = "",
    mobile_number: Annotated[str, typer.Option("--mobile", help="Mobile number")] = "",
) -> None:
    """Create an account."""
    data = {
        "Email": email,
        "Password": password,
        "ConfirmPassword": password,
        "FirstName": first_name,
        "LastName": last_name,
        "Gender": gender,
        "DateOfBirth": date_of_birth,
        "MobileNumber": mobile_number,
    }

    async def run():
        async with _client() as client:
            await AuthManager(client).register(data)

    try:
        asyncio.run(run())
        console.print("[green]User registered successfully.[/green] Run `health-tracker auth login`.")
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def logout() -> None:
    """Revoke the refresh token and clear the stored session."""
    async def run():
        async with _client() as client:
            await AuthManager(client).logout()

    try:
        asyncio.run(run())
        console.print("Logged out.")
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def status(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
) -> None:
    """Show current session status."""
    async def run():
        async with _client() as client:
            return await AuthManager(client).get_status()

    try:
        print_output(_status_row(asyncio.run(run())), output, title="Session Status")
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command()
def refresh(
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.TABLE,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")] = False,
) -> None:
    """Force a token refresh."""
    async def run():
        async with _client(verbose) as client:
            await client.coordinator.refresh()
            return await AuthManager(client).get_status()

    try:
        console.print("Force refreshing token...", style="yellow")
        status = asyncio.run(run())
        print_output({"status": "refreshed", **_status_row(status)}, output, title="Token Refreshed")
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)
