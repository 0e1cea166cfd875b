"""health-tracker CLI — entry point.

Developer CLI over the health-tracking API client: session management and
record writes from the terminal.
"""

from __future__ import annotations

import logging

import typer

from health_tracker.commands.auth_cmd import app as auth_app
from health_tracker.commands.records_cmd import app as records_app

app = typer.Typer(
    name="health-tracker",
    help="CLI for the personal health-tracking API.",
    no_args_is_help=True,
)

# Register command groups
app.add_typer(auth_app, name="auth")
app.add_typer(records_app, name="records")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """health-tracker CLI — log in, log records, inspect the session."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


if __name__ == "__main__":
    app()
