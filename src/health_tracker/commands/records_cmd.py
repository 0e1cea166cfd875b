"""CLI commands for logging and deleting health records."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Any

import typer
from rich.console import Console

from health_tracker.client import HealthTrackerClient
from health_tracker.config import get_config
from health_tracker.events import EventBus, Topic
from health_tracker.services.records import RecordKind, RecordService
from health_tracker.services.views import ViewLoader, ViewName, ViewService
from health_tracker.token_store import TokenStore
from health_tracker.utils.errors import ApiError, HealthTrackerError, handle_error
from health_tracker.utils.output import OutputFormat, print_output

console = Console(stderr=True)
app = typer.Typer(name="records", help="Log, delete and fetch health records.")


def _client(verbose: bool = False) -> HealthTrackerClient:
    config = get_config()
    return HealthTrackerClient(config, TokenStore(config.settings.token_file), verbose=verbose)


def _bus() -> EventBus:
    """Bus that reports which views a write invalidated."""
    bus = EventBus()
    for topic in Topic:
        bus.subscribe(topic, lambda payload, name=topic.value: console.print(f"[dim]→ {name}[/dim]"))
    return bus


def _loader(client: HealthTrackerClient, bus: EventBus) -> ViewLoader:
    """Loader that re-fetches every invalidated view and reports the outcome."""
    def loaded(topic: Topic, data: dict[str, Any]) -> None:
        console.print(f"[dim]↻ {topic.value}: {len(data)} feed(s) reloaded[/dim]")

    def failed(topic: Topic, error: Exception) -> None:
        console.print(f"[yellow]↻ {topic.value} reload failed:[/yellow] {error}")

    loader = ViewLoader(ViewService(client), bus, on_loaded=loaded, on_error=failed)
    loader.attach()
    return loader


ReloadOption = Annotated[bool, typer.Option("--reload", help="Re-fetch the views the write invalidated")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show request details")]


@app.command("log")
def log_record(
    kind: Annotated[RecordKind, typer.Argument(help="Record kind")],
    data: Annotated[str, typer.Option("--data", "-d", help="Record payload as a JSON object")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.JSON,
    reload: ReloadOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Create a record."""
    try:
        payload = json.loads(data)
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON for --data:[/red] {e}")
        raise typer.Exit(1)
    if not isinstance(payload, dict):
        console.print("[red]--data must be a JSON object[/red]")
        raise typer.Exit(1)

    async def run():
        async with _client(verbose) as client:
            bus = _bus()
            loader = _loader(client, bus) if reload else None
            result = await RecordService(client, bus).log(kind, payload)
            if loader is not None:
                await loader.wait()
            return result

    try:
        result = asyncio.run(run())
        if isinstance(result, (dict, list)):
            print_output(result, output, title=f"{kind.value} logged")
        else:
            console.print(f"[green]{kind.value} logged.[/green]")
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command("delete")
def delete_record(
    kind: Annotated[RecordKind, typer.Argument(help="Record kind")],
    record_id: Annotated[str, typer.Argument(help="Record ID")],
    reload: ReloadOption = False,
    verbose: VerboseOption = False,
) -> None:
    """Delete a record."""
    async def run():
        async with _client(verbose) as client:
            bus = _bus()
            loader = _loader(client, bus) if reload else None
            await RecordService(client, bus).delete(kind, record_id)
            if loader is not None:
                await loader.wait()

    try:
        asyncio.run(run())
        console.print(f"[green]{kind.value} {record_id} deleted.[/green]")
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command("view")
def show_view(
    name: Annotated[ViewName, typer.Argument(help="View to fetch")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """Fetch everything a view shows (dashboard, reminders, recap, chart)."""
    async def run():
        async with _client(verbose) as client:
            return await ViewService(client).fetch(name.topic)

    try:
        print_output(asyncio.run(run()), output, title=name.value)
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)


@app.command("get")
def get_path(
    path: Annotated[str, typer.Argument(help="API path, e.g. /wellness/diet/recap")],
    output: Annotated[OutputFormat, typer.Option("--output", "-o", help="Output format")] = OutputFormat.JSON,
    verbose: VerboseOption = False,
) -> None:
    """Fetch any authenticated endpoint (recaps, reminders, dashboard data)."""
    async def run():
        async with _client(verbose) as client:
            response = await client.get(path)
            if not response.is_success:
                raise ApiError(response.status_code, response.text)
            try:
                return response.json()
            except ValueError:
                return {"body": response.text}

    try:
        print_output(asyncio.run(run()), output, title=path)
    except HealthTrackerError as e:
        handle_error(e)
        raise typer.Exit(1)
