"""CLI commands for probing a backend's liveness and readiness."""

import asyncio
from collections.abc import Coroutine
from typing import Any

import typer
from rich.console import Console

from agileflow.config.settings import get_settings
from agileflow.core.logging import setup_logging
from agileflow.readiness.poller import ReadinessPoller

console = Console()
error_console = Console(stderr=True)


def run_async(coro: Coroutine[Any, Any, bool]) -> bool:
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


def _make_poller(url: str | None) -> ReadinessPoller:
    """Build a poller for ``url`` or the configured backend URL."""
    try:
        return ReadinessPoller(url or get_settings().backend_url)
    except ValueError as e:
        error_console.print(f"[red]Error: {e}. Pass --url or set BACKEND_URL.[/red]")
        raise typer.Exit(1) from None


def _report(ready: bool, base_url: str) -> None:
    if ready:
        console.print(f"[bold green]ready[/bold green] {base_url}")
        return
    error_console.print(f"[red]Backend at {base_url} is not ready.[/red]")
    raise typer.Exit(1)


app = typer.Typer(help="Probe a running backend")


@app.command("check")
def check(
    url: str | None = typer.Option(
        None, "--url", "-u", help="Backend origin (defaults to BACKEND_URL)"
    ),
) -> None:
    """Check liveness and readiness once."""
    poller = _make_poller(url)
    setup_logging(get_settings().log_level)
    _report(run_async(poller.check_once()), poller.base_url)


@app.command("wait")
def wait(
    url: str | None = typer.Option(
        None, "--url", "-u", help="Backend origin (defaults to BACKEND_URL)"
    ),
    max_wait_ms: int | None = typer.Option(
        None, "--max-wait-ms", "-t", min=0, help="Give up after this many milliseconds"
    ),
    interval_ms: int | None = typer.Option(
        None, "--interval-ms", "-i", min=0, help="Delay between attempts"
    ),
) -> None:
    """Poll until the backend is ready or the deadline passes."""
    settings = get_settings()
    poller = _make_poller(url)
    if max_wait_ms is None:
        max_wait_ms = settings.readiness_max_wait_ms
    if interval_ms is None:
        interval_ms = settings.readiness_poll_interval_ms

    setup_logging(settings.log_level)
    console.print(
        f"[dim]Waiting up to {max_wait_ms}ms for {poller.base_url} "
        f"(every {interval_ms}ms)[/dim]"
    )
    _report(
        run_async(poller.wait_until_ready(max_wait_ms, interval_ms)), poller.base_url
    )
