"""CLI commands for cache maintenance.

Usage:
    rabbit-ai cache health
    rabbit-ai cache stats
    rabbit-ai cache warm-up --limit 500
    rabbit-ai cache clear-users --yes
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.table import Table

from rabbit_ai.config import get_settings
from rabbit_ai.container import AppContainer, build_container
from rabbit_ai.core.errors import CacheError
from rabbit_ai.observability import LogContext

T = TypeVar("T")

app = typer.Typer(help="Inspect and maintain the Redis cache", no_args_is_help=True)
console = Console()


def _run(action: Callable[[AppContainer], Awaitable[T]]) -> T:
    async def runner() -> T:
        container = build_container(get_settings())
        try:
            with LogContext(request_id=f"cli-{uuid.uuid4().hex[:8]}"):
                return await action(container)
        finally:
            await container.close()

    try:
        return asyncio.run(runner())
    except CacheError as e:
        console.print(f"[red]Cache error:[/red] {e}")
        raise typer.Exit(code=1) from e


@app.command()
def health() -> None:
    """Ping Redis."""

    async def check(container: AppContainer) -> None:
        await container.cache_manager.health_check()

    _run(check)
    console.print("[green]Cache is healthy[/green]")


@app.command()
def stats() -> None:
    """Show key count, memory usage and hit rate."""

    async def collect(container: AppContainer):
        return await container.cache_manager.get_stats()

    result = _run(collect)
    table = Table(title="Cache statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for name, value in result.to_dict().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command("warm-up")
def warm_up(
    limit: int = typer.Option(1000, "--limit", "-n", help="Number of users to preload"),
) -> None:
    """Preload the first N users (by ID) into the cache."""

    async def load(container: AppContainer):
        users = await container.repositories.users.list_users(limit)
        return await container.cache_manager.warm_up(users)

    report = _run(load)
    console.print(f"Warmed {report.succeeded}/{report.total} users")
    for key in report.failed_keys:
        console.print(f"  [yellow]failed:[/yellow] {key}")
    if report.succeeded < report.total:
        raise typer.Exit(code=1)


@app.command("clear-users")
def clear_users(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
) -> None:
    """Delete every cached user entry."""
    if not yes:
        typer.confirm("Delete all cached users?", abort=True)

    async def clear(container: AppContainer) -> int:
        return await container.cache_manager.clear_all_users()

    deleted = _run(clear)
    console.print(f"Deleted {deleted} cached users")
