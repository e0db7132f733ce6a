"""CLI command for creating the database schema.

Usage:
    rabbit-ai init-db
"""

from __future__ import annotations

import asyncio

import typer

from rabbit_ai.config import get_settings
from rabbit_ai.persistence.db import Database

app = typer.Typer(help="Create database tables")


@app.callback(invoke_without_command=True)
def init_db() -> None:
    """Create every table that does not exist yet."""
    asyncio.run(_init_db())


async def _init_db() -> None:
    from rich.console import Console

    console = Console()
    settings = get_settings()
    database = Database(settings.database_url)
    try:
        await database.create_all()
    finally:
        await database.close()
    console.print("[green]Database tables created[/green]")
