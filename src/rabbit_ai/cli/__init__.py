"""CLI commands for Rabbit AI.

Provides command-line interface using Typer:
- rabbit-ai serve: Run the API server
- rabbit-ai init-db: Create database tables
- rabbit-ai cache: Inspect and maintain the Redis cache

Usage:
    rabbit-ai --help
    rabbit-ai serve --port 8080
    rabbit-ai cache stats
    rabbit-ai cache warm-up --limit 500
"""

import typer

from rabbit_ai.cli.cache_cmd import app as cache_app
from rabbit_ai.cli.db_cmd import app as db_app
from rabbit_ai.cli.serve import app as serve_app

app = typer.Typer(
    name="rabbit-ai",
    help="Rabbit AI: chat backend with cached users and conversations",
    no_args_is_help=True,
)

app.add_typer(serve_app, name="serve")
app.add_typer(db_app, name="init-db")
app.add_typer(cache_app, name="cache")


@app.callback()
def callback() -> None:
    """Rabbit AI: chat backend with cached users and conversations."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
