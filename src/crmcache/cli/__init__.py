"""CLI commands for crmcache.

Provides command-line interface using Typer:
- crmcache snapshot stats: List entries of a persisted snapshot
- crmcache snapshot sweep: Drop expired entries from a snapshot
- crmcache snapshot clear: Empty a snapshot

Usage:
    crmcache --help
    crmcache snapshot stats --format json
    crmcache --log-level DEBUG snapshot sweep
"""

import typer

from crmcache.cli.snapshot_cmd import app as snapshot_app
from crmcache.config import settings
from crmcache.observability.logging import configure_logging

# Main CLI application
app = typer.Typer(
    name="crmcache",
    help="crmcache: client-side cache maintenance",
    no_args_is_help=True,
)

app.add_typer(snapshot_app, name="snapshot")


@app.callback()
def callback(
    log_level: str = typer.Option(settings.log_level, "--log-level", help="Log level"),
    log_json: bool = typer.Option(settings.log_json, "--log-json/--log-text", help="Log format"),
) -> None:
    """crmcache: client-side cache maintenance."""
    configure_logging(json_format=log_json, level=log_level)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
