"""
Observio CLI

Command-line interface for running and poking at the Observio API.

Usage:
    observio serve                                     # Run the API server
    observio routes                                    # List registered routes
    observio sql "SELECT 1" --database default         # Run read-only SQL via the API
"""

import logging
import os
import subprocess
import sys
from typing import Any

import click
import httpx
from rich.console import Console
from rich.table import Table

from observio import __version__
from observio.config import get_settings

console = Console()
API_BASE_URL = os.getenv("OBSERVIO_API_URL", "http://localhost:8080")


def configure_cli_logging() -> None:
    logging.basicConfig(level=logging.WARNING)
    for logger_name in ("observio", "httpx", "clickhouse_connect"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error", response.text)
    except ValueError:
        return response.text


def _render_rows(columns: list[str], rows: list[dict[str, Any]], title: str) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*("" if row.get(col) is None else str(row.get(col)) for col in columns))
    return table


@click.group()
@click.version_option(version=__version__, prog_name="Observio")
def cli():
    """Observio - query-builder and log browsing API over ClickHouse."""
    configure_cli_logging()


@cli.command()
@click.option("--host", default=None, help="Bind host (defaults to API_HOST).")
@click.option("--port", default=None, type=int, help="Bind port (defaults to API_PORT).")
@click.option("--reload", is_flag=True, help="Reload on code changes.")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the API server with uvicorn."""
    settings = get_settings()
    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "observio.api.main:app",
        "--host",
        host or settings.api_host,
        "--port",
        str(port or settings.api_port),
    ]
    if reload:
        cmd.append("--reload")

    console.print(f"[cyan]Starting API server:[/cyan] {' '.join(cmd)}")
    process = subprocess.Popen(cmd)
    try:
        process.wait()
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopping API server...[/yellow]")
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            process.kill()


@cli.command()
def routes():
    """List the HTTP routes the API serves."""
    from fastapi.routing import APIRoute

    from observio.api.main import app

    table = Table(title="Observio Routes", show_header=True, header_style="bold cyan")
    table.add_column("Method", style="cyan")
    table.add_column("Path")

    for route in app.routes:
        if not isinstance(route, APIRoute):
            continue
        for method in sorted(route.methods):
            table.add_row(method, route.path)

    console.print(table)


@cli.command()
@click.argument("query")
@click.option("--database", "-d", default="default", show_default=True, help="Database to query.")
@click.option("--api-url", default=API_BASE_URL, show_default=True, help="Observio API base URL.")
def sql(query: str, database: str, api_url: str):
    """Run a read-only SQL statement through the API."""
    try:
        response = httpx.post(
            f"{api_url}/api/v1/explore/execute-sql",
            json={"database": database, "query": query},
            timeout=60.0,
        )
    except httpx.HTTPError as exc:
        console.print(f"[red]Failed to reach API: {exc}[/red]")
        sys.exit(1)

    if response.status_code != 200:
        console.print(f"[red]Query failed ({response.status_code}): {_error_message(response)}[/red]")
        sys.exit(1)

    data = response.json()
    console.print(_render_rows(data["columns"], data["rows"], title=data["query"]))
    console.print(f"[green]{data['total']} row(s)[/green]")


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
