"""
CLI for the storefront data-access layer.

Commands:
    storefront config - Show current configuration
    storefront preload - Warm critical data and report what loaded
    storefront products - List, search or filter products
    storefront categories - List categories
    storefront version - Print version
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any, Optional

import orjson
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from storefront import __version__
from storefront.config import Settings, clear_settings_cache, get_settings
from storefront.context import DataContext
from storefront.exceptions import StorefrontError, describe_error
from storefront.logging import setup_logging

app = typer.Typer(
    name="storefront",
    help="Storefront data access - cached, retried reads from the shop backend",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'storefront config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def _items(payload: Any) -> list[dict[str, Any]]:
    """Extract a list of records from a listing payload."""
    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)]
    if isinstance(payload, dict):
        for key in ("products", "categories", "items", "rows"):
            value = payload.get(key)
            if isinstance(value, list):
                return [item for item in value if isinstance(item, dict)]
    return []


def _print_json(payload: Any) -> None:
    console.print_json(orjson.dumps(payload, default=str).decode("utf-8"))


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]Storefront Data Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check API_BASE_URL (must be http:// or https://) and the")
        error_console.print("numeric API_* and CACHE_* settings in your environment or .env.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def preload() -> None:
    """Warm categories, navigation and homepage featured products."""
    settings = _require_settings()

    async def run() -> dict[str, bool]:
        async with DataContext(settings) as ctx:
            return await ctx.service.preload_critical_data()

    outcome = asyncio.run(run())

    lines = [
        f"[green]loaded[/green]  {name}" if ok else f"[red]failed[/red]  {name}"
        for name, ok in outcome.items()
    ]
    all_ok = all(outcome.values())
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Preload[/bold]",
            border_style="green" if all_ok else "yellow",
        )
    )
    if not all_ok:
        raise typer.Exit(1)


@app.command()
def products(
    search: Annotated[
        Optional[str],
        typer.Option("--search", "-s", help="Full-text search query"),
    ] = None,
    category: Annotated[
        Optional[str],
        typer.Option("--category", "-c", help="Restrict to a category ID"),
    ] = None,
    page: Annotated[
        Optional[int],
        typer.Option("--page", "-p", help="Page number"),
    ] = None,
    limit: Annotated[
        Optional[int],
        typer.Option("--limit", "-l", help="Items per page"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw payload as JSON"),
    ] = False,
) -> None:
    """List products from the catalog."""
    settings = _require_settings()
    params = {k: v for k, v in {"page": page, "limit": limit}.items() if v is not None}

    async def run() -> Any:
        async with DataContext(settings) as ctx:
            if search:
                return await ctx.service.search_products(search, params)
            if category:
                return await ctx.service.get_products_by_category(category, params)
            return await ctx.service.get_products(params)

    try:
        payload = asyncio.run(run())
    except StorefrontError as e:
        error_console.print(f"[red]Error:[/red] {describe_error(e, settings.ERROR_MESSAGES)}")
        raise typer.Exit(1)

    if as_json:
        _print_json(payload)
        return

    rows = _items(payload)
    table = Table(title=f"Products ({len(rows)})", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Code")
    table.add_column("Stock", justify="right")

    for item in rows:
        table.add_row(
            str(item.get("id", "")),
            str(item.get("productName") or item.get("name") or ""),
            str(item.get("productCode") or ""),
            str(item.get("stockUnits", "")),
        )
    console.print(table)


@app.command()
def categories(
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the raw payload as JSON"),
    ] = False,
) -> None:
    """List catalog categories."""
    settings = _require_settings()

    async def run() -> Any:
        async with DataContext(settings) as ctx:
            return await ctx.service.get_categories()

    try:
        payload = asyncio.run(run())
    except StorefrontError as e:
        error_console.print(f"[red]Error:[/red] {describe_error(e, settings.ERROR_MESSAGES)}")
        raise typer.Exit(1)

    if as_json:
        _print_json(payload)
        return

    table = Table(title="Categories", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    for item in _items(payload):
        table.add_row(str(item.get("id", "")), str(item.get("name", "")))
    console.print(table)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"storefront-data version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
