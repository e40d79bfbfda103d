"""
CLI interface for Asset Ledger.

Provides command-line access to the asset store and its change history.
"""

import logging
import sqlite3
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from asset_ledger.config.loader import AppConfig, LoggingConfig, load_config
from asset_ledger.core.errors import InventoryError
from asset_ledger.core.identity import Actor
from asset_ledger.core.ledger import ChangeLedger
from asset_ledger.core.store import AssetStore
from asset_ledger.demo.seed_demo_data import seed_demo_data
from asset_ledger.storage.models import Asset, ChangeEvent
from asset_ledger.storage.repository import SQLiteAssetRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1

ACTION_LABELS = {
    "created": "Created",
    "updated": "Updated",
    "relocated": "Relocated",
    "cost_updated": "Cost updated",
    "status_changed": "Status changed",
    "decommissioned": "Decommissioned",
}

FIELD_LABELS = {
    "asset": "Asset",
    "name": "Name",
    "type": "Type",
    "subtype": "Subtype",
    "description": "Description",
    "serial_number": "Serial",
    "responsible": "Responsible",
    "location": "Location",
    "cost": "Cost",
    "status": "Status",
}


@dataclass
class CLIState:
    """Settings shared by every command of one invocation."""
    config: AppConfig
    actor: Optional[Actor]

    @property
    def db_path(self) -> str:
        return self.config.storage.db_path


def _configure_logging(config: LoggingConfig) -> None:
    """Route package logs through rich on stderr at the configured level."""
    logger = logging.getLogger("asset_ledger")
    logger.setLevel(config.level_number)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))


@contextmanager
def _reporting_errors():
    """Translate domain and schema errors into messages and a failing exit."""
    try:
        yield
    except InventoryError as e:
        console.print(f"[red]{type(e).__name__}:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)
    except sqlite3.OperationalError as e:
        if "no such table" in str(e).lower():
            console.print("\n[bold yellow]Asset database is not initialized[/]")
            console.print("Run `asset-ledger init` to create the tables.\n")
            sys.exit(EXIT_CODE_FAIL)
        raise


def _open_store(ctx: typer.Context) -> AssetStore:
    return AssetStore(SQLiteAssetRepository(ctx.obj.db_path))


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db",
        envvar="ASSET_LEDGER_DB",
        help="SQLite database path (overrides the configuration)"
    ),
    user_id: Optional[str] = typer.Option(
        None,
        "--user-id",
        "-u",
        envvar="ASSET_LEDGER_USER_ID",
        help="Identifier of the acting user (required for changes)"
    ),
    username: Optional[str] = typer.Option(
        None,
        "--username",
        envvar="ASSET_LEDGER_USERNAME",
        help="Display name of the acting user"
    ),
):
    """Asset Ledger CLI."""
    try:
        config = load_config(config_path).with_db_path(db_path)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Error loading configuration:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)

    _configure_logging(config.logging)
    actor = Actor(user_id=user_id, username=username or user_id) if user_id else None
    ctx.obj = CLIState(config=config, actor=actor)

    if ctx.invoked_subcommand is None:
        console.print("Asset Ledger - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the asset database."""
    try:
        initialize_schema(ctx.obj.db_path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except sqlite3.Error as e:
        console.print(f"[red]Error initializing database:[/] {escape(str(e))}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def seed(ctx: typer.Context):
    """Load the demo inventory into the database."""
    with _reporting_errors():
        assets = seed_demo_data(_open_store(ctx))
    console.print(f"[green]✓[/] Seeded {len(assets)} demo assets")


@app.command()
def add(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Asset name"),
    asset_type: Optional[str] = typer.Option(None, "--type", "-t", help="Asset type"),
    responsible: Optional[str] = typer.Option(None, "--responsible", "-r"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    cost: Optional[str] = typer.Option(None, "--cost", help="Acquisition cost (default 0)"),
    subtype: Optional[str] = typer.Option(None, "--subtype"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    serial_number: Optional[str] = typer.Option(None, "--serial"),
    status: Optional[str] = typer.Option(None, "--status", help="active, inactive or decommissioned"),
):
    """Register a new asset."""
    data = {
        "name": name,
        "type": asset_type,
        "responsible": responsible,
        "location": location,
        "cost": cost,
        "subtype": subtype,
        "description": description,
        "serial_number": serial_number,
        "status": status,
    }
    with _reporting_errors():
        asset = _open_store(ctx).create(
            {key: value for key, value in data.items() if value is not None},
            ctx.obj.actor
        )
    console.print(f"[green]✓[/] Created asset {asset.id}")


@app.command()
def update(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    assignments: List[str] = typer.Option(
        ...,
        "--set",
        "-s",
        help="Field assignment as field=value (repeatable)"
    ),
):
    """Change one or more fields of an asset."""
    partial = _parse_assignments(assignments)
    with _reporting_errors():
        event = _open_store(ctx).update(asset_id, partial, ctx.obj.actor)
    _report_event(asset_id, event)


@app.command()
def relocate(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    location: Optional[str] = typer.Option(None, "--location", "-l"),
    responsible: Optional[str] = typer.Option(None, "--responsible", "-r"),
):
    """Move an asset and/or reassign who is responsible for it."""
    with _reporting_errors():
        event = _open_store(ctx).relocate(asset_id, location, responsible, ctx.obj.actor)
    _report_event(asset_id, event)


@app.command()
def cost(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    amount: str = typer.Argument(..., help="New cost"),
):
    """Set the cost of an asset."""
    with _reporting_errors():
        event = _open_store(ctx).update_cost(asset_id, amount, ctx.obj.actor)
    _report_event(asset_id, event)


@app.command()
def status(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    new_status: str = typer.Argument(..., help="active, inactive or decommissioned"),
):
    """Change the lifecycle status of an asset."""
    with _reporting_errors():
        event = _open_store(ctx).change_status(asset_id, new_status, ctx.obj.actor)
    _report_event(asset_id, event)


@app.command()
def delete(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Remove an asset. Its history stays available."""
    if not yes:
        typer.confirm(f"Delete asset {asset_id}?", abort=True)
    with _reporting_errors():
        _open_store(ctx).delete(asset_id, ctx.obj.actor)
    console.print(f"[green]✓[/] Deleted asset {escape(asset_id)}")


@app.command(name="list")
def list_assets(ctx: typer.Context):
    """List all live assets."""
    with _reporting_errors():
        assets = _open_store(ctx).list_assets()

    if not assets:
        console.print("[dim]No assets found.[/]")
        return

    console.print(f"\n[bold]{len(assets)} assets[/bold]")
    for asset in assets:
        _display_asset(asset)


@app.command()
def show(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier"),
):
    """Show every field of one asset."""
    with _reporting_errors():
        asset = _open_store(ctx).get(asset_id)
    _display_asset(asset, detailed=True)


@app.command()
def history(
    ctx: typer.Context,
    asset_id: str = typer.Argument(..., help="Asset identifier, live or deleted"),
):
    """Show the change history of an asset, newest first."""
    with _reporting_errors():
        events = ChangeLedger(SQLiteAssetRepository(ctx.obj.db_path)).events_for(asset_id)

    if not events:
        console.print("[dim]No history available.[/]")
        return

    for event in reversed(events):
        _display_event(event)


@app.command()
def changelog(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Number of events to show"),
):
    """Show the latest changes across all assets."""
    with _reporting_errors():
        events = ChangeLedger(SQLiteAssetRepository(ctx.obj.db_path)).recent_events(limit)

    if not events:
        console.print("[dim]No history available.[/]")
        return

    for event in events:
        _display_event(event, show_asset=True)


def _parse_assignments(assignments: List[str]) -> Dict[str, str]:
    """Parse ``field=value`` pairs; an empty value clears optional fields."""
    partial = {}
    for assignment in assignments:
        field, sep, value = assignment.partition("=")
        if not sep or not field.strip():
            console.print(f"[red]Invalid assignment:[/] {escape(assignment)} (expected field=value)")
            sys.exit(EXIT_CODE_FAIL)
        partial[field.strip()] = value
    return partial


def _report_event(asset_id: str, event: Optional[ChangeEvent]) -> None:
    if event is None:
        console.print(f"No changes for asset {escape(asset_id)}")
        return
    label = ACTION_LABELS.get(event.action.value, event.action.value)
    console.print(f"[green]✓[/] {label}: {len(event.changes)} change(s) on asset {escape(asset_id)}")


def _format_currency(amount: Decimal) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${amount:,.2f}"


def _format_value(field: str, value) -> str:
    """Render a delta value, escaped for markup; empty values show as N/A."""
    if value is None or value == "":
        return "N/A"
    if field == "cost":
        try:
            return _format_currency(Decimal(str(value)))
        except InvalidOperation:
            pass
    return escape(str(value))


def _display_asset(asset: Asset, detailed: bool = False) -> None:
    console.print(f"\n[bold]{escape(asset.name)}[/bold] [dim]{escape(asset.id)}[/]")
    subtype = f" / {escape(asset.subtype)}" if asset.subtype else ""
    console.print(f"Type: {escape(asset.type)}{subtype}")
    console.print(f"Serial: {escape(asset.serial_number or 'N/A')}")
    console.print(f"Responsible: {escape(asset.responsible)}")
    console.print(f"Location: {escape(asset.location)}")
    console.print(f"Cost: {_format_currency(asset.cost)}")
    console.print(f"Status: {asset.status.value}")
    if detailed:
        console.print(f"Description: {escape(asset.description or 'N/A')}")
        console.print(f"Created: {asset.created_at.isoformat()} by {escape(asset.created_by)}")
        console.print(f"Updated: {asset.updated_at.isoformat()}")


def _display_event(event: ChangeEvent, show_asset: bool = False) -> None:
    label = ACTION_LABELS.get(event.action.value, event.action.value)
    asset = f" [dim]{escape(event.asset_id)}[/]" if show_asset else ""
    console.print(f"\n[bold]{label}[/bold]{asset} by {escape(event.username)}")
    console.print(f"[dim]{event.timestamp:%Y-%m-%d %H:%M}[/]")
    for change in event.changes:
        field_label = FIELD_LABELS.get(change.field, change.field)
        console.print(
            f"  {field_label}: {_format_value(change.field, change.old_value)}"
            f" → {_format_value(change.field, change.new_value)}"
        )


if __name__ == "__main__":
    app()
