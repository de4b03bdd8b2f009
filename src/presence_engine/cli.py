"""CLI for the presence engine.

Commands:
    init-db                        - Create database tables
    sync-asset <asset_id>          - Re-derive presences for an asset
    suggest-locations              - List interpolated location suggestions
    connected <entity_id>          - Show an entity's direct neighbours
    home-location                  - Show, set or recalculate the home location
    ignore-entity <asset> <entity> - Suppress (or restore) a derived presence
    set-location <asset_id>        - Set or clear an asset's manual coordinates
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated
from uuid import UUID

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from presence_engine.config import settings
from presence_engine.db import async_session_factory, init_db
from presence_engine.services.assets import AssetService
from presence_engine.services.connectivity import EntityConnectivityResolver
from presence_engine.services.location_interpolation import (
    LocationInterpolator,
    resolve_window_minutes,
)
from presence_engine.services.patches import CLEAR, KEEP, ManualMetadataPatch, SetTo
from presence_engine.services.presence_sync import PresenceSynchronizer
from presence_engine.services.project_settings import ProjectSettingsService
from presence_engine.utils.geo import GeoPoint

app = typer.Typer(
    name="presence-engine",
    help="Presence engine: derived presence timelines and location suggestions",
    no_args_is_help=True,
)
console = Console()


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        console.print(f"[red]Error:[/red] Invalid UUID: {value}")
        raise typer.Exit(1) from None


@app.callback()
def configure(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Logging level (default from settings)")
    ] = None,
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@app.command("init-db")
def init_db_command():
    """Create database tables."""
    run_async(init_db())
    console.print("[green]Database initialized.[/green]")


@app.command("sync-asset")
def sync_asset(
    asset_id: Annotated[str, typer.Argument(help="Asset ID (UUID)")],
):
    """Re-derive the presences of one asset from its annotation links."""
    aid = parse_uuid(asset_id)

    async def _sync():
        async with async_session_factory() as session:
            result = await PresenceSynchronizer(session).sync_asset(aid)
            await session.commit()

        if result.skipped:
            console.print(f"[yellow]Skipped:[/yellow] {result.skipped}")
            return
        console.print(
            f"Created [green]{result.created}[/green], updated [cyan]{result.updated}[/cyan], "
            f"deleted [red]{result.deleted}[/red], unchanged {result.unchanged}"
        )

    run_async(_sync())


@app.command("suggest-locations")
def suggest_locations(
    max_minutes: Annotated[
        float | None,
        typer.Option(help="Widest gap between bracketing photos (default: project setting)"),
    ] = None,
    full_ids: Annotated[bool, typer.Option("--full-ids", "-f", help="Show full UUIDs")] = False,
):
    """Suggest coordinates for dated photos without GPS."""
    async def _suggest():
        async with async_session_factory() as session:
            window = max_minutes
            if window is None:
                project = await ProjectSettingsService(session).get_project_settings(
                    recompute_if_auto_update=False
                )
                window = project.location_interpolation_max_minutes
            window = resolve_window_minutes(window)
            suggestions = await LocationInterpolator(session).suggest_interpolated_locations(window)

        if not suggestions:
            console.print("[yellow]No location suggestions.[/yellow]")
            return

        table = Table(title=f"Location Suggestions (window {window:g} min)")
        table.add_column("Asset", no_wrap=full_ids)
        table.add_column("Captured")
        table.add_column("Camera")
        table.add_column("Latitude", justify="right")
        table.add_column("Longitude", justify="right")
        table.add_column("Span (min)", justify="right")
        table.add_column("Weight", justify="right")

        for s in suggestions:
            asset = str(s.asset_id) if full_ids else str(s.asset_id)[:8] + "..."
            table.add_row(
                asset,
                s.capture_time.isoformat(),
                s.device_key,
                f"{s.proposed_latitude:.6f}",
                f"{s.proposed_longitude:.6f}",
                f"{s.span_minutes:.1f}",
                f"{s.weight:.2f}",
            )

        console.print(table)

    run_async(_suggest())


@app.command()
def connected(
    entity_id: Annotated[str, typer.Argument(help="Entity ID (UUID)")],
):
    """Show entities linked directly to an entity, in either direction."""
    eid = parse_uuid(entity_id)

    async def _connected():
        async with async_session_factory() as session:
            links = await EntityConnectivityResolver(session).get_direct_links(eid)

        if not links:
            console.print(f"[yellow]No links for entity {eid}[/yellow]")
            return

        table = Table(title=f"Connected to {eid}")
        table.add_column("Entity")
        table.add_column("Relation")
        table.add_column("Direction")
        for link in links:
            table.add_row(
                str(link.other_entity_id),
                link.relation_type,
                "outgoing" if link.outgoing else "incoming",
            )
        console.print(table)

    run_async(_connected())


@app.command("home-location")
def home_location(
    lat: Annotated[float | None, typer.Option(help="Set home latitude")] = None,
    lng: Annotated[float | None, typer.Option(help="Set home longitude")] = None,
    auto_update: Annotated[
        bool | None,
        typer.Option("--auto-update/--no-auto-update", help="Recompute on every read"),
    ] = None,
    recalculate: Annotated[
        bool, typer.Option("--recalculate", help="Recompute from all known coordinates now")
    ] = False,
):
    """Show, set or recalculate the project's home location."""
    async def _home():
        async with async_session_factory() as session:
            service = ProjectSettingsService(session)
            try:
                if recalculate:
                    current = await service.recalculate_home_location()
                elif lat is not None or lng is not None or auto_update is not None:
                    current = await service.update_project_settings(
                        home_lat=lat, home_lng=lng, home_auto_update=auto_update
                    )
                else:
                    current = await service.get_project_settings()
            except ValueError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()

        home = current.home_location
        panel_content = [
            "[bold]Home:[/bold] "
            + (f"{home.latitude:.6f}, {home.longitude:.6f}" if home else "[dim]not set[/dim]"),
            f"[bold]Auto-update:[/bold] {current.home_auto_update}",
            f"[bold]Interpolation window:[/bold] {current.location_interpolation_max_minutes} min",
        ]
        console.print(Panel("\n".join(panel_content), title="Project Settings"))

    run_async(_home())


@app.command("ignore-entity")
def ignore_entity(
    asset_id: Annotated[str, typer.Argument(help="Asset ID (UUID)")],
    entity_id: Annotated[str, typer.Argument(help="Entity ID (UUID)")],
    undo: Annotated[bool, typer.Option("--undo", help="Remove from the ignore list")] = False,
):
    """Stop (or resume) deriving a presence for an entity from an asset."""
    aid = parse_uuid(asset_id)
    eid = parse_uuid(entity_id)

    async def _ignore():
        async with async_session_factory() as session:
            service = AssetService(session)
            try:
                if undo:
                    result = await service.unignore_entity(aid, eid)
                else:
                    result = await service.ignore_entity(aid, eid)
            except ValueError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()

        console.print(f"Ignored entities for {aid}: {len(result.ignored_entity_ids)}")
        if not result.presence_sync.ok:
            console.print(f"[yellow]Presence sync failed:[/yellow] {result.presence_sync.error}")

    run_async(_ignore())


@app.command("set-location")
def set_location(
    asset_id: Annotated[str, typer.Argument(help="Asset ID (UUID)")],
    lat: Annotated[float | None, typer.Option(help="Camera latitude")] = None,
    lng: Annotated[float | None, typer.Option(help="Camera longitude")] = None,
    clear: Annotated[bool, typer.Option("--clear", help="Remove the manual coordinates")] = False,
):
    """Set or clear the manual coordinates of an asset."""
    aid = parse_uuid(asset_id)

    if clear:
        location = CLEAR
    elif lat is not None and lng is not None:
        try:
            location = SetTo(GeoPoint(lat, lng))
        except ValueError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(1) from None
    elif lat is None and lng is None:
        location = KEEP
    else:
        console.print("[red]Error:[/red] Both --lat and --lng must be provided together")
        raise typer.Exit(1)

    async def _set():
        async with async_session_factory() as session:
            try:
                result = await AssetService(session).update_manual_metadata(
                    aid, ManualMetadataPatch(location=location)
                )
            except ValueError as e:
                console.print(f"[red]Error:[/red] {e}")
                raise typer.Exit(1) from None
            await session.commit()

        point = result.location
        console.print(
            f"Location of {aid}: "
            + (f"{point.latitude:.6f}, {point.longitude:.6f}" if point else "[dim]none[/dim]")
        )
        sync = result.presence_sync
        if sync.ok and sync.result is not None:
            console.print(
                f"Presences: +{sync.result.created} ~{sync.result.updated} -{sync.result.deleted}"
            )
        elif not sync.ok:
            console.print(f"[yellow]Presence sync failed:[/yellow] {sync.error}")

    run_async(_set())


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
