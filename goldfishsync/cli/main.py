"""Command-line interface for GoldfishSync."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from goldfishsync import __version__
from goldfishsync.core.config import AppConfig, load_config
from goldfishsync.core.errors import SyncError
from goldfishsync.core.models import NoteAction, SyncMode, SyncResult
from goldfishsync.core.service import SessionEvents, SyncService
from goldfishsync.core.sync import NotesSyncEngine
from goldfishsync.sources.remote.client import RemoteNotesClient
from goldfishsync.utils.db import SyncStateDB
from goldfishsync.utils.logging import setup_logging

# Create Typer app
app = typer.Typer(
    name="goldfishsync",
    help="Synchronize Goldfish Notes into a folder of markdown files",
    add_completion=False,
)

# Create console for rich output
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to configuration file",
        exists=True,
        dir_okay=False,
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    ),
) -> None:
    """GoldfishSync - Sync Goldfish Notes to markdown."""
    ctx.ensure_object(dict)
    cfg = load_config(config_file)
    ctx.obj["config"] = cfg
    setup_logging(cfg, level_name=log_level)


def _build_engine(cfg: AppConfig, client: RemoteNotesClient) -> NotesSyncEngine:
    cfg.ensure_data_dir()
    return NotesSyncEngine(cfg, client, state_db=SyncStateDB(cfg.state_db_path))


def _print_result(result: SyncResult) -> None:
    stats = result.stats
    table = Table(title="Sync Summary")
    table.add_column("Operation", style="cyan")
    table.add_column("Notes", style="green", justify="right")
    table.add_row("Created", str(stats["created"]))
    table.add_row("Updated", str(stats["updated"]))
    table.add_row("Unchanged", str(stats["unchanged"]))
    table.add_row("Skipped", str(stats["skipped"]))
    table.add_row("Failed", str(stats["failed"]))
    table.add_row("Deleted remotely", str(stats["deleted_remote"]))
    console.print(table)

    for outcome in result.failures:
        console.print(f"  [red]✗ {outcome.note_id}: {outcome.issue.message if outcome.issue else 'failed'}[/red]")
    for issue in result.warnings:
        console.print(f"  [yellow]⚠ {issue.message}[/yellow]")


@app.command()
def version() -> None:
    """Show version information."""
    import platform

    table = Table(title="GoldfishSync Version Information")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    table.add_row("Version", __version__)
    table.add_row("Python", platform.python_version())
    table.add_row("Platform", platform.platform())

    console.print(table)


@app.command()
def config(
    ctx: typer.Context,
    show: bool = typer.Option(False, "--show", "-s", help="Show current configuration"),
    init: bool = typer.Option(False, "--init", "-i", help="Create a default configuration file"),
) -> None:
    """Manage configuration."""
    cfg = ctx.obj["config"]

    if init:
        config_path = cfg.default_config_path
        if config_path.exists():
            console.print(f"[yellow]Config file already exists:[/yellow] {config_path}")
            if not typer.confirm("Overwrite existing config?"):
                console.print("[dim]Config creation cancelled[/dim]")
                raise typer.Exit(0)

        cfg.save_to_file(config_path)
        console.print(f"[green]✓ Config file created:[/green] {config_path}")
        console.print("[yellow]Edit this file to configure GoldfishSync.[/yellow]")
        return

    if show:
        table = Table(title="GoldfishSync Configuration")
        table.add_column("Setting", style="cyan", no_wrap=True)
        table.add_column("Value", style="green")

        table.add_row("Data Directory", str(cfg.general.data_dir))
        table.add_row("Config File", str(cfg.general.config_file or "Not set"))
        table.add_row("Log Level", cfg.general.log_level)

        table.add_row("", "")
        table.add_row("[bold]Remote[/bold]", "")
        table.add_row("URL", cfg.remote.url)
        table.add_row("Signed In", "✓" if cfg.remote.owner_id and cfg.remote.access_token else "✗")

        table.add_row("", "")
        table.add_row("[bold]Notes[/bold]", "")
        table.add_row("Notes Folder", str(cfg.notes.notes_folder))
        table.add_row("Attachments Folder", str(cfg.notes.attachments_folder or "Not set"))
        table.add_row("Sync Mode", cfg.notes.sync_mode.value)
        table.add_row("Download Attachments", "✓" if cfg.notes.download_attachments else "✗")
        table.add_row("Notes Filter", cfg.notes.notes_filter or "None")
        table.add_row("Auto Sync Interval", f"{cfg.notes.sync_interval_minutes} min")

        console.print(table)
    else:
        console.print(f"[yellow]Configuration file:[/yellow] {cfg.general.config_file or 'Not set'}")
        console.print(f"[yellow]Data directory:[/yellow] {cfg.general.data_dir}")
        console.print("\n[dim]Use --show to display full configuration[/dim]")
        console.print("[dim]Use --init to create a default config file[/dim]")


# Notes subcommand group
notes_app = typer.Typer(help="Manage notes synchronization")
app.add_typer(notes_app, name="notes")


@notes_app.command("sync")
def notes_sync(
    ctx: typer.Context,
    mode: Optional[SyncMode] = typer.Option(
        None,
        "--mode",
        "-m",
        help="Sync mode (overwrite, new-only, delete); defaults to the configured mode",
        case_sensitive=False,
    ),
) -> None:
    """Pull notes from Goldfish Notes into the notes folder."""
    cfg = ctx.obj["config"]

    async def run_sync() -> SyncResult:
        async with RemoteNotesClient(cfg.remote) as client:
            engine = _build_engine(cfg, client)
            return await engine.sync(mode)

    try:
        result = asyncio.run(run_sync())
    except SyncError as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1) from e

    _print_result(result)
    if result.failures:
        raise typer.Exit(1)


@notes_app.command("push")
def notes_push(ctx: typer.Context) -> None:
    """Upload local edits back to Goldfish Notes."""
    cfg = ctx.obj["config"]

    async def run_push() -> int:
        async with RemoteNotesClient(cfg.remote) as client:
            engine = _build_engine(cfg, client)
            return await engine.push_local_changes()

    try:
        pushed = asyncio.run(run_push())
    except SyncError as e:
        console.print(f"[red]Push failed: {e}[/red]")
        raise typer.Exit(1) from e

    if pushed:
        console.print(f"[green]✓ Pushed {pushed} notes to Goldfish Notes[/green]")
    else:
        console.print("[dim]No local changes to push[/dim]")


@notes_app.command("list")
def notes_list(ctx: typer.Context) -> None:
    """List the notes managed in the notes folder."""
    cfg = ctx.obj["config"]

    async def run_list():
        async with RemoteNotesClient(cfg.remote) as client:
            engine = _build_engine(cfg, client)
            await engine.initialize()
            return sorted(engine.index, key=lambda artifact: artifact.path.name)

    try:
        artifacts = asyncio.run(run_list())
    except SyncError as e:
        console.print(f"[red]Failed to list notes: {e}[/red]")
        raise typer.Exit(1) from e

    if not artifacts:
        console.print("[yellow]No synced notes found[/yellow]")
        return

    table = Table(title="Goldfish Notes")
    table.add_column("File", style="cyan")
    table.add_column("UUID", style="dim")
    table.add_column("Modified", style="green")
    for artifact in artifacts:
        table.add_row(artifact.path.name, artifact.identity, artifact.last_modified.strftime("%Y-%m-%d %H:%M"))
    console.print(table)
    console.print(f"\n[dim]Total: {len(artifacts)} notes[/dim]")


@notes_app.command("search")
def notes_search(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Text to look for in note metadata and content"),
    embed: bool = typer.Option(False, "--embed", "-e", help="Print embed links instead of a table"),
) -> None:
    """Search the managed notes."""
    cfg = ctx.obj["config"]

    async def run_search():
        async with RemoteNotesClient(cfg.remote) as client:
            engine = _build_engine(cfg, client)
            return await engine.search(text)

    matches = asyncio.run(run_search())
    if not matches:
        console.print(f"[yellow]No notes contain '{text}'[/yellow]")
        return

    if embed:
        console.print(NotesSyncEngine.embed_links(matches), markup=False, end="")
        return

    table = Table(title=f"Notes matching '{text}'")
    table.add_column("File", style="cyan")
    table.add_column("Title", style="green")
    for artifact in matches:
        table.add_row(artifact.path.name, artifact.frontmatter.get("title", ""))
    console.print(table)


@notes_app.command("new")
def notes_new(ctx: typer.Context) -> None:
    """Create an empty note in Goldfish Notes and in the notes folder."""
    cfg = ctx.obj["config"]

    async def run_new():
        async with RemoteNotesClient(cfg.remote) as client:
            engine = _build_engine(cfg, client)
            await engine.initialize()
            return await engine.create_empty_note()

    try:
        path = asyncio.run(run_new())
    except SyncError as e:
        console.print(f"[red]Failed to create note: {e}[/red]")
        raise typer.Exit(1) from e

    if path is None:
        console.print("[red]Note was created remotely but could not be written locally[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓ Created note:[/green] {path}")


@notes_app.command("status")
def notes_status(ctx: typer.Context) -> None:
    """Show notes synchronization status."""
    cfg = ctx.obj["config"]

    async def run_status():
        cfg.ensure_data_dir()
        state_db = SyncStateDB(cfg.state_db_path)
        await state_db.initialize()
        return await state_db.last_success(), await state_db.recent_runs(limit=5)

    last_pull, runs = asyncio.run(run_status())

    table = Table(title="Notes Sync Status")
    table.add_column("Property", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_row("Notes Folder", str(cfg.notes.notes_folder))
    table.add_row("Sync Mode", cfg.notes.sync_mode.value)
    table.add_row("Last Successful Sync", last_pull.astimezone().strftime("%Y-%m-%d %H:%M") if last_pull else "Never")
    table.add_row("Database", str(cfg.state_db_path))
    console.print(table)

    if not runs:
        console.print("\n[yellow]No notes have been synced yet[/yellow]")
        console.print("[dim]Run 'goldfishsync notes sync' to start syncing[/dim]")
        return

    history = Table(title="Recent Passes")
    history.add_column("Kind", style="cyan")
    history.add_column("Finished", style="dim")
    history.add_column("Status")
    history.add_column("Created", justify="right")
    history.add_column("Updated", justify="right")
    history.add_column("Failed", justify="right")
    for run in runs:
        status_style = "green" if run["status"] == "success" else "red"
        history.add_row(
            run["kind"],
            run["finished_at"],
            f"[{status_style}]{run['status']}[/{status_style}]",
            str(run["stats"].get(NoteAction.CREATED.value, "")),
            str(run["stats"].get(NoteAction.UPDATED.value, "")),
            str(run["stats"].get(NoteAction.FAILED.value, "")),
        )
    console.print(history)


@notes_app.command("watch")
def notes_watch(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None,
        "--interval",
        "-i",
        min=1,
        help="Minutes between passes; defaults to the configured interval",
    ),
) -> None:
    """Sync now and then periodically until interrupted."""
    cfg = ctx.obj["config"]

    async def run_watch() -> None:
        async with RemoteNotesClient(cfg.remote) as client:
            engine = _build_engine(cfg, client)
            await engine.initialize()
            service = SyncService(engine, SessionEvents())
            service.start_auto_sync(interval, run_now=True)
            console.print(
                f"[cyan]Watching Goldfish Notes every "
                f"{interval or cfg.notes.sync_interval_minutes} minutes (Ctrl+C to stop)[/cyan]"
            )
            try:
                await service.run_event_loop()
            finally:
                await service.shutdown()

    try:
        asyncio.run(run_watch())
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching[/dim]")
    except SyncError as e:
        console.print(f"[red]Watch failed: {e}[/red]")
        logging.getLogger(__name__).exception("Watch loop failed")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
