"""Backups CLI commands for tmskit.

Inspect, prune and restore snapshots under ``.tmskit/backups``.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.prompt import Confirm
from rich.table import Table

from cli.tmskit.output import console, print_error, print_info, print_snapshots, print_success, print_warning
from local_storage.snapshots import format_size
from orchestrator.errors import TmsError, format_error

backups_app = typer.Typer(
    name="backups",
    help="Manage snapshots taken before releases and migrations.",
)


def get_manager(root: Optional[Path]):
    """Get the snapshot manager for a project."""
    from local_storage.snapshots import SnapshotManager

    return SnapshotManager(root or Path.cwd())


@backups_app.command("list")
def list_backups(
    root: Optional[Path] = typer.Option(None, "--root", help="Project root (default: current directory)"),
) -> None:
    """List snapshots, newest first.

    Examples:
        tmskit backups list
    """
    manager = get_manager(root)
    snapshots = manager.list_snapshots()

    if not snapshots:
        print_info("No snapshots found")
        return

    print_snapshots(manager, snapshots)


@backups_app.command("show")
def show_backup(
    snapshot_id: str = typer.Argument(..., help="Snapshot ID"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root (default: current directory)"),
) -> None:
    """Show the files captured by a snapshot."""
    manager = get_manager(root)
    try:
        manifest = manager.get_snapshot(snapshot_id)
    except TmsError as e:
        print_error(format_error(e))
        raise typer.Exit(1)

    console.print(f"\n[bold cyan]{manifest.id}[/bold cyan]  v{manifest.version}  [dim]{manifest.reason}[/dim]")
    table = Table(show_header=True, header_style="bold")
    table.add_column("File")
    table.add_column("Size", justify="right")
    for record in manifest.files:
        table.add_row(record.relative_path, format_size(record.size))
    console.print(table)


@backups_app.command("prune")
def prune_backups(
    keep: int = typer.Option(10, "--keep", "-k", help="Number of newest snapshots to keep"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root (default: current directory)"),
) -> None:
    """Delete all but the newest snapshots.

    Examples:
        tmskit backups prune --keep 5
    """
    if keep < 0:
        print_error("--keep must be zero or more")
        raise typer.Exit(2)

    manager = get_manager(root)
    deleted = manager.prune_snapshots(keep=keep)
    if deleted:
        print_success(f"Deleted {deleted} snapshot(s)")
    else:
        print_info("Nothing to prune")


@backups_app.command("restore")
def restore_backup(
    snapshot_id: str = typer.Argument(..., help="Snapshot ID to restore"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    root: Optional[Path] = typer.Option(None, "--root", help="Project root (default: current directory)"),
) -> None:
    """Restore every file captured by a snapshot.

    Examples:
        tmskit backups restore 2026-01-15_143022
    """
    manager = get_manager(root)
    try:
        manifest = manager.get_snapshot(snapshot_id)
    except TmsError as e:
        print_error(format_error(e))
        raise typer.Exit(1)

    if not yes and not Confirm.ask(f"Overwrite {len(manifest.files)} file(s) from {manifest.id}?", default=False):
        print_warning("Restore cancelled")
        raise typer.Exit(1)

    try:
        restored = manager.restore_snapshot(snapshot_id)
    except TmsError as e:
        print_error(format_error(e))
        raise typer.Exit(1)

    print_success(f"Restored {restored} file(s) from {manifest.id}")
