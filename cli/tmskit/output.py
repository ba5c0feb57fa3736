"""Rich console output utilities for the tmskit CLI."""

import logging
from typing import Any, Iterable

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from local_storage.snapshots import SnapshotManager, format_size
from orchestrator.errors import format_error
from orchestrator.saga import FailureReport, RollbackOutcome, SagaResult
from schemas.migration import FileMigration, MigrationStatus
from schemas.snapshot import SnapshotManifest

console = Console()
error_console = Console(stderr=True)


STATUS_STYLES = {
    MigrationStatus.LATEST: ("green", "✓"),
    MigrationStatus.OUTDATED: ("yellow", "↑"),
    MigrationStatus.CUSTOMIZED: ("magenta", "✎"),
    MigrationStatus.MISSING: ("dim", "○"),
}

OUTCOME_LABELS = {
    RollbackOutcome.NOT_NEEDED: "[green]nothing was changed[/green]",
    RollbackOutcome.RESTORED: "[green]restored[/green]",
    RollbackOutcome.PARTIALLY_RESTORED: "[yellow]partially restored[/yellow]",
    RollbackOutcome.MANUAL_INTERVENTION_REQUIRED: "[red]manual intervention required[/red]",
}


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Route log records through rich on stderr."""
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_path=False, markup=False)],
        force=True,
    )


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]![/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]→[/blue] {message}")


def print_config(sections: dict[str, dict[str, Any]]) -> None:
    """Print configuration sections as key = value lines."""
    for name, values in sections.items():
        console.print(f"\n[bold]\\[{name}][/bold]")
        for key, value in values.items():
            # Truncate long values
            value_str = str(value)
            if len(value_str) > 70:
                value_str = value_str[:67] + "..."
            console.print(f"  [cyan]{key}[/cyan] = {value_str}")


def print_migration_report(migrations: list[FileMigration]) -> None:
    """Print the per-file classification table."""
    table = Table(title="Migration status", show_header=True, header_style="bold")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Version")
    table.add_column("Notes", style="dim")

    for migration in migrations:
        style, icon = STATUS_STYLES[migration.status]
        current = migration.current_version or "-"
        version = current if migration.status == MigrationStatus.LATEST else f"{current} → {migration.target_version}"
        table.add_row(
            migration.path,
            f"[{style}]{icon} {migration.status.value}[/{style}]",
            version,
            migration.reason or "",
        )

    console.print(table)


def print_snapshots(manager: SnapshotManager, snapshots: Iterable[SnapshotManifest]) -> None:
    table = Table(title=f"Snapshots in {manager.backups_dir}", show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Version")
    table.add_column("Files", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Reason", style="dim")

    for manifest in snapshots:
        table.add_row(
            manifest.id,
            f"v{manifest.version}" if manifest.version else "-",
            str(len(manifest.files)),
            format_size(manifest.total_size),
            manifest.reason,
        )

    console.print(table)


def print_planned_actions(actions: Iterable[str], dry_run: bool) -> None:
    title = "Would run" if dry_run else "Performed"
    lines = [f"  • {action}" for action in actions]
    if not lines:
        lines = ["  (nothing to do)"]
    console.print(Panel("\n".join(lines), title=f"[bold]{title}[/bold]", border_style="cyan" if dry_run else "green"))


def print_failure_report(report: FailureReport) -> None:
    """Print the single structured failure panel for a failed run."""
    lines = [
        f"[bold]Failed phase:[/bold] {report.failed_phase}",
        f"[bold]Error:[/bold] {format_error(report.error)}",
        f"[bold]Outcome:[/bold] {OUTCOME_LABELS[report.outcome]}",
    ]
    if report.files_restored:
        lines.append(f"[bold]Files restored:[/bold] {report.files_restored}")

    if report.compensation_errors:
        lines.append("")
        lines.append(f"[bold red]Rollback errors ({len(report.compensation_errors)}):[/bold red]")
        lines.extend(f"  • {error}" for error in report.compensation_errors)

    if report.irrecoverable:
        lines.append("")
        lines.append(f"[bold yellow]⚠ {report.irrecoverable.message}[/bold yellow]")

    if report.recovery_steps:
        lines.append("")
        lines.append("[bold]Manual recovery:[/bold]")
        lines.extend(f"  {step}" for step in report.recovery_steps)

    border = "yellow" if report.outcome == RollbackOutcome.NOT_NEEDED else "red"
    error_console.print(Panel("\n".join(lines), title="[bold]Run failed[/bold]", border_style=border))


def print_saga_result(result: SagaResult, dry_run: bool) -> None:
    if result.failure:
        print_failure_report(result.failure)
        return
    print_planned_actions(result.planned_actions, dry_run)
