"""tmskit CLI.

Main command-line interface for releases and template migrations.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.prompt import Confirm

from cli.commands.backups import backups_app
from cli.tmskit.output import (
    console,
    print_config,
    print_error,
    print_info,
    print_migration_report,
    print_saga_result,
    print_success,
    print_warning,
    setup_logging,
)
from orchestrator.errors import TmsError, format_error

app = typer.Typer(
    name="tmskit",
    help="tmskit - transactional releases and documentation template upgrades",
    no_args_is_help=True,
)

# Config sub-app
config_app = typer.Typer(
    name="config",
    help="Inspect configuration settings.",
)
app.add_typer(config_app, name="config")
app.add_typer(backups_app, name="backups")

ROOT_OPTION = typer.Option(
    None,
    "--root",
    help="Project root (default: current directory)",
)

# Global flags, set by the callback before any command runs
state = {"verbose": False}


def resolve_root(root: Optional[Path]) -> Path:
    project_root = (root or Path.cwd()).resolve()
    if not project_root.is_dir():
        print_error(f"Project root does not exist: {project_root}")
        raise typer.Exit(2)
    return project_root


def load_project_config(project_root: Path):
    """Load tmskit.toml for the project, exiting with a message on error."""
    from settings.config import reload_config

    try:
        config = reload_config(project_root)
    except TmsError as e:
        print_error(format_error(e))
        raise typer.Exit(e.exit_code)
    # The callback only saw the current directory; apply the project's level
    setup_logging(config.logging.level, verbose=state["verbose"])
    return config


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Show debug logging"),
) -> None:
    """Configure logging before any command runs."""
    from settings.config import get_config

    state["verbose"] = verbose
    try:
        level = get_config().logging.level
    except TmsError:
        level = "INFO"
    setup_logging(level, verbose=verbose)


@app.command()
def release(
    bump: str = typer.Argument(
        "patch",
        help="Version bump: patch|minor|major|stable",
    ),
    version: Optional[str] = typer.Option(
        None,
        "--version",
        "-v",
        help="Explicit target version (overrides the bump)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show what would be done without executing",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Allow a non-increasing version and a missing CHANGELOG entry",
    ),
    root: Optional[Path] = ROOT_OPTION,
) -> None:
    """Release a new version.

    Bumps the version, syncs documentation, commits, tags, pushes,
    publishes and merges back. Any failure rolls the project back.

    Examples:
        tmskit release patch --dry-run
        tmskit release minor
        tmskit release --version 3.0.0-beta.1
    """
    from orchestrator.release_phases import run_release
    from release.versioning import BumpKind
    from tools.shell_tool import ShellTool

    valid = [kind.value for kind in BumpKind]
    if not version and bump not in valid:
        print_error(f"Invalid bump type: {bump}")
        print_info(f"Available: {', '.join(valid)}")
        raise typer.Exit(2)

    project_root = resolve_root(root)
    config = load_project_config(project_root)

    runner = ShellTool(working_dir=project_root, timeout=config.release.command_timeout)

    if dry_run:
        print_warning("Dry run: no changes will be made")

    try:
        result = run_release(
            project_root,
            runner,
            config.release,
            bump=bump,
            explicit_version=version,
            dry_run=dry_run,
            force=force,
            keep_backups=config.backups.keep,
        )
    except KeyboardInterrupt:
        print_warning("Release interrupted by user")
        raise typer.Exit(130)

    print_saga_result(result, dry_run)

    if result.interrupted:
        raise typer.Exit(130)
    if not result.success:
        raise typer.Exit(1)

    ctx = result.context
    if dry_run:
        print_success(f"Dry run complete: v{ctx.current_version} → v{ctx.target_version}")
    else:
        print_success(f"Released v{ctx.target_version}")


@app.command()
def migrate(
    apply: bool = typer.Option(
        False,
        "--apply",
        "-a",
        help="Apply automatic upgrades (creates a snapshot first)",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Also overwrite customized files (requires --apply)",
    ),
    install_missing: bool = typer.Option(
        False,
        "--install-missing",
        help="Install missing files from their baselines (requires --apply)",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-d",
        help="Preview changes without applying them",
    ),
    rollback: bool = typer.Option(
        False,
        "--rollback",
        "-r",
        help="Restore files from a previous snapshot",
    ),
    snapshot_id: Optional[str] = typer.Option(
        None,
        "--id",
        help="Snapshot to restore with --rollback (default: newest)",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Skip the rollback confirmation",
    ),
    root: Optional[Path] = ROOT_OPTION,
) -> None:
    """Upgrade managed documentation files to the current template version.

    Without --apply only the status report is shown.

    Examples:
        tmskit migrate
        tmskit migrate --apply
        tmskit migrate --apply --force
        tmskit migrate --rollback
    """
    from cli.tmskit import __version__
    from orchestrator.migration_phases import run_migration
    from scaffolding.classifier import classify_project, group_by_status
    from scaffolding.templates import get_templates_dir, resolve_scope_files
    from schemas.migration import MigrationStatus
    from settings.config import CONFIG_FILE_NAME

    project_root = resolve_root(root)

    if rollback:
        _rollback(project_root, snapshot_id, yes)
        return

    if (force or install_missing) and not apply:
        print_error("--force and --install-missing require --apply")
        raise typer.Exit(2)

    config = load_project_config(project_root)
    is_project = (project_root / CONFIG_FILE_NAME).is_file()
    if not is_project:
        print_error(f"No {CONFIG_FILE_NAME} found: this directory is not a tmskit project")
        raise typer.Exit(1)

    templates_dir = get_templates_dir(config.project.templates_dir)
    try:
        files = resolve_scope_files(config.project.scope, config.project.custom_files)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    migrations = classify_project(project_root, files, templates_dir, __version__)
    print_migration_report(migrations)

    grouped = group_by_status(migrations)
    outdated = len(grouped[MigrationStatus.OUTDATED])
    customized = len(grouped[MigrationStatus.CUSTOMIZED])

    if not apply and not dry_run:
        if outdated:
            print_info(f"{outdated} file(s) can be upgraded automatically. Run: tmskit migrate --apply")
        if customized:
            print_info(f"{customized} customized file(s) need review (or --apply --force)")
        if not outdated and not customized:
            print_success(f"All files are on v{__version__}")
        return

    result = run_migration(
        project_root,
        __version__,
        templates_dir,
        scope=config.project.scope,
        custom_files=config.project.custom_files,
        is_project=is_project,
        force=force,
        install_missing=install_missing,
        dry_run=dry_run,
        keep_backups=config.backups.keep,
    )
    print_saga_result(result, dry_run)

    if result.interrupted:
        raise typer.Exit(130)
    if not result.success:
        raise typer.Exit(1)

    count = len(result.context.eligible_files)
    if dry_run:
        print_success(f"Dry run complete: {count} file(s) would be upgraded")
    else:
        print_success(f"Upgraded {count} file(s) to v{__version__}")
        if result.context.backup_id:
            print_info("To roll back, run: tmskit migrate --rollback")


def _rollback(project_root: Path, snapshot_id: Optional[str], yes: bool) -> None:
    from local_storage.snapshots import SnapshotManager

    manager = SnapshotManager(project_root)
    snapshots = manager.list_snapshots()
    if not snapshots:
        print_error("No snapshots found")
        raise typer.Exit(1)

    target = snapshot_id or snapshots[0].id
    try:
        manifest = manager.get_snapshot(target)
    except TmsError as e:
        print_error(format_error(e))
        raise typer.Exit(1)

    print_info(f"Snapshot {manifest.id}: {len(manifest.files)} file(s), {manifest.reason}")
    if not yes and not Confirm.ask("Restore these files? Current contents will be overwritten", default=False):
        print_warning("Rollback cancelled")
        raise typer.Exit(1)

    try:
        restored = manager.restore_snapshot(manifest.id)
    except TmsError as e:
        print_error(format_error(e))
        raise typer.Exit(1)
    print_success(f"Restored {restored} file(s) from {manifest.id}")


@config_app.command("show")
def config_show(
    section: Optional[str] = typer.Argument(
        None,
        help="Config section to show (project, release, backups, logging)",
    ),
    root: Optional[Path] = ROOT_OPTION,
) -> None:
    """Show current configuration.

    Examples:
        tmskit config show
        tmskit config show release
    """
    from settings.config import find_config_file

    project_root = resolve_root(root)
    config_path = find_config_file(project_root)
    if config_path:
        print_info(f"Config file: {config_path}")
    else:
        print_warning("No tmskit.toml found (using defaults)")

    sections = load_project_config(project_root).to_dict()

    if section:
        section_lower = section.lower()
        if section_lower not in sections:
            print_error(f"Unknown section: {section}")
            print_info(f"Available: {', '.join(sections)}")
            raise typer.Exit(2)
        sections = {section_lower: sections[section_lower]}

    print_config(sections)


@app.command("version")
def show_version() -> None:
    """Show tmskit version."""
    from cli.tmskit import __version__

    console.print(f"tmskit v{__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
