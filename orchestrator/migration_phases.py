"""Template migration as a saga.

Preflight -> Snapshot -> LocalMutation -> Finalize

Only files the classifier marks safe (or that ``force`` / ``install_missing``
allow) are written. Every file that existed before the run is captured
first; files the run creates from scratch are recorded and removed again on
rollback.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from local_storage.snapshots import SnapshotManager
from scaffolding.classifier import classify_project, select_eligible
from scaffolding.templates import baseline_path, install_baseline, resolve_scope_files
from schemas.transaction import ArtifactKind, Phase, TransactionContext

from .errors import CompensationError, PreconditionError, SnapshotError
from .saga import (
    PhaseOrchestrator,
    PhaseResult,
    PhaseSpec,
    SagaResult,
    execution_failed,
    ok,
    precondition_failed,
    snapshot_failed,
    step_failed,
)

logger = logging.getLogger(__name__)


@dataclass
class MigrationEnv:
    snapshots: SnapshotManager
    templates_dir: Path
    scope: str = "standard"
    custom_files: list[str] = field(default_factory=list)
    is_project: bool = True
    install_missing: bool = False
    keep_backups: int = 10


def preflight(ctx: TransactionContext, env: MigrationEnv) -> PhaseResult:
    """Classify the scope's files and pick the ones the run may write."""
    if not env.is_project:
        return precondition_failed(ctx, PreconditionError(
            "This directory is not a tmskit project",
            context={"root": ctx.project_root, "fix": "create tmskit.toml or run from the project root"},
        ))

    try:
        files = resolve_scope_files(env.scope, env.custom_files)
    except ValueError as e:
        return precondition_failed(ctx, PreconditionError(str(e)))

    migrations = classify_project(Path(ctx.project_root), files, env.templates_dir, ctx.target_version or "")
    for migration in migrations:
        logger.debug("%s: %s (%s)", migration.path, migration.status.value, migration.reason or "up to date")

    eligible = []
    for migration in select_eligible(migrations, force=ctx.force, include_missing=env.install_missing):
        if not baseline_path(migration.path, env.templates_dir).is_file():
            logger.warning("No baseline for %s, skipping", migration.path)
            ctx = ctx.with_action(f"skip {migration.path} (no baseline)")
            continue
        eligible.append(migration)

    ctx = ctx.update(eligible_files=tuple(m.path for m in eligible))
    logger.info("%d of %d file(s) eligible for upgrade", len(eligible), len(migrations))
    return ok(ctx)


def snapshot(ctx: TransactionContext, env: MigrationEnv) -> PhaseResult:
    root = Path(ctx.project_root)
    files = [root / relative for relative in ctx.eligible_files]
    existing = [path for path in files if path.is_file()]

    if not ctx.eligible_files:
        return ok(ctx)
    if ctx.is_dry_run:
        return ok(ctx.with_action(f"snapshot {len(existing)} file(s) to {env.snapshots.backups_dir}"))

    result = env.snapshots.create_snapshot(
        existing,
        reason=f"Migration to v{ctx.target_version}",
        target_version=ctx.target_version or "",
    )
    if not result:
        return snapshot_failed(ctx, SnapshotError(
            "Could not create snapshot",
            context={"errors": "; ".join(result.errors)},
        ))

    ctx = ctx.update(backup_id=result.snapshot_id)
    return ok(ctx.with_action(f"snapshot {result.files_backed_up} file(s) as {result.snapshot_id}"))


def local_mutation(ctx: TransactionContext, env: MigrationEnv) -> PhaseResult:
    """Write each eligible file from its baseline, stamped with the target version."""
    root = Path(ctx.project_root)
    target = ctx.target_version or ""

    for relative in ctx.eligible_files:
        existed = (root / relative).is_file()
        verb = "upgrade" if existed else "install"
        if not ctx.is_dry_run:
            # Recorded up front so an interrupted write is still removed
            if not existed:
                ctx = ctx.with_artifact(ArtifactKind.CREATED_FILE, relative)
            try:
                install_baseline(relative, root, target, env.templates_dir)
            except OSError as e:
                return execution_failed(ctx, Phase.LOCAL_MUTATION, f"Cannot write {relative}: {e}", file=relative)
            except (Exception, KeyboardInterrupt) as e:
                return step_failed(ctx, Phase.LOCAL_MUTATION, e, file=relative)
        ctx = ctx.with_action(f"{verb} {relative} to v{target}")

    return ok(ctx)


def compensate_local_mutation(ctx: TransactionContext, env: MigrationEnv) -> list[CompensationError]:
    """Remove files that did not exist before the run."""
    errors = []
    root = Path(ctx.project_root)
    for relative in ctx.artifacts_of(ArtifactKind.CREATED_FILE):
        try:
            (root / relative).unlink(missing_ok=True)
            logger.info("Rollback: removed %s", relative)
        except OSError as e:
            errors.append(CompensationError(f"Remove {relative}", str(e), recovery_hint=f"rm {relative}"))
    return errors


def finalize(ctx: TransactionContext, env: MigrationEnv) -> PhaseResult:
    if ctx.is_dry_run:
        return ok(ctx.with_action(f"prune snapshots (keep {env.keep_backups})"))
    try:
        pruned = env.snapshots.prune_snapshots(keep=max(1, env.keep_backups))
    except OSError as e:
        logger.warning("Could not prune snapshots: %s", e)
        return ok(ctx)
    return ok(ctx.with_action(f"prune snapshots (removed {pruned})"))


MIGRATION_PHASES = [
    PhaseSpec(Phase.PREFLIGHT, preflight),
    PhaseSpec(Phase.SNAPSHOT, snapshot),
    PhaseSpec(Phase.LOCAL_MUTATION, local_mutation, compensate_local_mutation),
    PhaseSpec(Phase.FINALIZE, finalize),
]


def run_migration(
    project_root: Path,
    target_version: str,
    templates_dir: Path,
    scope: str = "standard",
    custom_files: list[str] | None = None,
    is_project: bool = True,
    force: bool = False,
    install_missing: bool = False,
    dry_run: bool = False,
    keep_backups: int = 10,
) -> SagaResult:
    """Upgrade a project's managed files to ``target_version``."""
    root = Path(project_root).resolve()
    snapshots = SnapshotManager(root)
    env = MigrationEnv(
        snapshots=snapshots,
        templates_dir=templates_dir,
        scope=scope,
        custom_files=list(custom_files or []),
        is_project=is_project,
        install_missing=install_missing,
        keep_backups=keep_backups,
    )
    context = TransactionContext(
        project_root=str(root),
        target_version=target_version,
        is_dry_run=dry_run,
        force=force,
    )
    return PhaseOrchestrator(MIGRATION_PHASES, env, snapshots).run(context)
