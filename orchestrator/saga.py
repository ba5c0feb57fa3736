"""Phase orchestrator with compensating rollback.

A run is an ordered list of phases. Each phase receives the current
``TransactionContext`` and returns a ``PhaseSuccess`` with the updated
context or a ``PhaseFailure`` naming what went wrong. On an execution
failure the orchestrator restores the snapshot taken for the run and then
runs the compensation of every phase that ran, newest first. Compensation
steps are independent: one failing never stops the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from schemas.transaction import Phase, TransactionContext

from .errors import (
    CompensationError,
    IrrecoverableStateWarning,
    PhaseExecutionError,
    SnapshotError,
    TmsError,
)
from .state_machine import StateMachine

if TYPE_CHECKING:
    from local_storage.snapshots import SnapshotManager

logger = logging.getLogger(__name__)


class FailureKind(str, Enum):
    """Why a phase failed, which decides whether anything is rolled back."""

    PRECONDITION = "precondition"
    SNAPSHOT = "snapshot"
    EXECUTION = "execution"


@dataclass(frozen=True)
class PhaseSuccess:
    context: TransactionContext


@dataclass(frozen=True)
class PhaseFailure:
    context: TransactionContext
    kind: FailureKind
    error: TmsError
    interrupted: bool = False


PhaseResult = PhaseSuccess | PhaseFailure

PhaseFn = Callable[[TransactionContext, Any], PhaseResult]
CompensateFn = Callable[[TransactionContext, Any], list[CompensationError] | None]


@dataclass(frozen=True)
class PhaseSpec:
    """A phase function and its optional compensation."""

    phase: Phase
    run: PhaseFn
    compensate: CompensateFn | None = None


class RollbackOutcome(str, Enum):
    NOT_NEEDED = "not_needed"
    RESTORED = "restored"
    PARTIALLY_RESTORED = "partially_restored"
    MANUAL_INTERVENTION_REQUIRED = "manual_intervention_required"


class SagaStatus(str, Enum):
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"


@dataclass
class FailureReport:
    """Single aggregate description of a failed run."""

    failed_phase: str
    error: TmsError
    outcome: RollbackOutcome
    compensation_errors: list[CompensationError] = field(default_factory=list)
    irrecoverable: IrrecoverableStateWarning | None = None
    files_restored: int = 0
    recovery_steps: list[str] = field(default_factory=list)


@dataclass
class SagaResult:
    status: SagaStatus
    context: TransactionContext
    failure: FailureReport | None = None
    history: list[Phase] = field(default_factory=list)
    interrupted: bool = False

    @property
    def success(self) -> bool:
        return self.status == SagaStatus.COMPLETED

    @property
    def planned_actions(self) -> list[str]:
        return list(self.context.planned_actions)


def ok(context: TransactionContext) -> PhaseSuccess:
    return PhaseSuccess(context)


def precondition_failed(context: TransactionContext, error: TmsError) -> PhaseFailure:
    return PhaseFailure(context, FailureKind.PRECONDITION, error)


def snapshot_failed(context: TransactionContext, error: TmsError) -> PhaseFailure:
    return PhaseFailure(context, FailureKind.SNAPSHOT, error)


def execution_failed(context: TransactionContext, phase: Phase, message: str, **details: Any) -> PhaseFailure:
    return PhaseFailure(
        context,
        FailureKind.EXECUTION,
        PhaseExecutionError(phase.title, message, context=details or None),
    )


def step_failed(context: TransactionContext, phase: Phase, error: BaseException, **details: Any) -> PhaseFailure:
    """Failure for a step that raised, keeping what ``context`` already recorded.

    Phases call this from their step loops so artifacts created before the
    crash stay visible to compensation. A ``KeyboardInterrupt`` is reported
    as an interrupted run rather than re-raised.
    """
    if isinstance(error, KeyboardInterrupt):
        return replace(execution_failed(context, phase, "Interrupted by user", **details), interrupted=True)
    if isinstance(error, TmsError):
        return execution_failed(context, phase, error.message, **details)
    logger.debug("Unexpected error in %s", phase.title, exc_info=error)
    return execution_failed(context, phase, f"Unexpected error: {error}", **details)


class PhaseOrchestrator:
    """Runs a phase set as a saga.

    Args:
        phases: Phases in execution order
        env: Collaborators handed to every phase (runner, config, ...)
        snapshots: Snapshot manager used to restore files on rollback
    """

    def __init__(self, phases: list[PhaseSpec], env: Any, snapshots: SnapshotManager) -> None:
        self.phases = phases
        self.env = env
        self.snapshots = snapshots
        StateMachine().validate_sequence([spec.phase for spec in phases])

    def run(self, context: TransactionContext) -> SagaResult:
        machine = StateMachine()
        executed: list[PhaseSpec] = []
        ctx = context
        interrupted = False

        for index, spec in enumerate(self.phases):
            machine.transition(spec.phase, ctx)
            ctx = ctx.update(phase_index=index)
            logger.info("Phase %d/%d: %s%s", index + 1, len(self.phases), spec.phase.title,
                        " (dry run)" if ctx.is_dry_run else "")

            try:
                result = spec.run(ctx, self.env)
            except KeyboardInterrupt:
                interrupted = True
                result = execution_failed(ctx, spec.phase, "Interrupted by user")
            except Exception as e:
                logger.debug("Unexpected error in %s", spec.phase.title, exc_info=True)
                result = execution_failed(ctx, spec.phase, f"Unexpected error: {e}")

            executed.append(spec)

            if isinstance(result, PhaseSuccess):
                ctx = result.context
                continue

            saga_result = self._handle_failure(machine, spec, result, executed)
            saga_result.interrupted = interrupted or result.interrupted
            return saga_result

        machine.transition(Phase.COMPLETED, ctx)
        logger.info("Run completed")
        return SagaResult(status=SagaStatus.COMPLETED, context=ctx, history=machine.visited)

    def _handle_failure(
        self,
        machine: StateMachine,
        spec: PhaseSpec,
        failure: PhaseFailure,
        executed: list[PhaseSpec],
    ) -> SagaResult:
        ctx = failure.context
        phase_title = spec.phase.title
        logger.error("%s failed: %s", phase_title, failure.error.message)

        if failure.kind in (FailureKind.PRECONDITION, FailureKind.SNAPSHOT):
            report = FailureReport(
                failed_phase=phase_title,
                error=failure.error,
                outcome=RollbackOutcome.NOT_NEEDED,
            )
            return SagaResult(
                status=SagaStatus.ABORTED,
                context=ctx,
                failure=report,
                history=machine.visited,
            )

        machine.transition(Phase.ROLLED_BACK, ctx)
        logger.warning("Rolling back")

        compensation_errors: list[CompensationError] = []
        files_restored = 0

        if ctx.backup_id:
            try:
                files_restored = self.snapshots.restore_snapshot(ctx.backup_id)
                logger.info("Restored %d file(s) from snapshot %s", files_restored, ctx.backup_id)
            except SnapshotError as e:
                logger.warning("Snapshot restore failed: %s", e.message)
                compensation_errors.append(
                    CompensationError(
                        "Restore snapshot",
                        e.message,
                        recovery_hint=f"tmskit backups restore {ctx.backup_id}",
                    )
                )

        for executed_spec in reversed(executed):
            if executed_spec.compensate is None:
                continue
            try:
                errors = executed_spec.compensate(ctx, self.env) or []
            except Exception as e:
                logger.debug("Unexpected error compensating %s", executed_spec.phase.title, exc_info=True)
                errors = [CompensationError(executed_spec.phase.title, f"Unexpected error: {e}")]
            for error in errors:
                logger.warning("Compensation failed: %s", error)
            compensation_errors.extend(errors)

        irreversible = ctx.irreversible_steps
        warning = IrrecoverableStateWarning(irreversible) if irreversible else None
        if warning:
            logger.warning(warning.message)

        if compensation_errors:
            outcome = RollbackOutcome.MANUAL_INTERVENTION_REQUIRED
        elif warning:
            outcome = RollbackOutcome.PARTIALLY_RESTORED
        else:
            outcome = RollbackOutcome.RESTORED

        report = FailureReport(
            failed_phase=phase_title,
            error=failure.error,
            outcome=outcome,
            compensation_errors=compensation_errors,
            irrecoverable=warning,
            files_restored=files_restored,
            recovery_steps=_recovery_steps(ctx, compensation_errors, warning),
        )
        return SagaResult(
            status=SagaStatus.ROLLED_BACK,
            context=ctx,
            failure=report,
            history=machine.visited,
        )


def _recovery_steps(
    ctx: TransactionContext,
    compensation_errors: list[CompensationError],
    warning: IrrecoverableStateWarning | None,
) -> list[str]:
    steps = [error.recovery_hint for error in compensation_errors if error.recovery_hint]
    if compensation_errors and ctx.backup_id:
        hint = f"tmskit backups restore {ctx.backup_id}"
        if hint not in steps:
            steps.append(hint)
    if compensation_errors:
        steps.append("git status  # check the working tree before retrying")
    if warning:
        steps.extend(f"Review published artifact {step} and release a follow-up if needed" for step in warning.steps)
    return steps
