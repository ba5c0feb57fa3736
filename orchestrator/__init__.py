"""Orchestrator module for tmskit.

Saga-based release and migration runs with:
- Explicit phase transitions
- Snapshot restore and compensating rollback on failure
- Aggregate failure reports
"""

from .errors import (
    CompensationError,
    ConfigError,
    IrrecoverableStateWarning,
    PhaseExecutionError,
    PreconditionError,
    SnapshotError,
    TmsError,
    VersionError,
    format_error,
)
from .state_machine import InvalidTransitionError, StateMachine, Transition
from .saga import (
    FailureKind,
    FailureReport,
    PhaseFailure,
    PhaseOrchestrator,
    PhaseSpec,
    PhaseSuccess,
    RollbackOutcome,
    SagaResult,
    SagaStatus,
)

__all__ = [
    "CompensationError",
    "ConfigError",
    "IrrecoverableStateWarning",
    "PhaseExecutionError",
    "PreconditionError",
    "SnapshotError",
    "TmsError",
    "VersionError",
    "format_error",
    "InvalidTransitionError",
    "StateMachine",
    "Transition",
    "FailureKind",
    "FailureReport",
    "PhaseFailure",
    "PhaseOrchestrator",
    "PhaseSpec",
    "PhaseSuccess",
    "RollbackOutcome",
    "SagaResult",
    "SagaStatus",
]
