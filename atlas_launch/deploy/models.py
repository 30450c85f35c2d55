"""
Deployment state data models.

Module runs are immutable; every transition produces a new ModuleRun so the
report keeps an accurate picture of where each module ended up.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from ..errors import StateTransitionError


class ModuleState(str, Enum):
    """Per-module deployment lifecycle states."""
    PENDING = "pending"
    RESOLVING = "resolving"
    DEPLOYING = "deploying"
    RECORDED = "recorded"
    FAILED = "failed"
    SKIPPED = "skipped"


TERMINAL_STATES = frozenset({ModuleState.RECORDED, ModuleState.FAILED, ModuleState.SKIPPED})

ALLOWED_TRANSITIONS: dict[ModuleState, frozenset[ModuleState]] = {
    ModuleState.PENDING: frozenset({ModuleState.RESOLVING, ModuleState.SKIPPED, ModuleState.FAILED}),
    ModuleState.RESOLVING: frozenset({ModuleState.DEPLOYING, ModuleState.FAILED}),
    ModuleState.DEPLOYING: frozenset({ModuleState.RECORDED, ModuleState.FAILED}),
    ModuleState.RECORDED: frozenset(),
    ModuleState.FAILED: frozenset(),
    ModuleState.SKIPPED: frozenset(),
}


class FailureReason(str, Enum):
    """Why a module ended up FAILED."""
    DEPENDENCY_FAILED = "dependency_failed"
    DEPENDENCY_MISSING = "dependency_missing"
    INIT_ARGS = "init_args"
    DEPLOY_REVERTED = "deploy_reverted"
    CONFIRMATION_TIMEOUT = "confirmation_timeout"


@dataclass(frozen=True)
class ModuleRun:
    """Runtime state of one module within a deployment run."""

    module: str
    state: ModuleState = ModuleState.PENDING
    required: bool = True
    address: Optional[str] = None
    implementation_address: Optional[str] = None
    failure_reason: Optional[FailureReason] = None
    error: Optional[str] = None

    def transition(self, new_state: ModuleState, **changes) -> "ModuleRun":
        """Return a copy in ``new_state``; rejects illegal transitions."""
        if new_state not in ALLOWED_TRANSITIONS[self.state]:
            raise StateTransitionError(
                f"Illegal transition for {self.module}: {self.state.value} -> {new_state.value}",
                current_state=self.state.value,
                attempted_transition=new_state.value
            )
        return replace(self, state=new_state, **changes)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def is_available(self) -> bool:
        """Whether dependents may read this module's address."""
        return self.state in (ModuleState.RECORDED, ModuleState.SKIPPED)


@dataclass
class DeploymentReport:
    """Outcome of one orchestrator run."""

    runs: dict[str, ModuleRun] = field(default_factory=dict)
    cancelled: bool = False
    aborted_by: Optional[str] = None

    def state_of(self, module: str) -> ModuleState:
        return self.runs[module].state

    def modules_in(self, state: ModuleState) -> list[str]:
        return [name for name, run in self.runs.items() if run.state == state]

    @property
    def failed_modules(self) -> list[str]:
        return self.modules_in(ModuleState.FAILED)

    @property
    def required_failures(self) -> list[str]:
        return [name for name, run in self.runs.items()
                if run.state == ModuleState.FAILED and run.required]

    @property
    def succeeded(self) -> bool:
        """Every module reached RECORDED or SKIPPED."""
        return (not self.cancelled and self.aborted_by is None
                and all(run.is_available for run in self.runs.values()))

    def summary(self) -> dict[str, list[str]]:
        return {state.value: self.modules_in(state) for state in ModuleState
                if self.modules_in(state)}
