"""
Error taxonomy for the launch orchestrator.

Pre-flight errors are raised before any external call. Execution errors are
scoped to the module or grant that produced them. Accounting errors are
always raised before any state-mutating call.
"""

from .preflight import (
    PreflightError,
    ConfigurationError,
    InvalidAmountError,
    DuplicateModuleError,
    UnknownDependencyError,
    CyclicDependencyError,
)
from .execution import (
    ExecutionError,
    ChainError,
    DeploymentError,
    ConfirmationTimeoutError,
    UnconfirmedTransactionError,
    WiringError,
    NotFoundError,
    PersistenceError,
    CheckpointConflictError,
    StateTransitionError,
)
from .accounting import (
    AccountingError,
    OverAllocationError,
    InsufficientBalanceError,
    ArityMismatchError,
    DuplicateBeneficiaryError,
    FundedAmountMismatchError,
)
from .recovery import (
    RecoverableError,
    GracefulDegradationError,
)

__all__ = [
    # Pre-flight
    "PreflightError",
    "ConfigurationError",
    "InvalidAmountError",
    "DuplicateModuleError",
    "UnknownDependencyError",
    "CyclicDependencyError",
    # Execution
    "ExecutionError",
    "ChainError",
    "DeploymentError",
    "ConfirmationTimeoutError",
    "UnconfirmedTransactionError",
    "WiringError",
    "NotFoundError",
    "PersistenceError",
    "CheckpointConflictError",
    "StateTransitionError",
    # Accounting
    "AccountingError",
    "OverAllocationError",
    "InsufficientBalanceError",
    "ArityMismatchError",
    "DuplicateBeneficiaryError",
    "FundedAmountMismatchError",
    # Recovery categories
    "RecoverableError",
    "GracefulDegradationError",
]
