"""
Execution error classifications.

These happen after the run has started talking to the chain. They are scoped
to the affected module or grant; the orchestrator decides whether they abort
the run based on the module's required flag.
"""

from typing import Any, Optional


class ExecutionError(Exception):
    """Base class for errors raised while executing external calls."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class ChainError(ExecutionError):
    """The chain collaborator rejected or reverted a call."""

    def __init__(self, message: str, method: Optional[str] = None,
                 address: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.method = method
        self.address = address


class DeploymentError(ExecutionError):
    """A required module failed and the run was aborted."""

    def __init__(self, message: str, module: Optional[str] = None,
                 report: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.module = module
        self.report = report


class ConfirmationTimeoutError(ExecutionError):
    """A submitted transaction was not confirmed in time. Never retried."""

    def __init__(self, message: str, handle: Optional[str] = None,
                 timeout_seconds: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.handle = handle
        self.timeout_seconds = timeout_seconds


class UnconfirmedTransactionError(ExecutionError):
    """A previous run sent a transaction whose outcome is still unknown.

    Sending it again could apply it twice, so the operator must reconcile
    on chain before the run can continue.
    """

    def __init__(self, message: str, handle: Optional[str] = None,
                 name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.handle = handle
        self.name = name


class WiringError(ExecutionError):
    """A required capability grant could not be applied."""

    def __init__(self, message: str, role: Optional[str] = None,
                 grantee: Optional[str] = None, target: Optional[str] = None,
                 results: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.role = role
        self.grantee = grantee
        self.target = target
        self.results = results or []


class NotFoundError(ExecutionError):
    """A module or sink has no recorded address."""

    def __init__(self, message: str, name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name


class PersistenceError(ExecutionError):
    """Checkpoint file could not be read or written."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.target = target


class CheckpointConflictError(PersistenceError):
    """Attempt to replace a recorded address without a forced redeploy."""

    def __init__(self, message: str, module: Optional[str] = None,
                 existing_address: Optional[str] = None,
                 new_address: Optional[str] = None, **kwargs):
        super().__init__(message, operation="put", **kwargs)
        self.module = module
        self.existing_address = existing_address
        self.new_address = new_address


class StateTransitionError(ExecutionError):
    """Illegal module state transition."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_transition = attempted_transition
