"""
Error handling tests for the launch orchestrator.

Tests cover the error taxonomy and how components surface failures.
"""

import pytest

from atlas_launch.errors import (
    AccountingError,
    ArityMismatchError,
    ChainError,
    CheckpointConflictError,
    ConfigurationError,
    ConfirmationTimeoutError,
    CyclicDependencyError,
    DeploymentError,
    DuplicateModuleError,
    ExecutionError,
    GracefulDegradationError,
    InsufficientBalanceError,
    InvalidAmountError,
    OverAllocationError,
    PersistenceError,
    PreflightError,
    RecoverableError,
    StateTransitionError,
    UnknownDependencyError,
    WiringError,
)
from atlas_launch.deploy.models import ModuleRun, ModuleState


class TestErrorClassification:
    """Test error classification system."""

    def test_preflight_hierarchy(self):
        """Pre-flight errors share a base and are never recoverable."""
        for error in (
            ConfigurationError("bad config"),
            InvalidAmountError("bad amount", raw_value="x", decimals=18),
            DuplicateModuleError("dup", module="AtlasToken"),
            UnknownDependencyError("unknown", module="Vesting", dependency="AtlasToken"),
            CyclicDependencyError(["A", "B"]),
        ):
            assert isinstance(error, PreflightError)
            assert error.recoverable is False
            assert error.context == {}

    def test_invalid_amount_is_configuration_error(self):
        error = InvalidAmountError("bad", raw_value="1.001", decimals=2)
        assert isinstance(error, ConfigurationError)
        assert error.raw_value == "1.001"
        assert error.decimals == 2

    def test_cycle_message_names_modules(self):
        error = CyclicDependencyError(["A", "B"])
        assert str(error) == "Cycle detected in module graph: A -> B -> A"
        assert error.cycle == ["A", "B"]

    def test_execution_hierarchy(self):
        for error in (
            ChainError("reverted", method="mint", address="0x1"),
            DeploymentError("failed", module="Presale"),
            ConfirmationTimeoutError("timeout", handle="tx-1", timeout_seconds=120),
            WiringError("grant failed", role="MINTER_ROLE"),
            PersistenceError("disk full", operation="write"),
            StateTransitionError("illegal", current_state="recorded"),
        ):
            assert isinstance(error, ExecutionError)
            assert error.recoverable is False

    def test_checkpoint_conflict(self):
        error = CheckpointConflictError("conflict", module="AtlasToken",
                                        existing_address="0x1", new_address="0x2",
                                        target="deployed.json")
        assert isinstance(error, PersistenceError)
        assert error.operation == "put"
        assert error.target == "deployed.json"

    def test_accounting_hierarchy(self):
        over = OverAllocationError("over", total_supply_units=1000, allocated_units=1100,
                                   offending=[("lp_rewards", 700)])
        assert isinstance(over, AccountingError)
        assert over.excess_units == 100
        assert over.offending == [("lp_rewards", 700)]

        balance = InsufficientBalanceError("short", holder="0x1", required_units=10,
                                           available_units=5)
        assert balance.required_units == 10

        arity = ArityMismatchError("arity", expected=2, actual=1)
        assert (arity.expected, arity.actual) == (2, 1)

    def test_recovery_categories(self):
        recoverable = RecoverableError("rate limited", retry_count=5, max_retries=5)
        assert recoverable.recoverable is True
        assert recoverable.retry_count == 5

        degraded = GracefulDegradationError(
            "optional grant skipped",
            degraded_functionality="LP_SINK",
            fallback_strategy="skip_grant"
        )
        assert degraded.allows_degradation is True
        assert degraded.fallback_strategy == "skip_grant"


class TestStateTransitions:
    """Test module lifecycle guards."""

    def test_legal_path(self):
        run = ModuleRun("AtlasToken")
        run = run.transition(ModuleState.RESOLVING)
        run = run.transition(ModuleState.DEPLOYING)
        run = run.transition(ModuleState.RECORDED, address="0x1")
        assert run.is_terminal
        assert run.is_available
        assert run.address == "0x1"

    def test_transitions_are_immutable(self):
        pending = ModuleRun("AtlasToken")
        pending.transition(ModuleState.SKIPPED)
        assert pending.state == ModuleState.PENDING

    @pytest.mark.parametrize("start, target", [
        (ModuleState.PENDING, ModuleState.RECORDED),
        (ModuleState.RESOLVING, ModuleState.SKIPPED),
        (ModuleState.RECORDED, ModuleState.DEPLOYING),
        (ModuleState.FAILED, ModuleState.RESOLVING),
    ])
    def test_illegal_transitions(self, start, target):
        with pytest.raises(StateTransitionError) as exc_info:
            ModuleRun("AtlasToken", start).transition(target)
        assert exc_info.value.current_state == start.value
        assert exc_info.value.attempted_transition == target.value
