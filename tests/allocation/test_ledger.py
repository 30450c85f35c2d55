"""Tests for the allocation ledger and funding strategies."""

import pytest

from atlas_launch.allocation.ledger import AllocationLedger
from atlas_launch.allocation.strategies import (
    MintPerSinkStrategy,
    MintThenTransferStrategy,
    create_strategy,
)
from atlas_launch.errors import (
    ChainError,
    ConfigurationError,
    ConfirmationTimeoutError,
    FundedAmountMismatchError,
    InsufficientBalanceError,
    NotFoundError,
    OverAllocationError,
    UnconfirmedTransactionError,
)

from conftest import ADMIN, deploy_and_record


@pytest.fixture
def sinks(chain, checkpoint, deployed_token):
    return {
        "presale": deploy_and_record(chain, checkpoint, "Presale", "Presale", []),
        "lp_rewards": deploy_and_record(chain, checkpoint, "LPRewardSink", "LPRewardSink", []),
    }


ALIASES = {"presale": "Presale", "lp_rewards": "LPRewardSink", "treasury": ADMIN}


def _ledger(checkpoint, chain, strategy=None, **kwargs):
    return AllocationLedger(checkpoint, chain, strategy or MintThenTransferStrategy(),
                            sink_aliases=ALIASES, **kwargs)


class TestPlan:
    """Test plan computation."""

    def test_within_supply(self, checkpoint, chain):
        plan = _ledger(checkpoint, chain).plan("1000", {"presale": "400", "lp_rewards": "600"},
                                               decimals=0)

        assert plan.allocated_units == 1000
        assert plan.unallocated_units == 0
        assert [a.sink_name for a in plan.unfunded] == ["presale", "lp_rewards"]

    def test_over_allocation_rejected(self, checkpoint, chain):
        """400 + 700 against a supply of 1000 is rejected before any call."""
        with pytest.raises(OverAllocationError) as exc_info:
            _ledger(checkpoint, chain).plan("1000", {"presale": "400", "lp_rewards": "700"},
                                            decimals=0)

        error = exc_info.value
        assert error.excess_units == 100
        assert error.offending == [("lp_rewards", 700)]
        assert chain.submitted == []

    def test_zero_allocations_dropped(self, checkpoint, chain):
        plan = _ledger(checkpoint, chain).plan(
            "1000", {"presale": "400", "staking_rewards": "0"}, decimals=0
        )
        assert [a.sink_name for a in plan.allocations] == ["presale"]

    def test_decimal_amounts_scaled(self, checkpoint, chain):
        plan = _ledger(checkpoint, chain).plan("10", {"presale": "0.5"}, decimals=18)
        assert plan.allocation_for("presale").amount_units == 5 * 10 ** 17

    def test_decimals_from_token(self, checkpoint, chain, deployed_token):
        chain.token_decimals = 6
        assert _ledger(checkpoint, chain).resolve_decimals() == 6

    def test_decimals_override(self, checkpoint, chain, deployed_token):
        assert _ledger(checkpoint, chain, decimals_override=2).resolve_decimals() == 2

    def test_decimals_default_without_token(self, checkpoint, chain):
        assert _ledger(checkpoint, chain).resolve_decimals() == 18


class TestApplyMintThenTransfer:
    """Test funding by minting the supply then transferring slices."""

    def test_funds_every_sink(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.apply(ledger.plan("1000", {"presale": "400", "lp_rewards": "600"},
                                        decimals=0))

        assert plan.fully_funded
        assert chain.balance_of(deployed_token, sinks["presale"]) == 400
        assert chain.balance_of(deployed_token, sinks["lp_rewards"]) == 600
        assert chain.balance_of(deployed_token, chain.default_sender) == 0
        assert checkpoint.funded_sinks() == {
            "@supply_mint": 1000, "presale": 400, "lp_rewards": 600
        }

    def test_resumes_after_interrupted_transfer(self, checkpoint, chain, deployed_token, sinks):
        """A reverted transfer leaves the sink unfunded; a re-run never mints twice."""
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400", "lp_rewards": "600"}, decimals=0)

        chain.inject_failure("transfer")
        with pytest.raises(ChainError):
            ledger.apply(plan)
        assert checkpoint.funded_sinks() == {"@supply_mint": 1000}

        resumed = ledger.apply(plan)

        assert resumed.fully_funded
        assert len(chain.calls_to("mint")) == 1
        assert chain.balance_of(deployed_token, sinks["presale"]) == 400
        assert chain.balance_of(deployed_token, sinks["lp_rewards"]) == 600

    def test_second_sink_failure_keeps_first_funded(self, checkpoint, chain, deployed_token,
                                                    sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400", "lp_rewards": "600"}, decimals=0)

        original_transfer = chain.transfer
        calls = []

        def flaky_transfer(token, to, amount):
            calls.append(to)
            if len(calls) == 2:
                raise ChainError("nonce too low", method="transfer")
            return original_transfer(token, to, amount)

        chain.transfer = flaky_transfer
        with pytest.raises(ChainError):
            ledger.apply(plan)
        assert set(checkpoint.funded_sinks()) == {"@supply_mint", "presale"}

        chain.transfer = original_transfer
        resumed = ledger.apply(plan)

        assert resumed.fully_funded
        assert len(chain.calls_to("transfer")) == 2
        assert chain.balance_of(deployed_token, sinks["presale"]) == 400

    def test_rerun_when_funded_is_noop(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400"}, decimals=0)
        ledger.apply(plan)
        submitted = len(chain.submitted)

        assert ledger.apply(plan).fully_funded
        assert len(chain.submitted) == submitted

    def test_insufficient_balance_before_any_transfer(self, checkpoint, chain, deployed_token,
                                                      sinks):
        ledger = _ledger(checkpoint, chain, strategy=MintThenTransferStrategy(mint_supply=False))
        chain.wait_for_confirmation(chain.mint(deployed_token, chain.default_sender, 500), 1.0)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            ledger.apply(ledger.plan("1000", {"presale": "400", "lp_rewards": "600"}, decimals=0))

        assert exc_info.value.required_units == 1000
        assert exc_info.value.available_units == 500
        assert chain.calls_to("transfer") == []

    def test_unresolvable_sink_before_any_call(self, checkpoint, chain, deployed_token):
        ledger = _ledger(checkpoint, chain)
        with pytest.raises(NotFoundError):
            ledger.apply(ledger.plan("1000", {"presale": "400"}, decimals=0))
        assert chain.calls_to("mint") == []

    def test_literal_address_sink(self, checkpoint, chain, deployed_token):
        ledger = _ledger(checkpoint, chain)
        ledger.apply(ledger.plan("1000", {"treasury": "250"}, decimals=0))
        assert chain.balance_of(deployed_token, ADMIN) == 250


class TestApplyMintPerSink:
    """Test funding by minting each slice directly."""

    def test_mints_into_sinks(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain, strategy=MintPerSinkStrategy())
        plan = ledger.apply(ledger.plan("1000", {"presale": "400", "lp_rewards": "600"},
                                        decimals=0))

        assert plan.fully_funded
        assert chain.calls_to("transfer") == []
        assert [c[3] for c in chain.calls_to("mint")] == [
            (sinks["presale"], 400), (sinks["lp_rewards"], 600)
        ]


class TestCreateStrategy:
    """Test strategy selection by name."""

    def test_known_names(self):
        assert isinstance(create_strategy("mint_then_transfer"), MintThenTransferStrategy)
        assert isinstance(create_strategy("mint_per_sink"), MintPerSinkStrategy)

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError):
            create_strategy("airdrop")


class TestUnconfirmedSupplyMint:
    """Test that a supply mint whose confirmation timed out is never sent again."""

    def test_timed_out_mint_not_resent(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400", "lp_rewards": "600"}, decimals=0)

        chain.inject_timeout("mint")
        with pytest.raises(ConfirmationTimeoutError):
            ledger.apply(plan)
        assert checkpoint.pending_submission("@supply_mint") is not None
        assert not checkpoint.is_funded("@supply_mint")

        with pytest.raises(UnconfirmedTransactionError) as exc_info:
            ledger.apply(plan)

        assert exc_info.value.handle == checkpoint.pending_submission("@supply_mint")
        assert len(chain.calls_to("mint")) == 1
        assert chain.calls_to("transfer") == []

    def test_late_landing_mint_is_accepted(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400", "lp_rewards": "600"}, decimals=0)

        chain.inject_timeout("mint")
        with pytest.raises(ConfirmationTimeoutError):
            ledger.apply(plan)

        # The earlier mint lands after the run gave up on it
        chain.state.balances.setdefault(deployed_token, {})[chain.default_sender] = 1000

        resumed = ledger.apply(plan)

        assert resumed.fully_funded
        assert len(chain.calls_to("mint")) == 1
        assert checkpoint.funded_sinks()["@supply_mint"] == 1000
        assert chain.balance_of(deployed_token, sinks["lp_rewards"]) == 600

    def test_reverted_mint_can_be_retried(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400"}, decimals=0)

        chain.inject_failure("mint")
        with pytest.raises(ChainError):
            ledger.apply(plan)
        assert checkpoint.funding_entry("@supply_mint") is None

        assert ledger.apply(plan).fully_funded
        assert len(chain.calls_to("mint")) == 2


class TestFundedAmounts:
    """Test that recorded funding must match the plan."""

    def test_changed_amount_rejected(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        ledger.apply(ledger.plan("1000", {"presale": "400"}, decimals=0))
        submitted = len(chain.submitted)

        with pytest.raises(FundedAmountMismatchError) as exc_info:
            ledger.apply(ledger.plan("1000", {"presale": "500", "lp_rewards": "100"}, decimals=0))

        assert exc_info.value.mismatches == [("presale", 400, 500)]
        assert len(chain.submitted) == submitted


class TestCancel:
    """Test cooperative cancellation between sinks."""

    def test_cancel_before_apply_makes_no_calls(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        ledger.cancel()

        plan = ledger.apply(ledger.plan("1000", {"presale": "400"}, decimals=0))

        assert not plan.fully_funded
        assert chain.calls_to("mint") == []
        assert checkpoint.funded_sinks() == {}

    def test_cancel_between_sinks(self, checkpoint, chain, deployed_token, sinks):
        ledger = _ledger(checkpoint, chain)
        plan = ledger.plan("1000", {"presale": "400", "lp_rewards": "600"}, decimals=0)

        original_transfer = chain.transfer

        def transfer_then_cancel(token, to, amount):
            ledger.cancel()
            return original_transfer(token, to, amount)

        chain.transfer = transfer_then_cancel
        result = ledger.apply(plan)

        assert [a.sink_name for a in result.unfunded] == ["lp_rewards"]
        assert set(checkpoint.funded_sinks()) == {"@supply_mint", "presale"}
        assert len(chain.calls_to("transfer")) == 1
