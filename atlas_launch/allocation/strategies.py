"""
Funding strategies.

Two ways of moving supply into sinks are in use and neither is
authoritative, so both sit behind one interface:

* mint the whole supply to the signer once, then transfer slices
* mint each slice straight into its sink
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence

from ..chain.base import ChainClient, TxHandle
from ..errors import (
    ChainError,
    ConfigurationError,
    InsufficientBalanceError,
    UnconfirmedTransactionError,
)
from ..persistence.checkpoint_store import CheckpointStore
from .models import AllocationPlan, SinkAllocation


@dataclass(frozen=True)
class FundingContext:
    """Everything a strategy needs for one apply() pass."""
    chain: ChainClient
    checkpoint: CheckpointStore
    token_address: str
    confirmation_timeout: float
    logger: Any


class FundingStrategy(ABC):
    """Moves one allocation's units into its sink."""

    name: str = "base"

    @abstractmethod
    def prepare(self, ctx: FundingContext, plan: AllocationPlan,
                pending: Sequence[SinkAllocation]) -> None:
        """Validate and stage funds before any sink is funded."""

    @abstractmethod
    def fund(self, ctx: FundingContext, allocation: SinkAllocation, sink_address: str) -> None:
        """Fund one sink and wait for confirmation."""

    def _confirm(self, ctx: FundingContext, handle: TxHandle) -> None:
        ctx.chain.wait_for_confirmation(handle, ctx.confirmation_timeout)


class MintThenTransferStrategy(FundingStrategy):
    """Mint the total supply to the signer once, then transfer slices."""

    name = "mint_then_transfer"
    SUPPLY_MARKER = "@supply_mint"

    def __init__(self, mint_supply: bool = True):
        self.mint_supply = mint_supply

    def prepare(self, ctx: FundingContext, plan: AllocationPlan,
                pending: Sequence[SinkAllocation]) -> None:
        holder = ctx.chain.default_sender
        required = sum(a.amount_units for a in pending)

        if self.mint_supply and not ctx.checkpoint.is_funded(self.SUPPLY_MARKER):
            pending_tx = ctx.checkpoint.pending_submission(self.SUPPLY_MARKER)
            if pending_tx is not None:
                self._reconcile_supply_mint(ctx, holder, required, pending_tx)
            else:
                ctx.logger.info(
                    "Minting total supply to holder",
                    holder=holder,
                    total_supply_units=plan.total_supply_units
                )
                handle = ctx.chain.mint(ctx.token_address, holder, plan.total_supply_units)
                ctx.checkpoint.mark_submitted(self.SUPPLY_MARKER, plan.total_supply_units,
                                              handle.tx_id)
                try:
                    self._confirm(ctx, handle)
                except ChainError:
                    ctx.checkpoint.clear_submission(self.SUPPLY_MARKER)
                    raise
            ctx.checkpoint.mark_funded(self.SUPPLY_MARKER, plan.total_supply_units)

        self._check_balance(ctx, holder, required)

    def fund(self, ctx: FundingContext, allocation: SinkAllocation, sink_address: str) -> None:
        holder = ctx.chain.default_sender
        self._check_balance(ctx, holder, allocation.amount_units)
        self._confirm(ctx, ctx.chain.transfer(ctx.token_address, sink_address,
                                              allocation.amount_units))

    def _reconcile_supply_mint(self, ctx: FundingContext, holder: str, required: int,
                               tx_id: str) -> None:
        """Accept an unconfirmed earlier mint only if its funds are visibly there."""
        available = ctx.chain.balance_of(ctx.token_address, holder)
        if available < required:
            raise UnconfirmedTransactionError(
                f"Supply mint {tx_id} was sent by an earlier run but never confirmed, "
                f"and holder {holder} has {available} of {required} units. "
                f"Reconcile the mint on chain before funding again",
                handle=tx_id,
                name=self.SUPPLY_MARKER,
                context={"holder": holder, "required_units": required,
                         "available_units": available}
            )
        ctx.logger.warning("Earlier supply mint landed after its confirmation timeout",
                           tx_id=tx_id, holder=holder, available_units=available)

    def _check_balance(self, ctx: FundingContext, holder: str, required: int) -> None:
        available = ctx.chain.balance_of(ctx.token_address, holder)
        if available < required:
            raise InsufficientBalanceError(
                f"Holder {holder} has {available} units, needs {required}",
                holder=holder,
                required_units=required,
                available_units=available
            )


class MintPerSinkStrategy(FundingStrategy):
    """Mint each slice directly into its sink."""

    name = "mint_per_sink"

    def prepare(self, ctx: FundingContext, plan: AllocationPlan,
                pending: Sequence[SinkAllocation]) -> None:
        ctx.logger.debug("Minting per sink, no holder staging", sinks=len(pending))

    def fund(self, ctx: FundingContext, allocation: SinkAllocation, sink_address: str) -> None:
        self._confirm(ctx, ctx.chain.mint(ctx.token_address, sink_address,
                                          allocation.amount_units))


def create_strategy(name: str) -> FundingStrategy:
    """Build a strategy from its configuration name."""
    if name == MintThenTransferStrategy.name:
        return MintThenTransferStrategy()
    if name == MintPerSinkStrategy.name:
        return MintPerSinkStrategy()
    raise ConfigurationError(f"Unknown funding strategy: {name}",
                             context={"strategy": name})
