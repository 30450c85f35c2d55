"""
Allocation ledger.

Plans the split of a fixed supply across sinks and applies it resumably:
funded flags are persisted in the checkpoint after every sink, and a
re-invoked ``apply`` skips sinks that are already funded.
"""

import threading
from typing import Any, Mapping, Optional

from ..chain.base import ChainClient
from ..errors import FundedAmountMismatchError, OverAllocationError
from ..logging.config import get_funding_logger
from ..persistence.checkpoint_store import CheckpointStore
from .models import AllocationPlan, SinkAllocation
from .strategies import FundingContext, FundingStrategy
from .units import DEFAULT_DECIMALS, format_units, parse_units

logger = get_funding_logger(__name__)


class AllocationLedger:
    """Computes and applies a conservation-checked supply split."""

    def __init__(
        self,
        checkpoint: CheckpointStore,
        chain: ChainClient,
        strategy: FundingStrategy,
        token_module: str = "AtlasToken",
        confirmation_timeout: float = 120.0,
        sink_aliases: Optional[dict[str, str]] = None,
        decimals_override: Optional[int] = None
    ) -> None:
        self.checkpoint = checkpoint
        self.chain = chain
        self.strategy = strategy
        self.token_module = token_module
        self.confirmation_timeout = confirmation_timeout
        self.sink_aliases = sink_aliases or {}
        self.decimals_override = decimals_override
        self.logger = logger
        self._cancel_requested = threading.Event()

    def cancel(self) -> None:
        """Stop funding before the next sink. An in-flight transfer completes."""
        self._cancel_requested.set()
        self.logger.warning("Funding cancellation requested")

    def resolve_decimals(self) -> int:
        """Token precision: override, then the token module, then 18."""
        if self.decimals_override is not None:
            return self.decimals_override

        if self.checkpoint.has(self.token_module):
            token = self.checkpoint.get(self.token_module).address
            decimals = self.chain.decimals(token)
            if decimals is not None:
                return decimals

        self.logger.info("Token decimals unavailable, using default",
                         default_decimals=DEFAULT_DECIMALS)
        return DEFAULT_DECIMALS

    def plan(
        self,
        total_supply: Any,
        named_amounts: Mapping[str, Any],
        decimals: Optional[int] = None
    ) -> AllocationPlan:
        """
        Build an allocation plan from decimal amounts.

        Args:
            total_supply: Total supply in whole tokens
            named_amounts: Sink name to amount in whole tokens, in funding order
            decimals: Token precision; resolved from the token when omitted

        Returns:
            AllocationPlan with every sink unfunded. Zero amounts are dropped.

        Raises:
            InvalidAmountError: an amount cannot be represented exactly
            OverAllocationError: the amounts exceed the total supply
        """
        if decimals is None:
            decimals = self.resolve_decimals()

        total_units = parse_units(total_supply, decimals)
        entries = [(name, parse_units(amount, decimals)) for name, amount in named_amounts.items()]

        running = 0
        for index, (_, units) in enumerate(entries):
            running += units
            if running > total_units:
                allocated = sum(units for _, units in entries)
                offending = entries[index:]
                raise OverAllocationError(
                    f"Allocations exceed total supply by "
                    f"{format_units(allocated - total_units, decimals)} tokens "
                    f"(offending: {', '.join(name for name, _ in offending)})",
                    total_supply_units=total_units,
                    allocated_units=allocated,
                    offending=offending
                )

        allocations = tuple(
            SinkAllocation(sink_name=name, amount_units=units)
            for name, units in entries if units > 0
        )
        plan = AllocationPlan(total_supply_units=total_units, decimals=decimals,
                              allocations=allocations)

        self.logger.info(
            "Allocation plan computed",
            total_supply=format_units(total_units, decimals),
            allocated=format_units(plan.allocated_units, decimals),
            unallocated=format_units(plan.unallocated_units, decimals),
            sinks=[a.sink_name for a in allocations]
        )
        return plan

    def apply(self, plan: AllocationPlan) -> AllocationPlan:
        """
        Fund every sink not yet funded.

        All sink addresses are resolved and the strategy's balance checks
        run before the first transfer. Each sink is flagged funded and
        persisted as soon as its transaction confirms.

        Returns:
            The plan with funded flags reflecting the checkpoint. If the run
            was cancelled, the remaining sinks stay unfunded.

        Raises:
            FundedAmountMismatchError: a sink was funded with a different amount
        """
        funded = self.checkpoint.funded_sinks()
        self._check_funded_amounts(plan, funded)
        plan = plan.with_funded(funded)
        pending = plan.unfunded

        already = [a.sink_name for a in plan.allocations if a.funded]
        if already:
            self.logger.info("Skipping funded sinks", sinks=already)
        if not pending:
            self.logger.info("All sinks already funded")
            return plan
        if self._cancel_requested.is_set():
            self.logger.warning("Funding cancelled before start",
                                unfunded=[a.sink_name for a in pending])
            return plan

        token_address = self.checkpoint.resolve(self.token_module)
        targets = [
            (allocation, self.checkpoint.resolve(allocation.sink_name, self.sink_aliases))
            for allocation in pending
        ]

        ctx = FundingContext(
            chain=self.chain,
            checkpoint=self.checkpoint,
            token_address=token_address,
            confirmation_timeout=self.confirmation_timeout,
            logger=self.logger,
        )
        self.strategy.prepare(ctx, plan, pending)

        for allocation, sink_address in targets:
            if self._cancel_requested.is_set():
                self.logger.warning("Funding cancelled",
                                    unfunded=[a.sink_name for a in plan.unfunded])
                return plan

            self.logger.info(
                "Funding sink",
                sink=allocation.sink_name,
                sink_address=sink_address,
                amount=format_units(allocation.amount_units, plan.decimals),
                strategy=self.strategy.name
            )
            self.strategy.fund(ctx, allocation, sink_address)
            self.checkpoint.mark_funded(allocation.sink_name, allocation.amount_units)
            plan = plan.with_funded([allocation.sink_name])

        self.logger.info("Allocation plan funded", sinks=[a.sink_name for a in pending])
        return plan

    def _check_funded_amounts(self, plan: AllocationPlan, funded: Mapping[str, int]) -> None:
        mismatches = [
            (a.sink_name, funded[a.sink_name], a.amount_units)
            for a in plan.allocations
            if a.sink_name in funded and funded[a.sink_name] != a.amount_units
        ]
        if mismatches:
            raise FundedAmountMismatchError(
                "Funded sinks were paid a different amount than now allocated: "
                + ", ".join(f"{name} (funded {recorded}, planned {planned})"
                            for name, recorded, planned in mismatches),
                mismatches=mismatches
            )
