"""Allocation plan data models."""

from dataclasses import dataclass, field, replace
from typing import Iterable


@dataclass(frozen=True)
class SinkAllocation:
    """One slice of the supply."""
    sink_name: str
    amount_units: int
    funded: bool = False


@dataclass(frozen=True)
class AllocationPlan:
    """Ordered split of the total supply.

    Invariant: the allocated units never exceed ``total_supply_units``. The
    only change after construction is flipping ``funded`` flags.
    """
    total_supply_units: int
    decimals: int
    allocations: tuple[SinkAllocation, ...] = field(default_factory=tuple)

    @property
    def allocated_units(self) -> int:
        return sum(a.amount_units for a in self.allocations)

    @property
    def unallocated_units(self) -> int:
        return self.total_supply_units - self.allocated_units

    @property
    def unfunded(self) -> list[SinkAllocation]:
        return [a for a in self.allocations if not a.funded]

    @property
    def fully_funded(self) -> bool:
        return all(a.funded for a in self.allocations)

    def allocation_for(self, sink_name: str) -> SinkAllocation:
        for allocation in self.allocations:
            if allocation.sink_name == sink_name:
                return allocation
        raise KeyError(sink_name)

    def with_funded(self, sink_names: Iterable[str]) -> "AllocationPlan":
        """Copy of the plan with the given sinks flagged funded."""
        names = set(sink_names)
        return replace(self, allocations=tuple(
            replace(a, funded=True) if a.sink_name in names else a
            for a in self.allocations
        ))
