"""
Conservation-checked split of the token supply across named sinks.
"""
from .ledger import AllocationLedger
from .models import AllocationPlan, SinkAllocation
from .strategies import (
    FundingStrategy,
    MintPerSinkStrategy,
    MintThenTransferStrategy,
    create_strategy,
)
from .units import format_units, parse_units

__all__ = [
    "AllocationLedger",
    "AllocationPlan",
    "SinkAllocation",
    "FundingStrategy",
    "MintPerSinkStrategy",
    "MintThenTransferStrategy",
    "create_strategy",
    "format_units",
    "parse_units",
]
