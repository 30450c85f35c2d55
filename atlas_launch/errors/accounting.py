"""
Allocation and vesting accounting errors.

All of these are raised during validation, before any mint, transfer,
approval or schedule creation is submitted.
"""

from typing import Any, Optional


class AccountingError(Exception):
    """Base class for supply accounting failures."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class OverAllocationError(AccountingError):
    """Configured allocations exceed the total supply."""

    def __init__(self, message: str, total_supply_units: int = 0,
                 allocated_units: int = 0,
                 offending: Optional[list[tuple[str, int]]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.total_supply_units = total_supply_units
        self.allocated_units = allocated_units
        self.excess_units = allocated_units - total_supply_units
        self.offending = offending or []


class InsufficientBalanceError(AccountingError):
    """Holder balance does not cover the amount about to be moved."""

    def __init__(self, message: str, holder: Optional[str] = None,
                 required_units: int = 0, available_units: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.holder = holder
        self.required_units = required_units
        self.available_units = available_units


class ArityMismatchError(AccountingError):
    """Parallel input lists have different lengths."""

    def __init__(self, message: str, expected: int = 0, actual: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.expected = expected
        self.actual = actual


class DuplicateBeneficiaryError(AccountingError):
    """A beneficiary already has, or is listed twice for, a vesting schedule."""

    def __init__(self, message: str, beneficiaries: Optional[list[str]] = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.beneficiaries = beneficiaries or []


class FundedAmountMismatchError(AccountingError):
    """A sink recorded as funded received a different amount than planned."""

    def __init__(self, message: str, mismatches: Optional[list[tuple[str, int, int]]] = None,
                 **kwargs):
        super().__init__(message, **kwargs)
        self.mismatches = mismatches or []
