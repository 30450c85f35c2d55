"""
Atomic batch creation of per-beneficiary vesting schedules.
"""
from .builder import VestingBatchBuilder
from .models import VestingBatch, VestingSchedule

__all__ = ["VestingBatchBuilder", "VestingBatch", "VestingSchedule"]
