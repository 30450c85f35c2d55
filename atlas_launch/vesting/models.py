"""Vesting schedule data models."""

from dataclasses import dataclass, field

from ..errors import ConfigurationError, InvalidAmountError


@dataclass(frozen=True)
class VestingSchedule:
    """Time-locked release plan for one beneficiary."""
    beneficiary: str
    amount_units: int
    start_timestamp: int
    cliff_seconds: int
    duration_seconds: int

    def __post_init__(self) -> None:
        if self.amount_units <= 0:
            raise InvalidAmountError(
                f"Vesting amount for {self.beneficiary} must be positive",
                raw_value=self.amount_units
            )
        if self.cliff_seconds < 0 or self.duration_seconds <= 0:
            raise ConfigurationError(
                "Vesting cliff must be non-negative and duration positive",
                context={"cliff_seconds": self.cliff_seconds,
                         "duration_seconds": self.duration_seconds}
            )
        if self.cliff_seconds > self.duration_seconds:
            raise ConfigurationError(
                f"Vesting cliff {self.cliff_seconds}s exceeds duration {self.duration_seconds}s",
                context={"cliff_seconds": self.cliff_seconds,
                         "duration_seconds": self.duration_seconds}
            )

    def as_call_args(self) -> tuple:
        return (self.beneficiary, self.amount_units, self.start_timestamp,
                self.cliff_seconds, self.duration_seconds)


@dataclass(frozen=True)
class VestingBatch:
    """Validated schedules that are created together or not at all."""
    schedules: tuple[VestingSchedule, ...] = field(default_factory=tuple)
    override: bool = False

    @property
    def total_units(self) -> int:
        return sum(s.amount_units for s in self.schedules)

    @property
    def beneficiaries(self) -> list[str]:
        return [s.beneficiary for s in self.schedules]
