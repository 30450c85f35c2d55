"""Base classes for contract verification services."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Sequence


class VerificationOutcome(str, Enum):
    """Classified verification service response."""
    SUCCESS = "success"
    ALREADY_VERIFIED = "already_verified"
    RATE_LIMITED = "rate_limited"
    FATAL = "fatal"

    @property
    def is_verified(self) -> bool:
        return self in (VerificationOutcome.SUCCESS, VerificationOutcome.ALREADY_VERIFIED)


@dataclass(frozen=True)
class VerificationResponse:
    """Outcome plus the service's message."""
    outcome: VerificationOutcome
    message: Optional[str] = None


class Verifier(ABC):
    """A contract verification service."""

    @abstractmethod
    def verify(self, address: str, args: Sequence[Any]) -> VerificationResponse:
        """
        Submit one verification request.

        Implementations classify every response themselves and should only
        raise for programming errors.
        """
