"""
Verification retry controller.

Verification is best-effort: results are reported, never raised, and never
affect deployment or funding state.
"""

import threading
from dataclasses import dataclass, field
from typing import Optional, Sequence

import structlog

from ..errors import RecoverableError
from ..persistence.checkpoint_store import CheckpointStore, DeploymentRecord
from .base import VerificationOutcome, VerificationResponse, Verifier

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ModuleVerification:
    """Verification result for one module."""
    module: str
    address: str
    outcome: VerificationOutcome
    attempts: int
    delays: tuple[float, ...] = ()
    message: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def retries(self) -> int:
        return len(self.delays)

    @property
    def verified(self) -> bool:
        return self.outcome.is_verified


@dataclass
class VerificationReport:
    """Results for every module submitted."""
    results: list[ModuleVerification] = field(default_factory=list)
    cancelled: bool = False

    @property
    def failures(self) -> list[ModuleVerification]:
        return [r for r in self.results if not r.verified]

    @property
    def succeeded(self) -> bool:
        return not self.cancelled and not self.failures


class VerificationRetryController:
    """Verifies recorded modules sequentially with bounded backoff."""

    def __init__(
        self,
        verifier: Verifier,
        checkpoint: CheckpointStore,
        base_delay: float = 5.0,
        max_retries: int = 5,
        inter_request_delay: float = 1.0,
        cancel_event: Optional[threading.Event] = None
    ) -> None:
        self.verifier = verifier
        self.checkpoint = checkpoint
        self.base_delay = base_delay
        self.max_retries = max_retries
        self.inter_request_delay = inter_request_delay
        self.logger = logger
        self._cancel_requested = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Stop after the in-flight request. Interrupts any backoff wait."""
        self._cancel_requested.set()
        self.logger.warning("Verification cancellation requested")

    def backoff_delay(self, retry: int) -> float:
        """Delay before the given retry (1-based)."""
        return self.base_delay * (2 ** (retry - 1))

    def verify_all(self, modules: Optional[Sequence[str]] = None) -> VerificationReport:
        """
        Verify recorded modules, one at a time.

        Args:
            modules: Module names in processing order; recorded modules not
                listed are verified afterwards in checkpoint order
        """
        records = self.checkpoint.load()
        order = [name for name in (modules or []) if name in records]
        order += [name for name in records if name not in order]

        report = VerificationReport()
        for index, name in enumerate(order):
            if index > 0 and self.inter_request_delay > 0:
                self._wait(self.inter_request_delay)
            if self._cancel_requested.is_set():
                report.cancelled = True
                self.logger.warning("Verification cancelled", remaining=order[index:])
                break
            report.results.append(self.verify_module(records[name]))

        self.logger.info(
            "Verification finished",
            verified=[r.module for r in report.results if r.verified],
            failed=[r.module for r in report.failures]
        )
        return report

    def verify_module(self, record: DeploymentRecord) -> ModuleVerification:
        """Verify one module, retrying only on rate limits."""
        delays: list[float] = []
        attempts = 0

        while True:
            attempts += 1
            response = self._submit(record)

            if response.outcome.is_verified:
                self.logger.info("Module verified", module=record.module_name,
                                 outcome=response.outcome.value, attempts=attempts)
                return self._result(record, response, attempts, delays)

            if response.outcome == VerificationOutcome.FATAL:
                self.logger.error("Verification failed", module=record.module_name,
                                  message=response.message)
                return self._result(record, response, attempts, delays)

            if len(delays) >= self.max_retries:
                self.logger.error("Verification rate limited, giving up",
                                  module=record.module_name, attempts=attempts)
                error = RecoverableError(
                    f"Rate limited after {len(delays)} retries",
                    retry_count=len(delays),
                    max_retries=self.max_retries
                )
                return self._result(record, response, attempts, delays, error)

            delay = self.backoff_delay(len(delays) + 1)
            delays.append(delay)
            self.logger.warning("Verification rate limited, backing off",
                                module=record.module_name, retry=len(delays), delay=delay)
            self._wait(delay)
            if self._cancel_requested.is_set():
                self.logger.warning("Verification cancelled during backoff",
                                    module=record.module_name)
                return self._result(record, response, attempts, delays)

    def _wait(self, seconds: float) -> None:
        self._cancel_requested.wait(seconds)

    def _submit(self, record: DeploymentRecord) -> VerificationResponse:
        try:
            return self.verifier.verify(record.address, list(record.init_args))
        except Exception as e:
            self.logger.exception("Verifier raised", module=record.module_name)
            return VerificationResponse(VerificationOutcome.FATAL, f"Verifier error: {e}")

    @staticmethod
    def _result(record: DeploymentRecord, response: VerificationResponse, attempts: int,
                delays: list[float], error: Optional[Exception] = None) -> ModuleVerification:
        return ModuleVerification(
            module=record.module_name,
            address=record.address,
            outcome=response.outcome,
            attempts=attempts,
            delays=tuple(delays),
            message=response.message,
            error=error,
        )
