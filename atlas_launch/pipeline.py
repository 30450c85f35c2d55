"""
Launch pipeline coordinator.

Wires the components together for the three operator phases:
deploy (orchestrator + capability wiring), fund (allocation ledger +
vesting batch) and verify (retry controller). Each phase reports a
PhaseResult instead of raising, so the CLI can map outcomes to exit codes.
"""

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

import structlog

from . import catalog
from .allocation.ledger import AllocationLedger
from .allocation.strategies import FundingStrategy, create_strategy
from .chain import load_chain_backend
from .chain.base import ChainClient
from .config.defaults import LaunchSettings
from .config.validation import is_address
from .deploy.orchestrator import DeploymentOrchestrator
from .errors import (
    AccountingError,
    ConfigurationError,
    DeploymentError,
    ExecutionError,
    PreflightError,
    WiringError,
)
from .persistence.checkpoint_store import CheckpointStore
from .registry.graph import ModuleRegistry
from .verification.base import Verifier
from .verification.http_verifier import HttpVerifier
from .verification.retry import VerificationRetryController
from .vesting.builder import VestingBatchBuilder
from .wiring.engine import CapabilityWiringEngine
from .wiring.models import CapabilityGrant

logger = structlog.get_logger(__name__)


@dataclass
class PhaseResult:
    """Outcome of one pipeline phase."""
    phase: str
    succeeded: bool
    detail: Any = None
    error: Optional[Exception] = None


class LaunchPipeline:
    """Main coordinator for a launch.

    Manages the launch phases:
    Registry → Orchestrator → Checkpoint → Wiring → Ledger → Vesting → Verification
    """

    def __init__(
        self,
        settings: LaunchSettings,
        chain: Optional[ChainClient] = None,
        checkpoint: Optional[CheckpointStore] = None,
        registry: Optional[ModuleRegistry] = None,
        grants: Optional[Sequence[CapabilityGrant]] = None,
        strategy: Optional[FundingStrategy] = None,
        verifier: Optional[Verifier] = None
    ) -> None:
        self.settings = settings
        self.logger = logger

        self.chain = chain or load_chain_backend(settings.deploy.chain_backend, settings)
        self.checkpoint = checkpoint or CheckpointStore(Path(settings.deploy.checkpoint_path))
        self.registry = registry or catalog.build_registry(settings)
        self.grants = list(grants) if grants is not None else catalog.default_grants(settings)
        self.strategy = strategy or create_strategy(settings.allocation.strategy)
        self.verifier = verifier
        self._cancel_requested = threading.Event()

        timeout = settings.deploy.confirmation_timeout_seconds
        self.orchestrator = DeploymentOrchestrator(
            self.registry, self.checkpoint, self.chain, settings,
            confirmation_timeout=timeout
        )
        self.wiring = CapabilityWiringEngine(
            self.checkpoint, self.chain,
            confirmation_timeout=timeout,
            max_workers=settings.deploy.wiring_max_workers
        )
        self.ledger = AllocationLedger(
            self.checkpoint, self.chain, self.strategy,
            token_module=catalog.TOKEN,
            confirmation_timeout=timeout,
            sink_aliases=catalog.sink_aliases(settings),
            decimals_override=settings.token.decimals
        )
        self.vesting = VestingBatchBuilder(
            self.checkpoint, self.chain,
            token_module=catalog.TOKEN,
            vesting_module=catalog.VESTING,
            confirmation_timeout=timeout
        )

        self.logger.info(
            "Launch pipeline initialized",
            modules=self.registry.names,
            grants=len(self.grants),
            funding_strategy=self.strategy.name,
            checkpoint=str(self.checkpoint.path)
        )

    def cancel(self) -> None:
        """Cooperatively stop whichever phase is running."""
        self._cancel_requested.set()
        self.orchestrator.cancel()
        self.ledger.cancel()

    def deploy(self, force_redeploy: bool = False, module: Optional[str] = None) -> PhaseResult:
        """Deploy missing modules, then apply capability grants."""
        try:
            report = self.orchestrator.run(force_redeploy=force_redeploy, only=module)
        except DeploymentError as e:
            return PhaseResult("deploy", succeeded=False, detail=e.report, error=e)
        except PreflightError as e:
            self.logger.error("Deployment pre-flight failed", error=str(e))
            return PhaseResult("deploy", succeeded=False, error=e)

        if report.cancelled:
            return PhaseResult("deploy", succeeded=False, detail=report)

        grants = self.grants if module is None else self._grants_with_recorded_modules()
        try:
            grant_results = self.wiring.apply(grants, report)
        except WiringError as e:
            return PhaseResult("deploy", succeeded=False,
                               detail={"report": report, "grants": e.results}, error=e)

        succeeded = report.succeeded and all(r.applied for r in grant_results)
        return PhaseResult("deploy", succeeded=succeeded,
                           detail={"report": report, "grants": grant_results})

    def fund(self) -> PhaseResult:
        """Fund every allocation sink, then create the vesting batch if configured.

        Re-running after success makes no calls. A cancelled run leaves the
        remaining sinks unfunded and skips vesting.
        """
        allocation = self.settings.allocation
        vesting_receipt = None
        try:
            plan = self.ledger.plan(allocation.total_supply,
                                    catalog.default_allocations(self.settings))
            plan = self.ledger.apply(plan)

            vesting_configured = bool(self.settings.vesting.beneficiaries
                                      or self.settings.vesting.amounts)
            if self._cancel_requested.is_set():
                self.logger.warning("Funding phase cancelled", fully_funded=plan.fully_funded)
            elif plan.fully_funded and vesting_configured:
                vesting_receipt = self._apply_vesting(plan.decimals)

        except (PreflightError, AccountingError, ExecutionError) as e:
            self.logger.error("Funding failed", error_type=type(e).__name__, error=str(e))
            return PhaseResult("fund", succeeded=False, error=e)

        succeeded = plan.fully_funded and not self._cancel_requested.is_set()
        return PhaseResult("fund", succeeded=succeeded,
                           detail={"plan": plan, "vesting": vesting_receipt})

    def verify(self) -> PhaseResult:
        """Verify every recorded module. Never affects deployment state."""
        try:
            verifier = self.verifier or self._http_verifier()
        except ConfigurationError as e:
            self.logger.error("Verification not configured", error=str(e))
            return PhaseResult("verify", succeeded=False, error=e)

        verify = self.settings.verify
        controller = VerificationRetryController(
            verifier, self.checkpoint,
            base_delay=verify.base_delay_seconds,
            max_retries=verify.max_retries,
            inter_request_delay=verify.inter_request_delay_seconds,
            cancel_event=self._cancel_requested
        )
        report = controller.verify_all(self.registry.names)
        return PhaseResult("verify", succeeded=report.succeeded, detail=report)

    def _apply_vesting(self, decimals: int) -> Any:
        vesting = self.settings.vesting
        start = vesting.start or int(time.time())
        batch = self.vesting.build(
            vesting.beneficiaries,
            vesting.amounts,
            start=start,
            cliff=vesting.cliff_seconds,
            duration=self.settings.vesting_duration_seconds,
            decimals=decimals
        )
        return self.vesting.apply(batch)

    def _grants_with_recorded_modules(self) -> list[CapabilityGrant]:
        recorded = set(self.checkpoint.load())
        selected = []
        for grant in self.grants:
            endpoints = [grant.target_module, grant.grantee_module]
            if all(is_address(name) or name in recorded for name in endpoints):
                selected.append(grant)
            else:
                self.logger.info("Grant deferred until its modules are deployed",
                                 grant=grant.label)
        return selected

    def _http_verifier(self) -> Verifier:
        verify = self.settings.verify
        if not verify.api_url:
            raise ConfigurationError("VERIFY_API_URL is required for verification")
        return HttpVerifier(verify.api_url, api_key=verify.api_key,
                            timeout_seconds=verify.timeout_seconds)
