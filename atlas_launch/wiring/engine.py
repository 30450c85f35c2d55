"""
Capability wiring engine.

Applies an ordered list of grants after deployment. Grants must be
idempotent on chain, so the engine keeps no record of what it already
applied and a partially failed wiring pass can simply be re-run.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Optional, Sequence

from ..chain.base import ChainClient
from ..errors import (
    ChainError,
    ConfirmationTimeoutError,
    GracefulDegradationError,
    NotFoundError,
    WiringError,
)
from ..logging.config import get_wiring_logger, log_grant_decision
from ..persistence.checkpoint_store import CheckpointStore
from .models import CapabilityGrant, GrantResult

if TYPE_CHECKING:
    from ..deploy.models import DeploymentReport

logger = get_wiring_logger(__name__)


class CapabilityWiringEngine:
    """Applies capability grants with required/optional semantics."""

    def __init__(
        self,
        checkpoint: CheckpointStore,
        chain: ChainClient,
        confirmation_timeout: float = 120.0,
        max_workers: int = 1,
        aliases: Optional[dict[str, str]] = None
    ) -> None:
        self.checkpoint = checkpoint
        self.chain = chain
        self.confirmation_timeout = confirmation_timeout
        self.max_workers = max(1, max_workers)
        self.aliases = aliases or {}
        self.logger = logger

    def apply(self, grants: Sequence[CapabilityGrant],
              report: Optional["DeploymentReport"] = None) -> list[GrantResult]:
        """
        Apply grants in order.

        Args:
            grants: Grants to apply
            report: Deployment report of the run; wiring refuses to start if a
                required module did not reach RECORDED or SKIPPED

        Returns:
            One GrantResult per grant, in input order

        Raises:
            WiringError: a required grant failed, or deployment is incomplete
        """
        if report is not None and (report.required_failures or report.cancelled
                                   or report.aborted_by):
            raise WiringError(
                "Cannot wire capabilities before all required modules are recorded",
                context={"required_failures": report.required_failures,
                         "cancelled": report.cancelled}
            )

        self.logger.info("Capability wiring started", grants=len(grants),
                         max_workers=self.max_workers)

        if self.max_workers == 1:
            results = []
            for grant in grants:
                result = self._apply_one(grant)
                results.append(result)
                if not result.applied and not grant.optional:
                    raise self._wiring_error(result, results)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                results = list(pool.map(self._apply_one, grants))
            for result in results:
                if not result.applied and not result.grant.optional:
                    raise self._wiring_error(result, results)

        self.logger.info(
            "Capability wiring finished",
            applied=sum(1 for r in results if r.applied),
            skipped_optional=sum(1 for r in results if not r.applied)
        )
        return results

    def _apply_one(self, grant: CapabilityGrant) -> GrantResult:
        target_address = grantee_address = None
        try:
            target_address = self.checkpoint.resolve(grant.target_module, self.aliases)
            grantee_address = self.checkpoint.resolve(grant.grantee_module, self.aliases)

            if grant.method is None:
                handle = self.chain.grant_role(target_address, grant.role, grantee_address)
            else:
                handle = self.chain.call(target_address, grant.method, [grantee_address])
            receipt = self.chain.wait_for_confirmation(handle, self.confirmation_timeout)

        except (NotFoundError, ChainError, ConfirmationTimeoutError) as e:
            return self._failed(grant, e, target_address, grantee_address)
        except Exception as e:
            self.logger.exception("Unexpected grant failure", grant=grant.label)
            return self._failed(grant, e, target_address, grantee_address)

        log_grant_decision(
            self.logger, grant, applied=True, reason="confirmed",
            context={"target_address": target_address,
                     "grantee_address": grantee_address,
                     "block_number": receipt.block_number}
        )
        return GrantResult(grant=grant, applied=True,
                           target_address=target_address,
                           grantee_address=grantee_address)

    def _failed(self, grant: CapabilityGrant, error: Exception,
                target_address: Optional[str], grantee_address: Optional[str]) -> GrantResult:
        log_grant_decision(self.logger, grant, applied=False, reason=str(error))

        if grant.optional:
            degraded = GracefulDegradationError(
                f"Optional grant {grant.label} skipped: {error}",
                degraded_functionality=grant.role,
                fallback_strategy="skip_grant"
            )
            degraded.__cause__ = error
            error = degraded

        return GrantResult(grant=grant, applied=False,
                           target_address=target_address,
                           grantee_address=grantee_address,
                           error=error)

    def _wiring_error(self, result: GrantResult, results: list[GrantResult]) -> WiringError:
        grant = result.grant
        error = WiringError(
            f"Required grant {grant.label} failed: {result.error}",
            role=grant.role,
            grantee=grant.grantee_module,
            target=grant.target_module,
            results=results
        )
        error.__cause__ = result.error
        return error
