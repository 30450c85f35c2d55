"""
Deployment orchestrator.

Walks the registry's resolved order and drives every module through its
lifecycle, consulting the checkpoint for idempotence and for dependency
addresses. Addresses only ever come from the checkpoint; a module whose
dependency is not available fails instead of being deployed against a
placeholder.
"""

import threading
from typing import TYPE_CHECKING, Any, Optional

from ..chain.base import ChainClient, Receipt
from ..errors import (
    ChainError,
    ConfirmationTimeoutError,
    DeploymentError,
)
from ..logging.config import get_deploy_logger, log_module_transition
from ..persistence.checkpoint_store import CheckpointStore, DeploymentRecord
from ..registry.graph import ModuleRegistry
from ..registry.models import ModuleKind, ModuleSpec
from .models import DeploymentReport, FailureReason, ModuleRun, ModuleState

if TYPE_CHECKING:
    from ..config.defaults import LaunchSettings

logger = get_deploy_logger(__name__)


class DeploymentOrchestrator:
    """Deploys registered modules in dependency order, resumably."""

    def __init__(
        self,
        registry: ModuleRegistry,
        checkpoint: CheckpointStore,
        chain: ChainClient,
        settings: "LaunchSettings",
        confirmation_timeout: Optional[float] = None
    ) -> None:
        self.registry = registry
        self.checkpoint = checkpoint
        self.chain = chain
        self.settings = settings
        self.confirmation_timeout = (
            confirmation_timeout
            if confirmation_timeout is not None
            else settings.deploy.confirmation_timeout_seconds
        )
        self.logger = logger
        self._cancel_requested = threading.Event()

    def cancel(self) -> None:
        """Request a stop. Takes effect after the in-flight call completes."""
        self._cancel_requested.set()
        self.logger.warning("Cancellation requested")

    def run(self, force_redeploy: bool = False, only: Optional[str] = None) -> DeploymentReport:
        """
        Deploy every module that is not yet recorded.

        Args:
            force_redeploy: Redeploy even if recorded. With ``only`` this
                applies to the named module alone.
            only: Restrict the run to one module and its dependencies

        Returns:
            DeploymentReport with the final state of every module in scope

        Raises:
            CyclicDependencyError: before any external call
            DeploymentError: when a required module fails; carries the report
        """
        order = self.registry.resolve_order()

        if only is not None:
            in_scope = set(self.registry.dependencies_closure(only))
            forced = {only} if force_redeploy else set()
        else:
            in_scope = {spec.name for spec in order}
            forced = set(in_scope) if force_redeploy else set()

        specs = [spec for spec in order if spec.name in in_scope]
        report = DeploymentReport(runs={
            spec.name: ModuleRun(module=spec.name, required=spec.required) for spec in specs
        })

        self.logger.info(
            "Deployment run started",
            modules=[spec.name for spec in specs],
            force_redeploy=sorted(forced),
            only=only
        )

        for spec in specs:
            if self._cancel_requested.is_set():
                report.cancelled = True
                self.logger.warning(
                    "Deployment run cancelled",
                    next_module=spec.name,
                    summary=report.summary()
                )
                break

            run = self._process_module(spec, report, force=spec.name in forced)
            report.runs[spec.name] = run

            if run.state == ModuleState.FAILED and spec.required:
                report.aborted_by = spec.name
                self.logger.error(
                    "Required module failed, aborting run",
                    module=spec.name,
                    failure_reason=run.failure_reason.value if run.failure_reason else None,
                    error=run.error,
                    summary=report.summary()
                )
                raise DeploymentError(
                    f"Required module {spec.name} failed: {run.error}",
                    module=spec.name,
                    report=report
                )

        self.logger.info("Deployment run finished", summary=report.summary())
        return report

    def _process_module(self, spec: ModuleSpec, report: DeploymentReport,
                        force: bool) -> ModuleRun:
        run = report.runs[spec.name]

        # 1) Idempotence
        if not force and self.checkpoint.has(spec.name):
            record = self.checkpoint.get(spec.name)
            return self._advance(
                run, ModuleState.SKIPPED, "already_recorded",
                context={"address": record.address},
                address=record.address,
                implementation_address=record.implementation_address
            )

        run = self._advance(run, ModuleState.RESOLVING, "dependencies_check")

        # 2) Failure propagation
        for dependency in sorted(spec.dependencies):
            dependency_run = report.runs[dependency]
            if not dependency_run.is_available:
                reason = (FailureReason.DEPENDENCY_FAILED
                          if dependency_run.state == ModuleState.FAILED
                          else FailureReason.DEPENDENCY_MISSING)
                return self._fail(run, reason, f"dependency {dependency} is {dependency_run.state.value}")

        # 3) Init args from checkpoint addresses only
        addresses = self.checkpoint.addresses()
        missing = sorted(dep for dep in spec.dependencies if dep not in addresses)
        if missing:
            return self._fail(run, FailureReason.DEPENDENCY_MISSING,
                              f"no recorded address for {', '.join(missing)}")

        try:
            init_args = spec.build_init_args(addresses, self.settings)
        except Exception as e:
            self.logger.exception("Init args builder failed", module=spec.name)
            return self._fail(run, FailureReason.INIT_ARGS, str(e))

        run = self._advance(run, ModuleState.DEPLOYING, "deploy_submitted",
                            context={"artifact": spec.artifact_name, "kind": spec.kind.value})

        # 4) Deploy and wait
        try:
            receipt = self._deploy(spec, init_args)
        except ConfirmationTimeoutError as e:
            return self._fail(run, FailureReason.CONFIRMATION_TIMEOUT, str(e))
        except ChainError as e:
            return self._fail(run, FailureReason.DEPLOY_REVERTED, str(e))
        except Exception as e:
            self.logger.exception("Unexpected deploy failure", module=spec.name)
            return self._fail(run, FailureReason.DEPLOY_REVERTED, f"Unexpected error: {e}")

        # 5) Record
        record = DeploymentRecord(
            module_name=spec.name,
            address=receipt.contract_address,
            kind=spec.kind,
            implementation_address=receipt.implementation_address,
            init_args=tuple(init_args),
        )
        try:
            self.checkpoint.put(spec.name, record, force=force)
        except Exception:
            # The contract exists on chain but the checkpoint is unusable
            self.logger.error(
                "Deployed module could not be checkpointed",
                module=spec.name,
                address=record.address,
                implementation_address=record.implementation_address
            )
            raise

        return self._advance(
            run, ModuleState.RECORDED, "deploy_confirmed",
            context={"address": record.address, "block_number": receipt.block_number},
            address=record.address,
            implementation_address=record.implementation_address
        )

    def _deploy(self, spec: ModuleSpec, init_args: list[Any]) -> Receipt:
        if spec.kind == ModuleKind.UPGRADEABLE:
            handle = self.chain.deploy_upgradeable(spec.artifact_name, init_args)
        else:
            handle = self.chain.deploy_simple(spec.artifact_name, init_args)

        receipt = self.chain.wait_for_confirmation(handle, self.confirmation_timeout)
        if not receipt.contract_address:
            raise ChainError(f"Deploy receipt for {spec.name} has no contract address")
        return receipt

    def _advance(self, run: ModuleRun, new_state: ModuleState, trigger: str,
                 context: Optional[dict[str, Any]] = None, **changes: Any) -> ModuleRun:
        new_run = run.transition(new_state, **changes)
        log_module_transition(
            self.logger,
            module=run.module,
            from_state=run.state.value,
            to_state=new_state.value,
            trigger=trigger,
            context=context
        )
        return new_run

    def _fail(self, run: ModuleRun, reason: FailureReason, error: str) -> ModuleRun:
        return self._advance(
            run, ModuleState.FAILED, reason.value,
            context={"error": error, "required": run.required},
            failure_reason=reason,
            error=error
        )
