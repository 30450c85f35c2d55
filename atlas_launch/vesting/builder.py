"""
Vesting schedule batch builder.

``build`` is pure validation and never touches the chain. ``apply`` checks
balances and existing schedules, approves exactly the batch total and
submits every schedule in one atomic batch.
"""

from collections import Counter
from typing import Any, Optional, Sequence

from ..allocation.units import DEFAULT_DECIMALS, format_units, parse_units
from ..chain.base import ChainClient, ContractCall, Receipt
from ..errors import (
    ArityMismatchError,
    ChainError,
    DuplicateBeneficiaryError,
    InsufficientBalanceError,
    UnconfirmedTransactionError,
)
from ..logging.config import get_funding_logger
from ..persistence.checkpoint_store import CheckpointStore
from .models import VestingBatch, VestingSchedule

logger = get_funding_logger(__name__)


class VestingBatchBuilder:
    """Builds and atomically applies vesting schedules."""

    BATCH_MARKER = "@vesting_batch"

    def __init__(
        self,
        checkpoint: CheckpointStore,
        chain: ChainClient,
        token_module: str = "AtlasToken",
        vesting_module: str = "Vesting",
        confirmation_timeout: float = 120.0
    ) -> None:
        self.checkpoint = checkpoint
        self.chain = chain
        self.token_module = token_module
        self.vesting_module = vesting_module
        self.confirmation_timeout = confirmation_timeout
        self.logger = logger

    def build(
        self,
        beneficiaries: Sequence[str],
        amounts: Sequence[Any],
        start: int,
        cliff: int,
        duration: int,
        decimals: int = DEFAULT_DECIMALS,
        override: bool = False
    ) -> VestingBatch:
        """
        Validate inputs into a VestingBatch.

        Raises:
            ArityMismatchError: list lengths differ
            InvalidAmountError: an amount is malformed or not positive
            ConfigurationError: cliff exceeds duration
            DuplicateBeneficiaryError: a beneficiary is listed twice
        """
        if len(beneficiaries) != len(amounts):
            raise ArityMismatchError(
                f"{len(beneficiaries)} beneficiaries but {len(amounts)} amounts",
                expected=len(beneficiaries),
                actual=len(amounts)
            )

        duplicates = sorted(name for name, count in Counter(beneficiaries).items() if count > 1)
        if duplicates and not override:
            raise DuplicateBeneficiaryError(
                f"Beneficiaries listed more than once: {', '.join(duplicates)}",
                beneficiaries=duplicates
            )

        schedules = tuple(
            VestingSchedule(
                beneficiary=beneficiary,
                amount_units=parse_units(amount, decimals),
                start_timestamp=start,
                cliff_seconds=cliff,
                duration_seconds=duration,
            )
            for beneficiary, amount in zip(beneficiaries, amounts)
        )
        batch = VestingBatch(schedules=schedules, override=override)

        self.logger.info(
            "Vesting batch built",
            beneficiaries=len(schedules),
            total=format_units(batch.total_units, decimals),
            start=start,
            cliff_seconds=cliff,
            duration_seconds=duration
        )
        return batch

    def apply(self, batch: VestingBatch) -> Optional[Receipt]:
        """
        Create every schedule in the batch atomically.

        A batch identical to the one already recorded as applied is skipped,
        so a re-run after success makes no calls. The start time is not
        compared, since it defaults to the time of the run.

        Returns:
            The batch receipt, or None if the batch was already applied

        Raises:
            NotFoundError: token or vesting module not deployed
            DuplicateBeneficiaryError: a schedule already exists on chain
            InsufficientBalanceError: the signer cannot cover the batch total
            UnconfirmedTransactionError: an earlier batch may still land
        """
        if not batch.override and self._already_applied(batch):
            self.logger.info("Vesting batch already applied, skipping",
                             beneficiaries=batch.beneficiaries)
            return None

        token = self.checkpoint.resolve(self.token_module)
        vesting = self.checkpoint.resolve(self.vesting_module)
        holder = self.chain.default_sender
        total = batch.total_units

        pending_tx = self.checkpoint.pending_submission(self.BATCH_MARKER)
        if pending_tx is not None:
            self._reconcile_pending_batch(batch, vesting, pending_tx)
            return None

        if not batch.override:
            existing = [b for b in batch.beneficiaries
                        if self.chain.read(vesting, "hasSchedule", [b])]
            if existing:
                raise DuplicateBeneficiaryError(
                    f"Vesting schedules already exist for: {', '.join(existing)}",
                    beneficiaries=existing
                )

        available = self.chain.balance_of(token, holder)
        if available < total:
            raise InsufficientBalanceError(
                f"Holder {holder} has {available} units, vesting batch needs {total}",
                holder=holder,
                required_units=total,
                available_units=available
            )

        # Exact allowance for this batch only
        self.chain.wait_for_confirmation(
            self.chain.approve(token, vesting, total), self.confirmation_timeout
        )

        calls = [ContractCall(vesting, "createSchedule", schedule.as_call_args())
                 for schedule in batch.schedules]
        handle = self.chain.submit_batch(calls)
        self.checkpoint.mark_submitted(self.BATCH_MARKER, total, handle.tx_id,
                                       **self._terms(batch))
        try:
            receipt = self.chain.wait_for_confirmation(handle, self.confirmation_timeout)
        except ChainError:
            self.checkpoint.clear_submission(self.BATCH_MARKER)
            raise
        self.checkpoint.mark_funded(self.BATCH_MARKER, total, **self._terms(batch))

        self.logger.info(
            "Vesting schedules created",
            vesting=vesting,
            beneficiaries=batch.beneficiaries,
            total_units=total,
            block_number=receipt.block_number
        )
        return receipt

    def _already_applied(self, batch: VestingBatch) -> bool:
        entry = self.checkpoint.funding_entry(self.BATCH_MARKER)
        if entry is None or entry.get("status") is not None:
            return False
        terms = self._terms(batch)
        return all(entry.get(key) == value for key, value in terms.items())

    def _reconcile_pending_batch(self, batch: VestingBatch, vesting: str, tx_id: str) -> None:
        """Accept an unconfirmed earlier batch only if every schedule exists."""
        missing = [b for b in batch.beneficiaries
                   if not self.chain.read(vesting, "hasSchedule", [b])]
        if missing:
            raise UnconfirmedTransactionError(
                f"Vesting batch {tx_id} was sent by an earlier run but never confirmed, "
                f"and schedules are missing for: {', '.join(missing)}. "
                f"Reconcile the batch on chain before funding again",
                handle=tx_id,
                name=self.BATCH_MARKER,
                context={"missing": missing}
            )
        self.logger.warning("Earlier vesting batch landed after its confirmation timeout",
                            tx_id=tx_id, beneficiaries=batch.beneficiaries)
        self.checkpoint.mark_funded(self.BATCH_MARKER, batch.total_units, **self._terms(batch))

    @staticmethod
    def _terms(batch: VestingBatch) -> dict[str, Any]:
        return {
            "schedules": {s.beneficiary: str(s.amount_units) for s in batch.schedules},
            "cliffSeconds": sorted({s.cliff_seconds for s in batch.schedules}),
            "durationSeconds": sorted({s.duration_seconds for s in batch.schedules}),
        }
