"""Base classes for the blockchain collaborator."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

import structlog

from ..errors import ChainError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TxHandle:
    """A submitted, not yet confirmed, transaction."""
    tx_id: str
    description: str = ""


@dataclass(frozen=True)
class Receipt:
    """Confirmation of a mined transaction."""
    tx_id: str
    block_number: int
    contract_address: Optional[str] = None        # proxy for upgradeable deploys
    implementation_address: Optional[str] = None


@dataclass(frozen=True)
class ContractCall:
    """A single state-changing call, used in atomic batches."""
    address: str
    method: str
    args: tuple[Any, ...] = field(default_factory=tuple)


class ChainClient(ABC):
    """Opaque deploy/call/transfer/confirm primitives.

    Submission methods return a TxHandle immediately; callers must
    ``wait_for_confirmation`` before relying on the result. A confirmation
    timeout raises ConfirmationTimeoutError and the transaction must not be
    re-submitted, since it may still land.
    """

    @property
    @abstractmethod
    def default_sender(self) -> str:
        """Address that signs submitted transactions."""

    @abstractmethod
    def deploy_simple(self, artifact: str, init_args: Sequence[Any]) -> TxHandle:
        """Deploy a plain contract."""

    @abstractmethod
    def deploy_upgradeable(self, artifact: str, init_args: Sequence[Any]) -> TxHandle:
        """Deploy an implementation behind a proxy and run its initializer."""

    @abstractmethod
    def call(self, address: str, method: str, args: Sequence[Any]) -> TxHandle:
        """Submit a state-changing contract call."""

    @abstractmethod
    def read(self, address: str, method: str, args: Sequence[Any] = ()) -> Any:
        """Evaluate a view method. Raises ChainError if it reverts or is missing."""

    @abstractmethod
    def submit_batch(self, calls: Sequence[ContractCall]) -> TxHandle:
        """Submit calls that either all succeed or all revert."""

    @abstractmethod
    def wait_for_confirmation(self, handle: TxHandle, timeout_seconds: float) -> Receipt:
        """Block until mined. Raises ConfirmationTimeoutError or ChainError."""

    # Token and access-control helpers

    def balance_of(self, token: str, holder: str) -> int:
        return int(self.read(token, "balanceOf", [holder]))

    def decimals(self, token: str) -> Optional[int]:
        """Token decimals, or None if the token does not report them."""
        try:
            return int(self.read(token, "decimals"))
        except ChainError as e:
            logger.debug("Token does not report decimals", token=token, error=str(e))
            return None

    def mint(self, token: str, to: str, amount_units: int) -> TxHandle:
        return self.call(token, "mint", [to, amount_units])

    def transfer(self, token: str, to: str, amount_units: int) -> TxHandle:
        return self.call(token, "transfer", [to, amount_units])

    def approve(self, token: str, spender: str, amount_units: int) -> TxHandle:
        return self.call(token, "approve", [spender, amount_units])

    def grant_role(self, target: str, role: str, grantee: str) -> TxHandle:
        return self.call(target, "grantRole", [role, grantee])
