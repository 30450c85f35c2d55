"""
Deterministic in-process chain backend.

Used for dry runs and tests. Transactions are queued on submission and
applied when confirmed; batches are applied to a scratch copy of the state
and committed only if every call succeeds. Failures and confirmation
timeouts can be injected per artifact or per method name.
"""

import copy
import hashlib
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional, Sequence

import structlog

from ..errors import ChainError, ConfirmationTimeoutError
from .base import ChainClient, ContractCall, Receipt, TxHandle

if TYPE_CHECKING:
    from ..config.defaults import LaunchSettings

logger = structlog.get_logger(__name__)

DEFAULT_SENDER = "0x" + "d0" * 20


@dataclass
class _ChainState:
    contracts: dict[str, dict[str, Any]] = field(default_factory=dict)
    balances: dict[str, dict[str, int]] = field(default_factory=dict)
    allowances: dict[tuple[str, str, str], int] = field(default_factory=dict)
    roles: set[tuple[str, str, str]] = field(default_factory=set)
    settings: dict[tuple[str, str], tuple[Any, ...]] = field(default_factory=dict)
    schedules: dict[str, dict[str, tuple[Any, ...]]] = field(default_factory=dict)


class SimulatedChain(ChainClient):
    """In-memory chain with injectable failures.

    Safe to share between wiring worker threads: submission and confirmation
    are serialized on one lock.
    """

    def __init__(self, settings: Optional["LaunchSettings"] = None,
                 sender: str = DEFAULT_SENDER, token_decimals: int = 18):
        self._sender = sender
        self.token_decimals = token_decimals
        self.state = _ChainState()
        self.block_number = 0
        self.submitted: list[tuple[Any, ...]] = []
        self._nonce = 0
        self._pending: dict[str, Callable[[_ChainState], Receipt]] = {}
        self._failures: dict[str, Optional[int]] = {}
        self._timeouts: dict[str, Optional[int]] = {}
        self._lock = threading.RLock()

    @property
    def default_sender(self) -> str:
        return self._sender

    # Fault injection

    def inject_failure(self, key: str, times: Optional[int] = 1) -> None:
        """Revert the next ``times`` transactions matching an artifact or method."""
        self._failures[key] = times

    def inject_timeout(self, key: str, times: Optional[int] = 1) -> None:
        """Never confirm the next ``times`` transactions matching the key."""
        self._timeouts[key] = times

    def deploy_count(self, artifact: str) -> int:
        return sum(1 for entry in self.submitted if entry[0] == "deploy" and entry[1] == artifact)

    def calls_to(self, method: str) -> list[tuple[Any, ...]]:
        return [entry for entry in self.submitted if entry[0] == "call" and entry[2] == method]

    # Submission

    def deploy_simple(self, artifact: str, init_args: Sequence[Any]) -> TxHandle:
        with self._lock:
            self.submitted.append(("deploy", artifact, tuple(init_args)))
            address = self._next_address()

            def apply(state: _ChainState) -> Receipt:
                state.contracts[address] = {
                    "artifact": artifact,
                    "init_args": tuple(init_args),
                    "implementation": None,
                }
                return self._receipt(contract_address=address)

            return self._queue(artifact, f"deploy {artifact}", apply)

    def deploy_upgradeable(self, artifact: str, init_args: Sequence[Any]) -> TxHandle:
        with self._lock:
            self.submitted.append(("deploy", artifact, tuple(init_args)))
            implementation = self._next_address()
            proxy = self._next_address()

            def apply(state: _ChainState) -> Receipt:
                state.contracts[implementation] = {
                    "artifact": artifact, "init_args": (), "implementation": None,
                }
                state.contracts[proxy] = {
                    "artifact": artifact,
                    "init_args": tuple(init_args),
                    "implementation": implementation,
                }
                return self._receipt(contract_address=proxy,
                                     implementation_address=implementation)

            return self._queue(artifact, f"deploy proxy {artifact}", apply)

    def call(self, address: str, method: str, args: Sequence[Any]) -> TxHandle:
        with self._lock:
            self.submitted.append(("call", address, method, tuple(args)))
            contract_call = ContractCall(address, method, tuple(args))

            def apply(state: _ChainState) -> Receipt:
                self._execute(state, contract_call)
                return self._receipt()

            return self._queue(method, f"{method} on {address}", apply)

    def submit_batch(self, calls: Sequence[ContractCall]) -> TxHandle:
        with self._lock:
            self.submitted.append(("batch", tuple(calls)))
            batch = list(calls)

            def apply(state: _ChainState) -> Receipt:
                scratch = copy.deepcopy(state)
                for contract_call in batch:
                    self._check_injected(contract_call.method)
                    self._execute(scratch, contract_call)
                state.__dict__.update(scratch.__dict__)
                return self._receipt()

            return self._queue("batch", f"batch of {len(batch)} calls", apply)

    def wait_for_confirmation(self, handle: TxHandle, timeout_seconds: float) -> Receipt:
        with self._lock:
            try:
                apply = self._pending.pop(handle.tx_id)
            except KeyError:
                raise ChainError(f"Unknown transaction {handle.tx_id}") from None

            if apply is _NEVER_CONFIRMED:
                raise ConfirmationTimeoutError(
                    f"Transaction {handle.tx_id} not confirmed within {timeout_seconds}s",
                    handle=handle.tx_id,
                    timeout_seconds=timeout_seconds
                )

            receipt = apply(self.state)
            self.block_number += 1
            return receipt

    # Views

    def read(self, address: str, method: str, args: Sequence[Any] = ()) -> Any:
        if method == "balanceOf":
            return self.state.balances.get(address, {}).get(args[0], 0)
        if method == "decimals":
            contract = self.state.contracts.get(address)
            if contract and "Token" in contract["artifact"]:
                return self.token_decimals
            raise ChainError("decimals() not available", method=method, address=address)
        if method == "allowance":
            return self.state.allowances.get((address, args[0], args[1]), 0)
        if method == "hasRole":
            return (address, args[0], args[1]) in self.state.roles
        if method == "hasSchedule":
            return args[0] in self.state.schedules.get(address, {})
        raise ChainError(f"View {method} not supported", method=method, address=address)

    # Internals

    def _next_address(self) -> str:
        self._nonce += 1
        digest = hashlib.sha256(f"{self._sender}:{self._nonce}".encode()).hexdigest()
        return "0x" + digest[:40]

    def _receipt(self, **kwargs: Any) -> Receipt:
        return Receipt(tx_id=f"0x{self.block_number + 1:064x}",
                       block_number=self.block_number + 1, **kwargs)

    def _queue(self, key: str, description: str,
               apply: Callable[[_ChainState], Receipt]) -> TxHandle:
        tx_id = f"tx-{len(self.submitted)}"
        handle = TxHandle(tx_id=tx_id, description=description)

        if self._consume(self._timeouts, key):
            self._pending[tx_id] = _NEVER_CONFIRMED
            return handle

        def guarded(state: _ChainState) -> Receipt:
            self._check_injected(key)
            return apply(state)

        self._pending[tx_id] = guarded
        return handle

    def _check_injected(self, key: str) -> None:
        if self._consume(self._failures, key):
            raise ChainError(f"Transaction reverted: {key}", method=key)

    @staticmethod
    def _consume(table: dict[str, Optional[int]], key: str) -> bool:
        if key not in table:
            return False
        remaining = table[key]
        if remaining is None:
            return True
        if remaining <= 1:
            del table[key]
        else:
            table[key] = remaining - 1
        return True

    def _execute(self, state: _ChainState, contract_call: ContractCall) -> None:
        address, method, args = contract_call.address, contract_call.method, contract_call.args
        sender = self._sender

        if method == "mint":
            to, amount = args
            balances = state.balances.setdefault(address, {})
            balances[to] = balances.get(to, 0) + int(amount)
        elif method == "transfer":
            to, amount = args
            self._move(state, address, sender, to, int(amount))
        elif method == "approve":
            spender, amount = args
            state.allowances[(address, sender, spender)] = int(amount)
        elif method == "grantRole":
            role, grantee = args
            state.roles.add((address, role, grantee))
        elif method == "createSchedule":
            self._create_schedule(state, address, sender, args)
        else:
            state.settings[(address, method)] = tuple(args)

    def _move(self, state: _ChainState, token: str, source: str, to: str, amount: int) -> None:
        balances = state.balances.setdefault(token, {})
        if balances.get(source, 0) < amount:
            raise ChainError("ERC20: transfer amount exceeds balance",
                             method="transfer", address=token)
        balances[source] -= amount
        balances[to] = balances.get(to, 0) + amount

    def _create_schedule(self, state: _ChainState, vesting: str, sender: str,
                         args: tuple[Any, ...]) -> None:
        beneficiary, amount = args[0], int(args[1])
        contract = state.contracts.get(vesting)
        if contract is None or not contract["init_args"]:
            raise ChainError("Vesting contract unknown", method="createSchedule", address=vesting)
        token = contract["init_args"][0]

        allowance = state.allowances.get((token, sender, vesting), 0)
        if allowance < amount:
            raise ChainError("ERC20: insufficient allowance",
                             method="createSchedule", address=vesting)
        state.allowances[(token, sender, vesting)] = allowance - amount
        self._move(state, token, sender, vesting, amount)
        state.schedules.setdefault(vesting, {})[beneficiary] = tuple(args)


def _never_confirmed(state: _ChainState) -> Receipt:
    raise AssertionError("timed out transactions are never applied")


_NEVER_CONFIRMED = _never_confirmed
