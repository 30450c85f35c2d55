"""Checkpoint persistence layer: the source of truth for resuming a launch."""

import json
import os
import tempfile
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

import structlog

from ..config.validation import is_address
from ..errors import CheckpointConflictError, NotFoundError, PersistenceError
from ..registry.models import ModuleKind

logger = structlog.get_logger(__name__)

# Funding entry status for a transaction sent but not yet confirmed
SUBMITTED = "submitted"


@dataclass(frozen=True)
class DeploymentRecord:
    """Deployed address(es) of one module."""
    module_name: str
    address: str
    kind: ModuleKind = ModuleKind.SIMPLE
    implementation_address: Optional[str] = None
    init_args: tuple[Any, ...] = field(default_factory=tuple)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"address": self.address, "kind": self.kind.value}
        if self.implementation_address:
            data["implementationAddress"] = self.implementation_address
        if self.init_args:
            data["initArgs"] = list(self.init_args)
        return data

    @classmethod
    def from_json(cls, module_name: str, data: Union[str, dict[str, Any]]) -> "DeploymentRecord":
        # Older address files store a bare address string per module
        if isinstance(data, str):
            return cls(module_name=module_name, address=data)

        implementation = data.get("implementationAddress")
        kind = data.get("kind")
        if kind is None:
            kind = ModuleKind.UPGRADEABLE.value if implementation else ModuleKind.SIMPLE.value

        return cls(
            module_name=module_name,
            address=data["address"],
            kind=ModuleKind(kind),
            implementation_address=implementation,
            init_args=tuple(data.get("initArgs", ())),
        )


class CheckpointStore:
    """JSON file checkpoint with atomic read-merge-write updates.

    The checkpoint file maps module name to ``{address, implementationAddress?}``.
    Funded sinks live in a sibling ``<stem>.funding.json`` file written the
    same way.
    """

    def __init__(self, path: Union[str, Path] = "deployments/deployed_addresses.json"):
        self.path = Path(path)
        self.funding_path = self.path.with_name(f"{self.path.stem}.funding.json")
        self.logger = logger.bind(checkpoint=str(self.path))
        self._lock = threading.Lock()

    # Deployment records

    def load(self) -> dict[str, DeploymentRecord]:
        """Return the persisted records; empty if no checkpoint exists yet."""
        raw = self._read_json(self.path)
        try:
            return {name: DeploymentRecord.from_json(name, data) for name, data in raw.items()}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(
                f"Malformed checkpoint entry: {e}",
                operation="load",
                target=str(self.path)
            ) from e

    def has(self, name: str) -> bool:
        return name in self.load()

    def get(self, name: str) -> DeploymentRecord:
        records = self.load()
        if name not in records:
            raise NotFoundError(f"No deployment recorded for {name}", name=name)
        return records[name]

    def addresses(self) -> dict[str, str]:
        """Module name to primary (proxy) address."""
        return {name: record.address for name, record in self.load().items()}

    def resolve(self, name: str, aliases: Optional[dict[str, str]] = None) -> str:
        """Resolve a module name, alias or literal address to an address.

        An alias may point at a module name or at a literal address.
        """
        if is_address(name):
            return name
        records = self.load()
        if name in records:
            return records[name].address
        if aliases and name in aliases and aliases[name] != name:
            return self.resolve(aliases[name])
        raise NotFoundError(f"No deployment or address known for {name}", name=name)

    def put(self, name: str, record: DeploymentRecord, force: bool = False) -> None:
        """
        Persist a record, preserving every other entry.

        Args:
            name: Module name
            record: Record to store
            force: Allow replacing an existing record with a different address

        Raises:
            CheckpointConflictError: existing address differs and force is False
        """
        with self._lock:
            raw = self._read_json(self.path)
            existing = raw.get(name)
            if existing is not None and not force:
                existing_address = DeploymentRecord.from_json(name, existing).address
                if existing_address != record.address:
                    raise CheckpointConflictError(
                        f"{name} is already recorded at {existing_address}",
                        module=name,
                        existing_address=existing_address,
                        new_address=record.address,
                        target=str(self.path)
                    )

            raw[name] = record.to_json()
            self._write_json(self.path, raw)

        self.logger.info(
            "Deployment recorded",
            module=name,
            address=record.address,
            implementation_address=record.implementation_address,
            forced=force
        )

    # Funded flags

    def funded_sinks(self) -> dict[str, int]:
        """Sink name to funded amount in token units. Unconfirmed entries are excluded."""
        raw = self._read_json(self.funding_path)
        try:
            return {
                name: int(entry["amountUnits"])
                for name, entry in raw.items()
                if entry.get("status") != SUBMITTED
            }
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise PersistenceError(
                f"Malformed funding entry: {e}",
                operation="load",
                target=str(self.funding_path)
            ) from e

    def is_funded(self, sink: str) -> bool:
        return sink in self.funded_sinks()

    def funding_entry(self, name: str) -> Optional[dict[str, Any]]:
        """Raw funding entry for a sink or marker, or None."""
        entry = self._read_json(self.funding_path).get(name)
        return dict(entry) if isinstance(entry, dict) else None

    def pending_submission(self, name: str) -> Optional[str]:
        """Transaction id of a submission that was never confirmed, or None."""
        entry = self.funding_entry(name)
        if entry is None or entry.get("status") != SUBMITTED:
            return None
        return entry.get("txId")

    def mark_submitted(self, name: str, amount_units: int, tx_id: str, **details: Any) -> None:
        """Persist that a transaction was sent, before waiting for it to confirm.

        A later run must not send it again, since it may still land.
        """
        with self._lock:
            raw = self._read_json(self.funding_path)
            raw[name] = {
                "amountUnits": str(amount_units),
                "status": SUBMITTED,
                "txId": tx_id,
                "submittedAt": datetime.now(timezone.utc).isoformat(),
            }
            raw[name].update(details)
            self._write_json(self.funding_path, raw)

        self.logger.info("Funding transaction submitted", sink=name, tx_id=tx_id,
                         amount_units=amount_units)

    def clear_submission(self, name: str) -> None:
        """Drop a submitted entry whose transaction is known to have reverted."""
        with self._lock:
            raw = self._read_json(self.funding_path)
            entry = raw.get(name)
            if not isinstance(entry, dict) or entry.get("status") != SUBMITTED:
                return
            del raw[name]
            self._write_json(self.funding_path, raw)

        self.logger.info("Reverted funding transaction cleared", sink=name,
                         tx_id=entry.get("txId"))

    def mark_funded(self, sink: str, amount_units: int, **details: Any) -> None:
        """Persist that a sink received its allocation.

        Extra keyword details are stored alongside the amount. A transaction
        id recorded by ``mark_submitted`` is kept.
        """
        with self._lock:
            raw = self._read_json(self.funding_path)
            previous = raw.get(sink)
            entry: dict[str, Any] = {
                "amountUnits": str(amount_units),
                "fundedAt": datetime.now(timezone.utc).isoformat(),
            }
            if isinstance(previous, dict) and previous.get("txId"):
                entry["txId"] = previous["txId"]
            entry.update(details)
            raw[sink] = entry
            self._write_json(self.funding_path, raw)

        self.logger.info("Sink marked funded", sink=sink, amount_units=amount_units)

    # File handling

    def _read_json(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Cannot read checkpoint file: {e}",
                operation="read",
                target=str(path)
            ) from e

        if not isinstance(data, dict):
            raise PersistenceError(
                "Checkpoint file must contain a JSON object",
                operation="read",
                target=str(path)
            )
        return data

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        """Write via a temp file in the same directory and rename over the target."""
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.name}.",
                suffix=".tmp",
                delete=False
            ) as tmp:
                tmp_name = tmp.name
                json.dump(data, tmp, indent=2, sort_keys=True)
                tmp.write("\n")
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(
                f"Cannot write checkpoint file: {e}",
                operation="write",
                target=str(path)
            ) from e
