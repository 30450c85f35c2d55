"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any

import pytest

from atlas_launch.chain.simulated import SimulatedChain
from atlas_launch.config.defaults import LaunchSettings, PresaleParams
from atlas_launch.persistence.checkpoint_store import CheckpointStore, DeploymentRecord
from atlas_launch.registry.models import ModuleKind

ADMIN = "0x" + "a1" * 20
PAYMENT_TOKEN = "0x" + "b2" * 20
ALICE = "0x" + "0a" * 20
BOB = "0x" + "0b" * 20


def address(n: int) -> str:
    """Deterministic test address."""
    return "0x" + f"{n:040x}"


@pytest.fixture
def settings() -> LaunchSettings:
    """Settings with the required keys filled in."""
    return LaunchSettings(
        vault_admin_address=ADMIN,
        presale=PresaleParams(payment_token_address=PAYMENT_TOKEN),
    )


@pytest.fixture
def chain() -> SimulatedChain:
    return SimulatedChain()


@pytest.fixture
def checkpoint_path(tmp_path: Path) -> Path:
    return tmp_path / "deployments" / "deployed_addresses.json"


@pytest.fixture
def checkpoint(checkpoint_path: Path) -> CheckpointStore:
    return CheckpointStore(checkpoint_path)


@pytest.fixture
def deployed_token(chain: SimulatedChain, checkpoint: CheckpointStore) -> str:
    """An AtlasToken deployed on the simulated chain and recorded."""
    handle = chain.deploy_upgradeable("token/AtlasToken", ["Atlas Token", "ATLAS", ADMIN])
    receipt = chain.wait_for_confirmation(handle, 1.0)
    checkpoint.put("AtlasToken", DeploymentRecord(
        module_name="AtlasToken",
        address=receipt.contract_address,
        kind=ModuleKind.UPGRADEABLE,
        implementation_address=receipt.implementation_address,
    ))
    return receipt.contract_address


def deploy_and_record(chain: SimulatedChain, checkpoint: CheckpointStore, name: str,
                      artifact: str, init_args: list[Any]) -> str:
    """Deploy a simple contract and record it in the checkpoint."""
    receipt = chain.wait_for_confirmation(chain.deploy_simple(artifact, init_args), 1.0)
    checkpoint.put(name, DeploymentRecord(module_name=name, address=receipt.contract_address,
                                          init_args=tuple(init_args)))
    return receipt.contract_address
