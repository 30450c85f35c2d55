"""Default configuration parameters for launch runs."""

from dataclasses import dataclass, field
from typing import Optional

SECONDS_PER_MONTH = 2592000                      # 30 days


@dataclass(frozen=True)
class TokenParams:
    """Token metadata passed to the token initializer."""
    name: str = "Atlas Token"
    symbol: str = "ATLAS"
    decimals: Optional[int] = None               # None = ask the token module


@dataclass(frozen=True)
class AllocationParams:
    """Supply split, as decimal strings in whole tokens."""
    total_supply: str = "10000000000"
    presale: str = "300000000"
    lp_rewards: str = "1000000000"
    staking_rewards: str = "0"
    treasury: str = "0"

    # Funding
    strategy: str = "mint_then_transfer"         # or mint_per_sink


@dataclass(frozen=True)
class PresaleParams:
    """Presale and presale vesting parameters."""
    price: str = "50000000"
    vesting_months: int = 1
    payment_token_address: Optional[str] = None


@dataclass(frozen=True)
class VestingParams:
    """Batch vesting schedule parameters."""
    beneficiaries: tuple[str, ...] = ()
    amounts: tuple[str, ...] = ()
    start: int = 0                               # 0 = start of the funding run
    cliff_seconds: int = 0
    duration_seconds: Optional[int] = None       # None = presale months * 30 days


@dataclass(frozen=True)
class DeployParams:
    """Deployment and wiring parameters."""
    checkpoint_path: str = "deployments/deployed_addresses.json"
    chain_backend: str = "atlas_launch.chain.simulated:SimulatedChain"
    confirmation_timeout_seconds: float = 120.0
    wiring_max_workers: int = 1
    weth_address: Optional[str] = None           # None = deploy WETH9
    fee_to_setter: Optional[str] = None          # None = vault admin


@dataclass(frozen=True)
class VerifyParams:
    """External verification retry parameters."""
    api_url: Optional[str] = None
    api_key: Optional[str] = None
    base_delay_seconds: float = 5.0
    max_retries: int = 5
    inter_request_delay_seconds: float = 1.0
    timeout_seconds: int = 30


@dataclass(frozen=True)
class LogParams:
    """Logging output parameters."""
    level: str = "INFO"
    format_json: bool = False


@dataclass(frozen=True)
class LaunchSettings:
    """Complete, validated configuration for one launch run."""
    vault_admin_address: str
    token: TokenParams = field(default_factory=TokenParams)
    allocation: AllocationParams = field(default_factory=AllocationParams)
    presale: PresaleParams = field(default_factory=PresaleParams)
    vesting: VestingParams = field(default_factory=VestingParams)
    deploy: DeployParams = field(default_factory=DeployParams)
    verify: VerifyParams = field(default_factory=VerifyParams)
    log: LogParams = field(default_factory=LogParams)

    @property
    def fee_to_setter(self) -> str:
        return self.deploy.fee_to_setter or self.vault_admin_address

    @property
    def vesting_duration_seconds(self) -> int:
        if self.vesting.duration_seconds is not None:
            return self.vesting.duration_seconds
        return self.presale.vesting_months * SECONDS_PER_MONTH


def get_default_settings(vault_admin_address: str) -> LaunchSettings:
    """Get a settings instance with every optional key at its default."""
    return LaunchSettings(vault_admin_address=vault_admin_address)
