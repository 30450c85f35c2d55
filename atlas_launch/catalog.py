"""
The Atlas launch catalog.

Declares every Atlas module, what it depends on and how its init arguments
are built, plus the post-deploy grants and the supply split. Deployment
order is derived from these declarations, never written by hand.
"""

from typing import Any, Mapping

from .allocation.units import parse_units
from .config.defaults import LaunchSettings
from .errors import ConfigurationError
from .registry.graph import ModuleRegistry
from .registry.models import ModuleKind, ModuleSpec
from .wiring.models import CapabilityGrant

TOKEN = "AtlasToken"
VESTING = "Vesting"
PRESALE = "Presale"
LAUNCHPAD = "Launchpad"
BRIDGE = "AtlasBridge"
VAULT = "AtlasVault"
WETH = "WETH"
FACTORY = "AtlasFactory"
ROUTER = "AtlasRouter"
REWARD_DISTRIBUTOR = "RewardDistributorV2"
LP_SINK = "LPRewardSink"
STAKING_SINK = "StakingRewardSink"


def _token_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    return [settings.token.name, settings.token.symbol, settings.vault_admin_address]


def _token_and_admin_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    return [addresses[TOKEN], settings.vault_admin_address]


def _presale_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    payment_token = settings.presale.payment_token_address
    if not payment_token:
        raise ConfigurationError("PAYMENT_TOKEN_ADDRESS is required to deploy the presale")
    return [
        addresses[TOKEN],
        addresses[VESTING],
        payment_token,
        parse_units(settings.presale.price, 0),
        settings.vault_admin_address,
    ]


def _bridge_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    return [addresses[TOKEN]]


def _factory_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    return [settings.fee_to_setter]


def _router_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    weth = settings.deploy.weth_address or addresses[WETH]
    return [addresses[FACTORY], weth]


def _distributor_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    return [addresses[VAULT], addresses[TOKEN]]


def _vault_only_args(addresses: Mapping[str, str], settings: LaunchSettings) -> list[Any]:
    return [addresses[VAULT]]


def build_registry(settings: LaunchSettings) -> ModuleRegistry:
    """Register every Atlas module for the given settings."""
    registry = ModuleRegistry()

    registry.register(ModuleSpec(TOKEN, ModuleKind.UPGRADEABLE,
                                 init_args_builder=_token_args,
                                 artifact="token/AtlasToken"))
    registry.register(ModuleSpec(VESTING, dependencies={TOKEN},
                                 init_args_builder=_token_and_admin_args,
                                 artifact="presale/Vesting"))
    registry.register(ModuleSpec(PRESALE, dependencies={TOKEN, VESTING},
                                 init_args_builder=_presale_args,
                                 artifact="presale/Presale"))
    registry.register(ModuleSpec(LAUNCHPAD, dependencies={TOKEN},
                                 init_args_builder=_token_and_admin_args,
                                 required=False,
                                 artifact="launchpad/Launchpad"))
    registry.register(ModuleSpec(BRIDGE, dependencies={TOKEN},
                                 init_args_builder=_bridge_args,
                                 artifact="token/AtlasBridge"))
    registry.register(ModuleSpec(VAULT, ModuleKind.UPGRADEABLE, dependencies={TOKEN},
                                 init_args_builder=_token_and_admin_args,
                                 artifact="vaults/AtlasVault"))

    router_dependencies = {FACTORY}
    if settings.deploy.weth_address is None:
        registry.register(ModuleSpec(WETH, artifact="WETH9"))
        router_dependencies.add(WETH)

    registry.register(ModuleSpec(FACTORY, init_args_builder=_factory_args,
                                 artifact="amm/AtlasFactory"))
    registry.register(ModuleSpec(ROUTER, dependencies=router_dependencies,
                                 init_args_builder=_router_args,
                                 artifact="amm/AtlasRouter"))
    registry.register(ModuleSpec(REWARD_DISTRIBUTOR, ModuleKind.UPGRADEABLE,
                                 dependencies={VAULT, TOKEN},
                                 init_args_builder=_distributor_args,
                                 artifact="rewards/RewardDistributorV2"))
    registry.register(ModuleSpec(LP_SINK, ModuleKind.UPGRADEABLE, dependencies={VAULT},
                                 init_args_builder=_vault_only_args,
                                 artifact="rewards/LPRewardSink"))
    registry.register(ModuleSpec(STAKING_SINK, ModuleKind.UPGRADEABLE, dependencies={VAULT},
                                 init_args_builder=_vault_only_args,
                                 artifact="rewards/StakingRewardSink"))

    return registry


def default_grants(settings: LaunchSettings) -> list[CapabilityGrant]:
    """Post-deploy grants, in application order."""
    return [
        CapabilityGrant("BRIDGE_ROLE", grantee_module=BRIDGE, target_module=TOKEN),
        CapabilityGrant("MINTER_ROLE", grantee_module=VAULT, target_module=TOKEN),
        CapabilityGrant("FEE_TO", grantee_module=settings.vault_admin_address,
                        target_module=FACTORY, method="setFeeTo"),
        CapabilityGrant("LP_SINK", grantee_module=LP_SINK, target_module=REWARD_DISTRIBUTOR,
                        optional=True, method="setLpSink"),
        CapabilityGrant("STAKING_SINK", grantee_module=STAKING_SINK,
                        target_module=REWARD_DISTRIBUTOR, optional=True,
                        method="setStakingSink"),
    ]


def default_allocations(settings: LaunchSettings) -> dict[str, str]:
    """Sink name to amount in whole tokens, in funding order."""
    return {
        "presale": settings.allocation.presale,
        "lp_rewards": settings.allocation.lp_rewards,
        "staking_rewards": settings.allocation.staking_rewards,
        "treasury": settings.allocation.treasury,
    }


def sink_aliases(settings: LaunchSettings) -> dict[str, str]:
    """Where each sink name points: a module name or a literal address."""
    return {
        "presale": PRESALE,
        "lp_rewards": LP_SINK,
        "staking_rewards": STAKING_SINK,
        "treasury": settings.vault_admin_address,
    }
