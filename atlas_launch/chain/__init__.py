"""
Blockchain collaborator interface and backends.
"""
import importlib
from typing import TYPE_CHECKING

from ..errors import ConfigurationError
from .base import ChainClient, ContractCall, Receipt, TxHandle

if TYPE_CHECKING:
    from ..config.defaults import LaunchSettings

__all__ = ["ChainClient", "ContractCall", "Receipt", "TxHandle", "load_chain_backend"]


def load_chain_backend(import_path: str, settings: "LaunchSettings") -> ChainClient:
    """Instantiate a chain backend from a ``package.module:factory`` path."""
    module_name, _, attribute = import_path.partition(":")
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(
            f"Cannot load chain backend {import_path!r}: {e}",
            context={"chain_backend": import_path}
        ) from e

    client = factory(settings)
    if not isinstance(client, ChainClient):
        raise ConfigurationError(
            f"Chain backend {import_path!r} did not produce a ChainClient",
            context={"chain_backend": import_path}
        )
    return client
