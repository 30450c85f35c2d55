"""
Module declaration data models.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

if TYPE_CHECKING:
    from ..config.defaults import LaunchSettings


class ModuleKind(str, Enum):
    """How a module is deployed."""
    SIMPLE = "simple"
    UPGRADEABLE = "upgradeable"       # proxy + implementation


InitArgsBuilder = Callable[[Mapping[str, str], "LaunchSettings"], list[Any]]


def no_init_args(addresses: Mapping[str, str], settings: "LaunchSettings") -> list[Any]:
    """Init args builder for modules that take no arguments."""
    return []


@dataclass(frozen=True)
class ModuleSpec:
    """A deployable unit and the modules whose addresses it needs."""

    name: str
    kind: ModuleKind = ModuleKind.SIMPLE
    dependencies: frozenset[str] = field(default_factory=frozenset)
    init_args_builder: InitArgsBuilder = no_init_args
    required: bool = True
    artifact: Optional[str] = None    # contract artifact, defaults to name

    def __post_init__(self) -> None:
        # Accept any iterable of names for convenience
        if not isinstance(self.dependencies, frozenset):
            object.__setattr__(self, "dependencies", frozenset(self.dependencies))
        if self.name in self.dependencies:
            raise ValueError(f"Module {self.name!r} cannot depend on itself")

    @property
    def artifact_name(self) -> str:
        return self.artifact or self.name

    def build_init_args(self, addresses: Mapping[str, str],
                        settings: "LaunchSettings") -> list[Any]:
        """Build init arguments from dependency addresses only."""
        resolved = {name: addresses[name] for name in self.dependencies}
        return list(self.init_args_builder(resolved, settings))
