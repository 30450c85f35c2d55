"""
Module registry with deterministic topological ordering.

``register`` requires dependencies to be registered first. ``register_all``
accepts a batch with forward references between its members, which is the
only way a cycle can enter the registry; ``resolve_order`` rejects it.
"""

from typing import Iterator, Optional

import structlog

from ..errors import (
    CyclicDependencyError,
    DuplicateModuleError,
    UnknownDependencyError,
)
from .models import ModuleSpec

logger = structlog.get_logger(__name__)


class ModuleRegistry:
    """Ordered collection of ModuleSpecs keyed by name."""

    def __init__(self) -> None:
        self._specs: dict[str, ModuleSpec] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __iter__(self) -> Iterator[ModuleSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    @property
    def names(self) -> list[str]:
        """Module names in registration order."""
        return list(self._specs)

    def register(self, spec: ModuleSpec) -> ModuleSpec:
        """Add a module. Its dependencies must already be registered."""
        if spec.name in self._specs:
            raise DuplicateModuleError(
                f"Module already registered: {spec.name}",
                module=spec.name
            )

        for dependency in sorted(spec.dependencies):
            if dependency not in self._specs:
                raise UnknownDependencyError(
                    f"Module {spec.name} depends on unregistered module {dependency}",
                    module=spec.name,
                    dependency=dependency
                )

        self._specs[spec.name] = spec
        logger.debug(
            "Module registered",
            module=spec.name,
            kind=spec.kind.value,
            dependencies=sorted(spec.dependencies),
            required=spec.required
        )
        return spec

    def register_all(self, specs: list[ModuleSpec]) -> None:
        """Add a batch of modules that may reference each other in any order."""
        batch_names: set[str] = set()
        for spec in specs:
            if spec.name in self._specs or spec.name in batch_names:
                raise DuplicateModuleError(
                    f"Module already registered: {spec.name}",
                    module=spec.name
                )
            batch_names.add(spec.name)

        for spec in specs:
            for dependency in sorted(spec.dependencies):
                if dependency not in self._specs and dependency not in batch_names:
                    raise UnknownDependencyError(
                        f"Module {spec.name} depends on unregistered module {dependency}",
                        module=spec.name,
                        dependency=dependency
                    )

        for spec in specs:
            self._specs[spec.name] = spec

    def get(self, name: str) -> ModuleSpec:
        """Get a registered spec by name."""
        try:
            return self._specs[name]
        except KeyError:
            raise UnknownDependencyError(f"Unknown module: {name}", module=name) from None

    def dependents_of(self, name: str) -> list[str]:
        """Direct dependents of a module, in registration order."""
        return [spec.name for spec in self._specs.values() if name in spec.dependencies]

    def resolve_order(self) -> list[ModuleSpec]:
        """
        Topologically sort the registered modules.

        Every module appears exactly once, after all of its dependencies.
        Among modules whose dependencies are satisfied, registration order
        wins, so the result is stable across runs.

        Raises:
            CyclicDependencyError: naming one offending cycle
        """
        cycle = self._find_cycle()
        if cycle:
            raise CyclicDependencyError(cycle)

        position = {name: index for index, name in enumerate(self._specs)}
        remaining = {name: set(spec.dependencies) for name, spec in self._specs.items()}
        ordered: list[ModuleSpec] = []

        while remaining:
            ready = [name for name, deps in remaining.items() if not deps]
            # No cycle, so something is always ready
            name = min(ready, key=position.__getitem__)
            ordered.append(self._specs[name])
            del remaining[name]
            for deps in remaining.values():
                deps.discard(name)

        return ordered

    def dependencies_closure(self, name: str) -> list[str]:
        """The module and all of its transitive dependencies, in deploy order."""
        wanted = set()
        stack = [self.get(name).name]
        while stack:
            current = stack.pop()
            if current in wanted:
                continue
            wanted.add(current)
            stack.extend(self._specs[current].dependencies)

        return [spec.name for spec in self.resolve_order() if spec.name in wanted]

    def dependents_closure(self, name: str) -> list[str]:
        """All transitive dependents of a module, in deploy order."""
        affected: set[str] = set()
        stack = [self.get(name).name]
        while stack:
            current = stack.pop()
            for dependent in self.dependents_of(current):
                if dependent not in affected:
                    affected.add(dependent)
                    stack.append(dependent)

        return [spec.name for spec in self.resolve_order() if spec.name in affected]

    def _find_cycle(self) -> Optional[list[str]]:
        """Detect a cycle using DFS; returns the cycle path or None."""
        WHITE, GRAY, BLACK = 0, 1, 2
        color = {name: WHITE for name in self._specs}

        def dfs(node: str, path: list[str]) -> Optional[list[str]]:
            color[node] = GRAY
            path.append(node)

            for dependency in sorted(self._specs[node].dependencies):
                if dependency not in color:
                    continue
                if color[dependency] == GRAY:
                    return path[path.index(dependency):]
                if color[dependency] == WHITE:
                    found = dfs(dependency, path)
                    if found:
                        return found

            color[node] = BLACK
            path.pop()
            return None

        for name in self._specs:
            if color[name] == WHITE:
                cycle = dfs(name, [])
                if cycle:
                    return cycle
        return None
