"""
Pre-flight error classifications.

These are raised while validating configuration and the module graph,
before the orchestrator talks to the chain. None of them is recoverable
without changing the inputs.
"""

from typing import Any, Optional


class PreflightError(Exception):
    """Base class for errors detected before any external call."""

    def __init__(self, message: str, context: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class ConfigurationError(PreflightError):
    """Missing or invalid configuration keys."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []


class InvalidAmountError(ConfigurationError):
    """A decimal amount that cannot be represented exactly in token units."""

    def __init__(self, message: str, raw_value: Any = None,
                 decimals: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.raw_value = raw_value
        self.decimals = decimals


class DuplicateModuleError(PreflightError):
    """A module name was registered twice."""

    def __init__(self, message: str, module: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.module = module


class UnknownDependencyError(PreflightError):
    """A module declares a dependency that is not registered."""

    def __init__(self, message: str, module: Optional[str] = None,
                 dependency: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.module = module
        self.dependency = dependency


class CyclicDependencyError(PreflightError):
    """The module graph contains a cycle."""

    def __init__(self, cycle: list[str], **kwargs):
        self.cycle = cycle
        cycle_str = " -> ".join(cycle + cycle[:1])
        super().__init__(f"Cycle detected in module graph: {cycle_str}", **kwargs)
