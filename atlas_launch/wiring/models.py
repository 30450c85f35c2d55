"""Capability grant data models."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class CapabilityGrant:
    """Authorization from a target module to a grantee.

    With ``method`` unset the grant goes through the role-grant primitive
    (``grantRole(role, grantee)`` on the target). Otherwise ``method`` names a
    single-address setter on the target, such as ``setLpSink``, and ``role``
    only labels the grant. ``grantee_module`` may be a literal address.
    """
    role: str
    grantee_module: str
    target_module: str
    optional: bool = False
    method: Optional[str] = None

    @property
    def label(self) -> str:
        via = self.method or "grantRole"
        return f"{self.target_module}.{via}({self.role} -> {self.grantee_module})"


@dataclass(frozen=True)
class GrantResult:
    """Outcome of applying one grant."""
    grant: CapabilityGrant
    applied: bool
    target_address: Optional[str] = None
    grantee_address: Optional[str] = None
    error: Optional[Exception] = None
