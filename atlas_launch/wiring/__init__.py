"""
Post-deploy capability wiring between modules.
"""
from .engine import CapabilityWiringEngine
from .models import CapabilityGrant, GrantResult

__all__ = ["CapabilityWiringEngine", "CapabilityGrant", "GrantResult"]
