"""
Best-effort, rate-limit-aware verification of deployed modules.
"""
from .base import VerificationOutcome, VerificationResponse, Verifier
from .http_verifier import HttpVerifier
from .retry import ModuleVerification, VerificationReport, VerificationRetryController

__all__ = [
    "VerificationOutcome",
    "VerificationResponse",
    "Verifier",
    "HttpVerifier",
    "ModuleVerification",
    "VerificationReport",
    "VerificationRetryController",
]
