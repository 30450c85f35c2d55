"""
Recovery strategy classifications for error handling.

These help categorize errors by their recovery characteristics and guide
the retry and degradation paths.
"""

from typing import Optional


class RecoverableError(Exception):
    """Errors that can be retried automatically with bounded backoff."""

    def __init__(self, message: str, retry_count: int = 0,
                 max_retries: int = 5, **kwargs):
        super().__init__(message)
        self.retry_count = retry_count
        self.max_retries = max_retries
        self.recoverable = True


class GracefulDegradationError(Exception):
    """Errors that allow the run to continue with reduced functionality."""

    def __init__(self, message: str, degraded_functionality: Optional[str] = None,
                 fallback_strategy: Optional[str] = None, **kwargs):
        super().__init__(message)
        self.degraded_functionality = degraded_functionality
        self.fallback_strategy = fallback_strategy
        self.allows_degradation = True
