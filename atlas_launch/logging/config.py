"""
Centralized logging configuration for the launch orchestrator.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the system should use this
configuration to ensure consistent formatting and structured logging.
"""
import logging
import re
import sys
from typing import TYPE_CHECKING, Any, Optional

import structlog
from structlog.types import FilteringBoundLogger

if TYPE_CHECKING:
    from ..wiring.models import CapabilityGrant

# Event keys whose values must never reach the log output
SECRET_KEY_PATTERN = re.compile(r"(api_?key|private_?key|secret|password|mnemonic)", re.IGNORECASE)
REDACTED = "***"


def redact_secrets(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Structlog processor masking secret values, including inside nested dicts."""
    return _redact(event_dict)


def _redact(data: dict[str, Any]) -> dict[str, Any]:
    redacted = {}
    for key, value in data.items():
        if isinstance(key, str) and SECRET_KEY_PATTERN.search(key) and value:
            redacted[key] = REDACTED
        elif isinstance(value, dict):
            redacted[key] = _redact(value)
        else:
            redacted[key] = value
    return redacted


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include

    Secret-looking keys such as ``api_key`` are always masked, so the
    verification key and signer credentials never reach log output.
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stdout,
        format="%(message)s"  # structlog will handle formatting
    )
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(log_level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_deploy_logger(name: str) -> FilteringBoundLogger:
    """Logger bound for module deployment state transitions."""
    return get_logger(name).bind(
        subsystem="deployment",
        audit_trail=True
    )


def get_wiring_logger(name: str) -> FilteringBoundLogger:
    """Logger bound for capability grant decisions."""
    return get_logger(name).bind(
        subsystem="wiring",
        audit_trail=True
    )


def get_funding_logger(name: str) -> FilteringBoundLogger:
    """Logger bound for supply allocation and vesting."""
    return get_logger(name).bind(
        subsystem="funding",
        audit_trail=True
    )


def log_module_transition(
    logger: FilteringBoundLogger,
    module: str,
    from_state: str,
    to_state: str,
    trigger: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log a module state transition with standardized format.

    Args:
        logger: Structlog logger instance
        module: Name of the module transitioning
        from_state: Current state
        to_state: Target state
        trigger: What triggered the transition
        context: Additional context data
    """
    bound_logger = logger.bind(
        module=module,
        from_state=from_state,
        to_state=to_state,
        trigger=trigger,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if to_state == "failed":
        bound_logger.warning("Module state transition")
    else:
        bound_logger.info("Module state transition")


def log_grant_decision(
    logger: FilteringBoundLogger,
    grant: "CapabilityGrant",
    applied: bool,
    reason: str,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log the outcome of a capability grant with standardized format.

    Failed optional grants are warnings; failed required grants are errors.
    """
    bound_logger = logger.bind(
        role=grant.role,
        grantee=grant.grantee_module,
        target=grant.target_module,
        optional=grant.optional,
        grant_result="APPLIED" if applied else "FAILED",
        reason=reason,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if applied:
        bound_logger.info("Capability grant applied")
    elif grant.optional:
        bound_logger.warning("Optional capability grant failed, continuing")
    else:
        bound_logger.error("Required capability grant failed")
