"""Tests for logging configuration and standardized log helpers."""

import logging
from unittest.mock import Mock

import structlog

from atlas_launch.logging.config import (
    REDACTED,
    configure_logging,
    get_deploy_logger,
    log_grant_decision,
    log_module_transition,
    redact_secrets,
)
from atlas_launch.wiring.models import CapabilityGrant


class TestConfigureLogging:
    """Test structlog setup."""

    def teardown_method(self):
        structlog.reset_defaults()

    def test_sets_level(self):
        configure_logging(level="WARNING", format_json=True)
        assert logging.getLogger().level <= logging.WARNING

    def test_deploy_logger_binds_subsystem(self):
        logger = get_deploy_logger("test")
        assert logger is not None


class TestLogHelpers:
    """Test standardized log helpers."""

    def _logger(self):
        logger = Mock()
        logger.bind.return_value = logger
        return logger

    def test_module_transition_info(self):
        logger = self._logger()
        log_module_transition(logger, "AtlasToken", "deploying", "recorded", "deploy_confirmed",
                              context={"address": "0x1"})

        logger.bind.assert_any_call(module="AtlasToken", from_state="deploying",
                                    to_state="recorded", trigger="deploy_confirmed")
        logger.info.assert_called_once_with("Module state transition")

    def test_module_failure_is_warning(self):
        logger = self._logger()
        log_module_transition(logger, "Launchpad", "deploying", "failed", "deploy_reverted")
        logger.warning.assert_called_once_with("Module state transition")

    def test_grant_levels(self):
        optional = CapabilityGrant("LP_SINK", "LPRewardSink", "RewardDistributorV2",
                                   optional=True, method="setLpSink")
        required = CapabilityGrant("MINTER_ROLE", "AtlasVault", "AtlasToken")

        logger = self._logger()
        log_grant_decision(logger, required, applied=True, reason="confirmed")
        log_grant_decision(logger, optional, applied=False, reason="not deployed")
        log_grant_decision(logger, required, applied=False, reason="reverted")

        logger.info.assert_called_once_with("Capability grant applied")
        logger.warning.assert_called_once_with("Optional capability grant failed, continuing")
        logger.error.assert_called_once_with("Required capability grant failed")


class TestRedactSecrets:
    """Test masking of secret values in log events."""

    def test_masks_secret_keys(self):
        event = {"event": "Verifier configured", "api_key": "abc123", "url": "https://x"}

        redacted = redact_secrets(None, "info", event)

        assert redacted["api_key"] == REDACTED
        assert redacted["url"] == "https://x"

    def test_masks_nested_context(self):
        event = {"event": "Config loaded", "context": {"VERIFY_API_KEY": "abc", "LOG_LEVEL": "INFO"}}

        redacted = redact_secrets(None, "info", event)

        assert redacted["context"] == {"VERIFY_API_KEY": REDACTED, "LOG_LEVEL": "INFO"}

    def test_empty_secret_left_alone(self):
        assert redact_secrets(None, "info", {"api_key": None})["api_key"] is None
