"""Configuration validation utilities."""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

FUNDING_STRATEGIES = ("mint_then_transfer", "mint_per_sink")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def is_address(value: Any) -> bool:
    """Check for a 0x-prefixed 20-byte hex address."""
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value))


class ConfigValidator:
    """Validates parsed configuration values, keyed by their flat key names."""

    @staticmethod
    def validate_addresses(params: dict[str, Any]) -> list[ValidationError]:
        """Validate address-valued keys that are present."""
        errors = []

        for key in (
            "VAULT_ADMIN_ADDRESS",
            "PAYMENT_TOKEN_ADDRESS",
            "WETH_ADDRESS",
            "FEE_TO_SETTER",
        ):
            if params.get(key) is None:
                continue
            value = params[key]
            if not is_address(value):
                errors.append(ValidationError(
                    field=key,
                    message="Must be a 0x-prefixed 20-byte hex address",
                    value=value
                ))

        for value in params.get("VESTING_BENEFICIARIES") or ():
            if not is_address(value):
                errors.append(ValidationError(
                    field="VESTING_BENEFICIARIES",
                    message="Every beneficiary must be a 0x-prefixed 20-byte hex address",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_allocation_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate supply and allocation amounts and the funding strategy."""
        errors = []

        for key in (
            "TOTAL_SUPPLY",
            "PRESALE_ALLOCATION",
            "LP_REWARD_ALLOCATION",
            "STAKING_REWARD_ALLOCATION",
            "TREASURY_ALLOCATION",
            "PRESALE_PRICE",
        ):
            if key not in params:
                continue
            value = params[key]
            try:
                amount = Decimal(str(value))
            except InvalidOperation:
                amount = None
            if amount is None or not amount.is_finite() or amount < 0:
                errors.append(ValidationError(
                    field=key,
                    message="Must be a non-negative decimal string",
                    value=value
                ))

        if "FUNDING_STRATEGY" in params:
            value = params["FUNDING_STRATEGY"]
            if value not in FUNDING_STRATEGIES:
                errors.append(ValidationError(
                    field="FUNDING_STRATEGY",
                    message=f"Must be one of {', '.join(FUNDING_STRATEGIES)}",
                    value=value
                ))

        if params.get("TOKEN_DECIMALS") is not None:
            value = params["TOKEN_DECIMALS"]
            if not 0 <= value <= 77:
                errors.append(ValidationError(
                    field="TOKEN_DECIMALS",
                    message="Must be between 0 and 77",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_schedule_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate presale and vesting schedule parameters."""
        errors = []

        for key in (
            "PRESALE_VESTING_MONTHS",
            "VESTING_START",
            "VESTING_CLIFF_SECONDS",
            "VESTING_DURATION_SECONDS",
        ):
            if params.get(key) is None:
                continue
            value = params[key]
            if value < 0:
                errors.append(ValidationError(
                    field=key,
                    message="Must be a non-negative integer",
                    value=value
                ))

        cliff = params.get("VESTING_CLIFF_SECONDS")
        duration = params.get("VESTING_DURATION_SECONDS")
        if cliff is not None and duration is not None and cliff > duration:
            errors.append(ValidationError(
                field="VESTING_CLIFF_SECONDS",
                message="Cliff must not exceed the vesting duration",
                value=cliff
            ))

        return errors

    @staticmethod
    def validate_runtime_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate timeouts, worker counts, retry and logging parameters."""
        errors = []

        for key in ("CONFIRMATION_TIMEOUT_SECONDS", "VERIFY_BASE_DELAY_SECONDS",
                    "VERIFY_TIMEOUT_SECONDS"):
            if key in params and params[key] <= 0:
                errors.append(ValidationError(
                    field=key,
                    message="Must be a positive number",
                    value=params[key]
                ))

        for key in ("VERIFY_MAX_RETRIES", "VERIFY_INTER_REQUEST_DELAY_SECONDS"):
            if key in params and params[key] < 0:
                errors.append(ValidationError(
                    field=key,
                    message="Must be a non-negative number",
                    value=params[key]
                ))

        if "WIRING_MAX_WORKERS" in params and params["WIRING_MAX_WORKERS"] < 1:
            errors.append(ValidationError(
                field="WIRING_MAX_WORKERS",
                message="Must be at least 1",
                value=params["WIRING_MAX_WORKERS"]
            ))

        if "CHAIN_BACKEND" in params and ":" not in params["CHAIN_BACKEND"]:
            errors.append(ValidationError(
                field="CHAIN_BACKEND",
                message="Must be an import path of the form 'package.module:factory'",
                value=params["CHAIN_BACKEND"]
            ))

        if "LOG_LEVEL" in params:
            value = params["LOG_LEVEL"]
            if not isinstance(logging.getLevelName(str(value).upper()), int):
                errors.append(ValidationError(
                    field="LOG_LEVEL",
                    message="Must be a standard logging level name",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        errors.extend(ConfigValidator.validate_addresses(config))
        errors.extend(ConfigValidator.validate_allocation_params(config))
        errors.extend(ConfigValidator.validate_schedule_params(config))
        errors.extend(ConfigValidator.validate_runtime_params(config))

        return errors
