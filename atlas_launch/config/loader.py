"""Configuration loader with 3-tier parameter precedence."""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import structlog
import yaml

from ..errors import ConfigurationError
from .defaults import LaunchSettings
from .validation import ConfigValidator, ValidationError

logger = structlog.get_logger(__name__)


def _text(value: Any) -> str:
    return str(value).strip()


def _integer(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("booleans are not integers")
    return int(str(value).strip())


def _number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError("booleans are not numbers")
    return float(str(value).strip())


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"not a boolean: {value!r}")


def _csv(value: Any) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(str(item).strip() for item in value)
    return tuple(item.strip() for item in str(value).split(",") if item.strip())


@dataclass(frozen=True)
class ConfigKey:
    """One flat configuration key and where it lands in LaunchSettings."""
    name: str
    section: Optional[str]
    attribute: str
    parser: Callable[[Any], Any] = _text
    required: bool = False


CONFIG_KEYS: tuple[ConfigKey, ...] = (
    ConfigKey("VAULT_ADMIN_ADDRESS", None, "vault_admin_address", required=True),
    ConfigKey("TOKEN_NAME", "token", "name"),
    ConfigKey("TOKEN_SYMBOL", "token", "symbol"),
    ConfigKey("TOKEN_DECIMALS", "token", "decimals", _integer),
    ConfigKey("TOTAL_SUPPLY", "allocation", "total_supply"),
    ConfigKey("PRESALE_ALLOCATION", "allocation", "presale"),
    ConfigKey("LP_REWARD_ALLOCATION", "allocation", "lp_rewards"),
    ConfigKey("STAKING_REWARD_ALLOCATION", "allocation", "staking_rewards"),
    ConfigKey("TREASURY_ALLOCATION", "allocation", "treasury"),
    ConfigKey("FUNDING_STRATEGY", "allocation", "strategy"),
    ConfigKey("PRESALE_PRICE", "presale", "price"),
    ConfigKey("PRESALE_VESTING_MONTHS", "presale", "vesting_months", _integer),
    ConfigKey("PAYMENT_TOKEN_ADDRESS", "presale", "payment_token_address", required=True),
    ConfigKey("VESTING_BENEFICIARIES", "vesting", "beneficiaries", _csv),
    ConfigKey("VESTING_AMOUNTS", "vesting", "amounts", _csv),
    ConfigKey("VESTING_START", "vesting", "start", _integer),
    ConfigKey("VESTING_CLIFF_SECONDS", "vesting", "cliff_seconds", _integer),
    ConfigKey("VESTING_DURATION_SECONDS", "vesting", "duration_seconds", _integer),
    ConfigKey("CHECKPOINT_PATH", "deploy", "checkpoint_path"),
    ConfigKey("CHAIN_BACKEND", "deploy", "chain_backend"),
    ConfigKey("CONFIRMATION_TIMEOUT_SECONDS", "deploy", "confirmation_timeout_seconds", _number),
    ConfigKey("WIRING_MAX_WORKERS", "deploy", "wiring_max_workers", _integer),
    ConfigKey("WETH_ADDRESS", "deploy", "weth_address"),
    ConfigKey("FEE_TO_SETTER", "deploy", "fee_to_setter"),
    ConfigKey("VERIFY_API_URL", "verify", "api_url"),
    ConfigKey("VERIFY_API_KEY", "verify", "api_key"),
    ConfigKey("VERIFY_BASE_DELAY_SECONDS", "verify", "base_delay_seconds", _number),
    ConfigKey("VERIFY_MAX_RETRIES", "verify", "max_retries", _integer),
    ConfigKey("VERIFY_INTER_REQUEST_DELAY_SECONDS", "verify", "inter_request_delay_seconds", _number),
    ConfigKey("VERIFY_TIMEOUT_SECONDS", "verify", "timeout_seconds", _integer),
    ConfigKey("LOG_LEVEL", "log", "level"),
    ConfigKey("LOG_JSON", "log", "format_json", _flag),
)

KNOWN_KEYS = {key.name: key for key in CONFIG_KEYS}


@dataclass(frozen=True)
class ConfigLoader:
    """Loads flat key-value configuration with 3-tier precedence."""

    config_path: Optional[Path]
    environ: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def create(
        cls,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ConfigLoader":
        """Create a ConfigLoader reading the given YAML file and environment."""
        return cls(
            config_path=Path(config_path) if config_path else None,
            environ=dict(os.environ) if environ is None else dict(environ),
        )

    def load_file(self) -> dict[str, Any]:
        """Load the flat YAML configuration file, if one was given."""
        if self.config_path is None:
            return {}

        if not self.config_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {self.config_path}",
                context={"path": str(self.config_path)}
            )

        with open(self.config_path) as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(
                    f"Configuration file is not valid YAML: {e}",
                    context={"path": str(self.config_path)}
                ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                "Configuration file must contain a flat mapping of keys to values",
                context={"path": str(self.config_path)}
            )

        return {str(key).upper(): value for key, value in data.items()}

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge raw configuration values with 3-tier precedence.

        Priority order:
        1. Explicit overrides, e.g. command line flags (highest priority)
        2. Environment variables
        3. Configuration file
        Keys absent from every tier fall back to the LaunchSettings defaults.
        """
        config = self.load_file()

        for name in KNOWN_KEYS:
            value = self.environ.get(name)
            if value is not None and value.strip() != "":
                config[name] = value

        if overrides:
            config.update({
                key.upper(): value for key, value in overrides.items() if value is not None
            })

        unknown = sorted(key for key in config if key not in KNOWN_KEYS)
        if unknown:
            logger.warning("Ignoring unknown configuration keys", keys=unknown)

        return {key: value for key, value in config.items() if key in KNOWN_KEYS}

    def load(self, overrides: Optional[dict[str, Any]] = None) -> LaunchSettings:
        """Load, parse and validate settings. Raises ConfigurationError."""
        raw = self.merge_config(overrides)
        parsed, errors = self._parse(raw)
        errors.extend(ConfigValidator.validate_config(parsed))

        if errors:
            summary = "; ".join(f"{e.field}: {e.message}" for e in errors)
            raise ConfigurationError(
                f"Invalid configuration: {summary}",
                errors=errors
            )

        settings = self._build(parsed)
        logger.info(
            "Configuration loaded",
            config_path=str(self.config_path) if self.config_path else None,
            keys=sorted(parsed)
        )
        return settings

    def _parse(self, raw: dict[str, Any]) -> tuple[dict[str, Any], list[ValidationError]]:
        """Convert raw values to their declared types."""
        parsed: dict[str, Any] = {}
        errors: list[ValidationError] = []

        for key in CONFIG_KEYS:
            value = raw.get(key.name)
            if value is None or (isinstance(value, str) and value.strip() == ""):
                if key.required:
                    errors.append(ValidationError(
                        field=key.name,
                        message="Required key is missing",
                        value=None
                    ))
                continue

            try:
                parsed[key.name] = key.parser(value)
            except ValueError:
                errors.append(ValidationError(
                    field=key.name,
                    message=f"Cannot parse value as {key.parser.__name__.lstrip('_')}",
                    value=value
                ))

        return parsed, errors

    def _build(self, parsed: dict[str, Any]) -> LaunchSettings:
        """Overlay parsed values onto the dataclass defaults."""
        settings = LaunchSettings(vault_admin_address=parsed["VAULT_ADMIN_ADDRESS"])

        sections: dict[str, dict[str, Any]] = {}
        for key in CONFIG_KEYS:
            if key.section is None or key.name not in parsed:
                continue
            sections.setdefault(key.section, {})[key.attribute] = parsed[key.name]

        for section, values in sections.items():
            settings = replace(settings, **{section: replace(getattr(settings, section), **values)})

        return settings
