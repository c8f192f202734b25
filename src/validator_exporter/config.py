from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .exceptions import ConfigError, ValidationError
from .settings import AppSettings, get_settings

DEFAULT_ENV_PATH = Path.cwd().joinpath(".env").resolve()

load_dotenv(DEFAULT_ENV_PATH)


@dataclass(frozen=True, slots=True)
class TrackedValidator:
    """A validator identity polled from the API.

    ``account`` is the identity key; ``address`` is the value published in the
    ``address`` metric label and defaults to the operator address.
    """

    name: str

    account: str

    operator_address: str

    address: str = ""

    enabled: bool = True

    @property
    def label_address(self) -> str:
        return self.address or self.operator_address

    def label_values(self) -> tuple[str, str]:
        return (self.label_address, self.name)


@dataclass(frozen=True, slots=True)
class ExporterConfig:
    validators: list[TrackedValidator] = field(default_factory=list)

    api_url: str | None = None

    poll_interval: str | None = None


def load_exporter_config(path: Path | None = None) -> ExporterConfig:
    config_path = path or resolve_config_path()

    data = _read_toml(config_path)

    api_url = data.get("api_url")

    if api_url is not None:
        api_url = _require_non_empty_string(api_url, "api_url").rstrip("/")

    poll_interval = data.get("poll_interval")

    if poll_interval is not None:
        if not isinstance(poll_interval, str):
            raise ValidationError(
                "poll_interval must be a string if provided.",
                config_key="poll_interval",
                expected_type="string",
                value=type(poll_interval).__name__,
            )
        poll_interval = _validate_poll_interval(poll_interval, "poll_interval")

    return ExporterConfig(
        validators=_parse_validators(data.get("validators")),
        api_url=api_url,
        poll_interval=poll_interval,
    )


def load_tracked_validators(path: Path | None = None) -> list[TrackedValidator]:
    return load_exporter_config(path).validators


def resolve_config_path(settings: AppSettings | None = None) -> Path:
    resolved_settings = settings or get_settings()

    return resolved_settings.config.resolve_config_path()


def _parse_validators(validators_data: Any) -> list[TrackedValidator]:
    if validators_data is None:
        return []

    if not isinstance(validators_data, list):
        raise ConfigError(
            "Configuration 'validators' section must be an array.",
            config_section="validators",
        )

    seen_accounts: set[str] = set()

    validators: list[TrackedValidator] = []

    for index, entry in enumerate(validators_data, start=1):
        if not isinstance(entry, dict):
            raise ValidationError(
                f"validators[{index}] must be a table.",
                config_section=f"validators[{index}]",
                expected_type="table",
                value=type(entry).__name__,
            )

        validator = _parse_validator_config(entry, index)

        # Skip disabled validators
        if not validator.enabled:
            continue

        if validator.account in seen_accounts:
            raise ValidationError(
                f"Duplicate validator account '{validator.account}' detected.",
                config_section=f"validators[{index}]",
                config_key="account",
                value=validator.account,
            )

        seen_accounts.add(validator.account)

        validators.append(validator)

    return validators


def _parse_validator_config(data: dict[str, Any], index: int) -> TrackedValidator:
    """Parse a validator entry from TOML data.

    Args:
        data: Dictionary containing the validator configuration.
        index: One-based index of the validator entry (for error messages).

    Returns:
        Parsed TrackedValidator instance.

    Raises:
        ValidationError: If required fields are missing or invalid.
    """
    name = _require_non_empty_string(data.get("name"), f"validators[{index}].name")

    account = _require_non_empty_string(data.get("account"), f"validators[{index}].account")

    operator_address = _require_non_empty_string(
        data.get("operator_address"),
        f"validators[{index}].operator_address",
    )

    raw_address = data.get("address")

    address = (
        _require_non_empty_string(raw_address, f"validators[{index}].address")
        if raw_address is not None
        else ""
    )

    enabled = _coerce_optional_bool(
        data.get("enabled"),
        f"validators[{index}].enabled",
        default=True,
    )

    return TrackedValidator(
        name=name,
        account=account,
        operator_address=operator_address,
        address=address,
        enabled=enabled,
    )


def _read_toml(path: Path) -> dict[str, Any]:
    """Read and parse a TOML configuration file with environment variable expansion.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigError: If the TOML is invalid.
    """
    with path.open("r", encoding="utf-8") as file:
        raw_toml = file.read()

    expanded_toml = os.path.expandvars(raw_toml)

    try:
        return tomllib.loads(expanded_toml)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in configuration file: {exc}",
            config_file=str(path),
        ) from exc


def _require_non_empty_string(value: Any, location: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{location} must be a non-empty string.",
            config_section=location,
            expected_type="string",
            value=value if value is None or isinstance(value, str) else type(value).__name__,
        )

    return value.strip()


def _validate_poll_interval(interval: str, location: str) -> str:
    from .poller.intervals import parse_duration_to_seconds

    seconds = parse_duration_to_seconds(interval)

    if seconds is None or seconds <= 0:
        raise ValidationError(
            f"{location} must be a positive duration (e.g., '500ms', '1s', '5m'). Format: number optionally followed by unit (ms/s/m/h).",
            config_section=location,
            config_key="poll_interval",
            expected_type="duration_string",
            value=interval,
        )

    return interval


def _coerce_optional_bool(value: Any, location: str, *, default: bool = True) -> bool:
    """Coerce a value to a boolean with optional default.

    Raises:
        ValidationError: If the value cannot be coerced to a boolean.
    """
    if value is None:
        return default

    if isinstance(value, bool):
        return value

    if isinstance(value, str):
        value_lower = value.lower().strip()
        if value_lower in ("true", "1", "yes", "on"):
            return True
        if value_lower in ("false", "0", "no", "off"):
            return False

    raise ValidationError(
        f"{location} must be a boolean (true/false).",
        config_section=location,
        expected_type="boolean",
        value=value,
    )
