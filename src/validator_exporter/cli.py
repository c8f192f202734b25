"""Command-line helpers for validator exporter tooling."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict, is_dataclass
from pathlib import Path
from typing import Any

from .config import TrackedValidator, load_tracked_validators
from .exceptions import ConfigError
from .runtime_settings import RuntimeSettings, get_runtime_settings

MASKED = "<masked>"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate validator-exporter configuration files.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to config.toml (defaults to VALIDATOR_EXPORTER_CONFIG_PATH or ./config.toml).",
    )
    parser.add_argument(
        "--print-resolved",
        action="store_true",
        help="Output the resolved runtime settings (with API URLs masked by default).",
    )
    parser.add_argument(
        "--show-secrets",
        action="store_true",
        help="Include API base URLs, which may embed credentials, when printing the resolved configuration.",
    )
    return parser


def validate_config(config_path: str | None = None) -> list[TrackedValidator]:
    """Load and validate the validator set, returning the enabled validators."""

    path = Path(config_path).expanduser().resolve() if config_path else None
    return load_tracked_validators(path)


def _serialize(value: Any) -> Any:
    if is_dataclass(value):
        return {key: _serialize(val) for key, val in asdict(value).items()}
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(val) for key, val in value.items()}
    return value


def _render_runtime_settings(runtime: RuntimeSettings, *, show_secrets: bool) -> str:
    settings = _serialize(runtime.app)
    exporter = _serialize(runtime.exporter)
    api_base_url = runtime.api_base_url

    if not show_secrets:
        settings["api"]["base_url"] = MASKED
        if exporter.get("api_url") is not None:
            exporter["api_url"] = MASKED
        api_base_url = MASKED

    payload = {
        "config_path": str(runtime.config_path),
        "settings": settings,
        "api_base_url": api_base_url,
        "poll_interval": runtime.poll_interval,
        "api_url": exporter["api_url"],
        "validators": exporter["validators"],
    }

    return json.dumps(payload, indent=2, sort_keys=True)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point installed as `validator-exporter-validate`."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config_path).expanduser().resolve() if args.config_path else None

    try:
        if args.print_resolved:
            runtime = get_runtime_settings(config_path=config_path)
            print(_render_runtime_settings(runtime, show_secrets=args.show_secrets))
            return 0

        validators = load_tracked_validators(config_path)
    except FileNotFoundError as exc:
        parser.error(f"Config file not found: {exc}")
    except ConfigError as exc:
        parser.error(str(exc))

    print(f"Configuration OK ({len(validators)} validator(s))")
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
