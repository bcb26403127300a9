"""
Configuration management for Equity Hysteresis.

Loads the parameter set once, from file, and fails fast on anything
malformed. Missing fields are never silently defaulted.
"""

import hashlib
import json
import logging
import os

from pathlib import Path
from typing import Any

from .types import ConfigurationError, HysteresisParams, MonitorConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "./hysteresis_config.json"
CONFIG_ENV_VAR = "EQUITY_HYSTERESIS_CONFIG"


def load_config(config_path: str | None = None) -> MonitorConfig:
    """
    Load configuration from file, with fallback to defaults.

    Priority:
    1. Explicit config_path argument (must exist)
    2. EQUITY_HYSTERESIS_CONFIG environment variable (must exist)
    3. Default path (./hysteresis_config.json)
    4. Built-in defaults

    Raises:
        ConfigurationError: If the chosen file is missing or malformed.
    """
    explicit = config_path or os.environ.get(CONFIG_ENV_VAR)
    path = Path(explicit or DEFAULT_CONFIG_PATH)

    if path.exists():
        return MonitorConfig.from_dict(_read_document(path))

    if explicit:
        raise ConfigurationError(f"config file not found: {path}")

    logger.warning(f"No config file at {path}; using built-in parameter defaults")
    return MonitorConfig()


def load_params(config_path: str | None = None) -> HysteresisParams:
    """Load only the parameter set."""
    return load_config(config_path).params


def save_config(config: MonitorConfig, config_path: str | None = None) -> None:
    """
    Save configuration to file.
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)


def create_default_config_file(path: str = DEFAULT_CONFIG_PATH) -> None:
    """Create a default configuration file for users to customize."""
    save_config(MonitorConfig(), path)
    print(f"Created default config at: {path}")


def params_fingerprint(params: HysteresisParams) -> str:
    """
    SHA256 of the canonical JSON form of a parameter set.

    Two parameter sets have the same fingerprint iff every field,
    including the version label, is equal.
    """
    canonical = json.dumps(params.to_dict(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def verify_fingerprint(params: HysteresisParams, expected: str) -> bool:
    """Check a parameter set against a locked fingerprint."""
    actual = params_fingerprint(params)
    if actual != expected.strip().lower():
        logger.warning(f"Parameter fingerprint mismatch: expected={expected} actual={actual}")
        return False
    return True


def _read_document(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"config document in {path} must be a JSON object")
    return data
