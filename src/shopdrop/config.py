"""Environment-driven settings for shopdrop."""

import os
from dataclasses import dataclass
from pathlib import Path

# Centralized storage constants
# Can be overridden via SHOPDROP_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime settings resolved from the environment."""

    data_dir: Path
    validate_prices: bool = False
    log_level: str = "INFO"
    log_file: str | None = None


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def get_settings() -> Settings:
    """
    Build Settings from SHOPDROP_* environment variables.

    Read on every call so tests and the CLI can change the environment
    without reloading modules.
    """
    return Settings(
        data_dir=Path(os.environ.get("SHOPDROP_DATA_DIR", _default_data_dir)),
        validate_prices=_env_flag("SHOPDROP_VALIDATE_PRICES"),
        log_level=os.environ.get("SHOPDROP_LOG_LEVEL", "INFO").upper(),
        log_file=os.environ.get("SHOPDROP_LOG_FILE") or None,
    )
