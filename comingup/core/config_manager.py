"""Configuration management for the comingup engine."""

from __future__ import annotations

import datetime
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .timezone_utils import get_local_timezone

logger = logging.getLogger(__name__)

# Defaults for the expansion window and selection rules
DEFAULT_HORIZON_MONTHS = 3
DEFAULT_MAX_GENERATED_WEEKS = 2000
DEFAULT_UNTIL_SLACK_DAYS = 6
DEFAULT_GRACE_SECONDS = 60

_TRUTHY = ("1", "true", "yes", "on")
_FALSY = ("0", "false", "no", "off")


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Accepts an optional leading ``export``
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


def _env_int(name: str, minimum: int = 1) -> int | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid %s=%r; ignoring", name, raw)
        return None
    if value < minimum:
        logger.warning("Out of range %s=%r (minimum %d); ignoring", name, raw, minimum)
        return None
    return value


def _env_bool(name: str) -> bool | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    logger.warning("Invalid %s=%r; expected a boolean, ignoring", name, raw)
    return None


class ConfigManager:
    """Manages engine configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file into the environment without overriding existing values.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from environment variables.

        Recognizes:
        - COMINGUP_DEFAULT_TIMEZONE -> 'default_timezone'
        - COMINGUP_HORIZON_MONTHS -> 'horizon_months' (int >= 1)
        - COMINGUP_MAX_GENERATED_WEEKS -> 'max_generated_weeks' (int >= 1)
        - COMINGUP_GRACE_SECONDS -> 'grace_seconds' (int >= 0)
        - COMINGUP_IGNORE_FREE -> 'ignore_free_or_placeholder' (bool)
        - COMINGUP_LOG_LEVEL -> 'log_level'
        """
        cfg: dict[str, Any] = {}

        default_tz = os.environ.get("COMINGUP_DEFAULT_TIMEZONE")
        if default_tz:
            cfg["default_timezone"] = default_tz

        horizon = _env_int("COMINGUP_HORIZON_MONTHS")
        if horizon is not None:
            cfg["horizon_months"] = horizon

        max_weeks = _env_int("COMINGUP_MAX_GENERATED_WEEKS")
        if max_weeks is not None:
            cfg["max_generated_weeks"] = max_weeks

        grace = _env_int("COMINGUP_GRACE_SECONDS", minimum=0)
        if grace is not None:
            cfg["grace_seconds"] = grace

        ignore_free = _env_bool("COMINGUP_IGNORE_FREE")
        if ignore_free is not None:
            cfg["ignore_free_or_placeholder"] = ignore_free

        log_level = os.environ.get("COMINGUP_LOG_LEVEL")
        if log_level:
            cfg["log_level"] = log_level.strip().upper()

        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment."""
        self.load_env_file()
        return self.build_config_from_env()


@dataclass
class EngineSettings:
    """Settings that shape parsing, expansion and selection.

    The defaults reproduce the standard behaviour: a three month horizon for
    open-ended series, a hard cap of 2000 generated weeks per series and a
    60 second grace window for meetings that just started.
    """

    default_timezone: str | None = None
    horizon_months: int = DEFAULT_HORIZON_MONTHS
    max_generated_weeks: int = DEFAULT_MAX_GENERATED_WEEKS
    until_slack_days: int = DEFAULT_UNTIL_SLACK_DAYS
    grace_seconds: int = DEFAULT_GRACE_SECONDS
    ignore_free_or_placeholder: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_config(cls, config: Any) -> EngineSettings:
        """Build settings from a config dict or attribute object, keeping defaults for missing keys."""
        defaults = cls()
        return cls(
            default_timezone=get_config_value(config, "default_timezone", defaults.default_timezone),
            horizon_months=get_config_value(config, "horizon_months", defaults.horizon_months),
            max_generated_weeks=get_config_value(
                config, "max_generated_weeks", defaults.max_generated_weeks
            ),
            until_slack_days=get_config_value(config, "until_slack_days", defaults.until_slack_days),
            grace_seconds=get_config_value(config, "grace_seconds", defaults.grace_seconds),
            ignore_free_or_placeholder=get_config_value(
                config, "ignore_free_or_placeholder", defaults.ignore_free_or_placeholder
            ),
            log_level=get_config_value(config, "log_level", defaults.log_level),
        )

    @classmethod
    def from_env(cls, env_file_path: Path | None = None) -> EngineSettings:
        """Load settings from the environment (and an optional .env file)."""
        return cls.from_config(ConfigManager(env_file_path).load_full_config())

    def local_timezone(self) -> datetime.tzinfo:
        """Return the zone every resolved instant is expressed in."""
        return get_local_timezone(self.default_timezone)


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute objects.

    Args:
        config: Configuration object (dict or object with attributes)
        key: Configuration key to retrieve
        default: Default value if key not found or None
    """
    if config is None:
        return default
    if isinstance(config, dict):
        value = config.get(key, default)
    else:
        value = getattr(config, key, default)
    return default if value is None else value
