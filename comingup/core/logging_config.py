"""
Central logging configuration for comingup.

Keeps the engine's per-record debug output available for troubleshooting
while holding third-party parser libraries at a quieter level.
"""

import logging
import os
from typing import Optional

ENGINE_LOGGERS = [
    "comingup",
    "comingup.calendar.parser",
    "comingup.calendar.event_builder",
    "comingup.calendar.rrule_expander",
    "comingup.calendar.event_merger",
    "comingup.calendar.diagnostics",
    "comingup.domain.selector",
]

THIRD_PARTY_LOGGERS: dict[str, int] = {
    "icalendar": logging.WARNING,
    "dateutil": logging.WARNING,
}

DEBUG_ENV_VALUES = ("1", "true", "yes", "on")
LEVEL_NAMES = ("DEBUG", "INFO", "WARNING", "ERROR")


def debug_env_enabled() -> bool:
    """Whether COMINGUP_DEBUG holds one of the accepted truthy values."""
    return os.getenv("COMINGUP_DEBUG", "").strip().lower() in DEBUG_ENV_VALUES


def configure_logging(
    debug_mode: bool = False,
    force_debug: Optional[bool] = None,
    level_name: Optional[str] = None,
) -> None:
    """
    Configure logger levels for the engine and its third-party libraries.

    Args:
        debug_mode: Whether to enable debug logging for comingup modules
        force_debug: Override debug mode setting (None to use env var detection)
        level_name: Root level already resolved by the caller (e.g. from --log-level);
            takes precedence over COMINGUP_LOG_LEVEL

    Environment Variables:
        COMINGUP_DEBUG: Set to '1', 'true', 'yes', 'on' to force debug logging
        COMINGUP_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_log_level = os.getenv("COMINGUP_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif debug_env_enabled():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    requested = (level_name or env_log_level).upper()
    if force_debug is None and debug_env_enabled():
        requested = "DEBUG"
    if requested in LEVEL_NAMES:
        root_level = getattr(logging, requested)

    # Handlers are owned by comingup._init_logging; only levels are set here.
    logging.getLogger().setLevel(root_level)

    logger_config = dict(THIRD_PARTY_LOGGERS)
    engine_level = logging.DEBUG if final_debug else max(logging.INFO, root_level)
    for module in ENGINE_LOGGERS:
        logger_config[module] = engine_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger(__name__).debug(
        "Logging configured: root=%s engine=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(engine_level),
    )


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}

    for logger_name in ["comingup", *THIRD_PARTY_LOGGERS]:
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)

    return status
