"""Cached settings accessor and logging bootstrap for QR Date.

Usage:
    from qrdate.core.settings import configure_logging, get_settings

    configure_logging()
    settings = get_settings()

The settings are loaded once and cached. To reload settings (e.g., in tests),
use clear_settings_cache().
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from qrdate.core.config import (
    ConfigValidationError,
    Settings,
    validate_settings,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the cached settings.

    Returns:
        Validated Settings instance.

    Raises:
        SystemExit: If settings cannot be loaded or fail validation.
    """
    try:
        logger.info("Loading QR Date settings from environment")
        settings = Settings()
        validate_settings(settings)
    except ValidationError as e:
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            error_messages.append(f"  - {loc}: {error['msg']}")
        logger.critical(
            "Configuration validation failed:\n%s",
            "\n".join(error_messages),
        )
        raise SystemExit(1) from e
    except ConfigValidationError as e:
        logger.critical(
            "Configuration validation failed: %s (field: %s)",
            e.message,
            e.field or "unknown",
        )
        raise SystemExit(1) from e

    logger.info(
        "Configuration loaded: algorithm=%s, signing_mode=%s, config_hash=%s",
        settings.algorithm.value,
        settings.signing_mode.value if settings.signing_mode else "default",
        settings.get_config_hash()[:16] + "...",
    )
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache so the next get_settings() reloads."""
    get_settings.cache_clear()
    logger.debug("Settings cache cleared")


def get_settings_safe() -> Settings | None:
    """Get settings, or None if they cannot be loaded."""
    try:
        return get_settings()
    except SystemExit:
        return None


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for applications embedding QR Date.

    Args:
        level: Logging level name; defaults to the configured log_level,
            or INFO when settings cannot be loaded.
    """
    if level is None:
        settings = get_settings_safe()
        level = settings.log_level if settings else "INFO"
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )
