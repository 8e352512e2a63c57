"""QR Date core module.

Shared components used across all services:
- Error taxonomy
- Configuration management
- Logging setup
"""

from qrdate.core.config import ConfigValidationError, Settings, validate_settings
from qrdate.core.errors import (
    InvalidArgumentError,
    KeyFormatError,
    KeyNotFoundError,
    MalformedURLError,
    QRDateError,
    SigningError,
)
from qrdate.core.settings import (
    clear_settings_cache,
    configure_logging,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "ConfigValidationError",
    "InvalidArgumentError",
    "KeyFormatError",
    "KeyNotFoundError",
    "MalformedURLError",
    "QRDateError",
    "Settings",
    "SigningError",
    "clear_settings_cache",
    "configure_logging",
    "get_settings",
    "get_settings_safe",
    "validate_settings",
]
