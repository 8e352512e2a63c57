"""Configuration management for QR Date.

Configuration is loaded with Pydantic Settings from environment variables
carrying the QRDATE_ prefix (or a .env file in the working directory).

Example:
    export QRDATE_URL_BASE=https://example.com/v
    export QRDATE_SIGNING_MODE=salted
    export QRDATE_PRIVATE_KEY=MC4CAQAwBQYDK2VwBCIEIJNhDPM-bt0wnIz6sIfflgJSuW4-vZ1knYC59r1QUbzJ
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from qrdate.core.errors import KeyFormatError
from qrdate.services.keys import KeyAlgorithm, normalize_private_key
from qrdate.services.signing import (
    CURRENT_VERSION,
    DEFAULT_ENTROPY_LENGTH,
    SUPPORTED_VERSIONS,
    SigningMode,
)

if TYPE_CHECKING:
    from qrdate.services.qrdate import QRDateServiceConfig

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """QR Date configuration.

    Example environment variables:
        QRDATE_LOG_LEVEL=DEBUG
        QRDATE_ALGORITHM=ed25519
        QRDATE_ENTROPY_LENGTH=32
        QRDATE_URL_BASE=https://example.com/v
    """

    model_config = SettingsConfigDict(
        env_prefix="QRDATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_default=True,
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    algorithm: KeyAlgorithm = Field(
        default=KeyAlgorithm.ED25519,
        description="Signature algorithm for QR Date keys",
    )
    signing_mode: SigningMode | None = Field(
        default=None,
        description="Signing message mode (bare, salted, versioned); unset uses shape defaults",
    )
    entropy_length: Annotated[int, Field(ge=16, le=1024)] = Field(
        default=DEFAULT_ENTROPY_LENGTH,
        description="Salt size in bytes for salted signing messages",
    )
    version: int = Field(
        default=CURRENT_VERSION,
        description="Signing message version for versioned mode",
    )
    url_base: str | None = Field(
        default=None,
        description="Default base URL for dynamic QR Dates (https://host/path)",
    )
    private_key: SecretStr | None = Field(
        default=None,
        description="Default signing key (PEM or base64url DER)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure the log level is a standard logging level name."""
        if v.upper() not in LOG_LEVELS:
            msg = f"Log level must be one of: {', '.join(LOG_LEVELS)}"
            raise ValueError(msg)
        return v.upper()

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        """Ensure the signing message version is supported."""
        if v not in SUPPORTED_VERSIONS:
            msg = f"Version must be one of: {', '.join(str(x) for x in sorted(SUPPORTED_VERSIONS))}"
            raise ValueError(msg)
        return v

    @field_validator("url_base")
    @classmethod
    def validate_url_base(cls, v: str | None) -> str | None:
        """Only http(s) bases can carry dynamic QR Dates."""
        if v is not None and not v.lower().startswith(("http://", "https://")):
            msg = "url_base must start with http:// or https://"
            raise ValueError(msg)
        return v

    def to_service_config(self) -> QRDateServiceConfig:
        """Build the QR Date service configuration from these settings."""
        from qrdate.services.qrdate import QRDateServiceConfig

        return QRDateServiceConfig(
            algorithm=self.algorithm,
            entropy_length=self.entropy_length,
            version=self.version,
            signing_mode=self.signing_mode,
            url_base=self.url_base,
            private_key=self.private_key.get_secret_value() if self.private_key else None,
        )

    def get_config_snapshot(self) -> dict[str, Any]:
        """Non-sensitive view of the configuration, suitable for logging."""
        return {
            "algorithm": self.algorithm.value,
            "signing_mode": self.signing_mode.value if self.signing_mode else None,
            "entropy_length": self.entropy_length,
            "version": self.version,
            "url_base": self.url_base,
            "has_private_key": self.private_key is not None,
        }

    def get_config_hash(self) -> str:
        """SHA-256 hex digest of the config snapshot, for spotting config changes."""
        snapshot_json = json.dumps(self.get_config_snapshot(), sort_keys=True)
        return hashlib.sha256(snapshot_json.encode()).hexdigest()


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with error details.

        Args:
            message: Human-readable error description.
            field: Optional field name that failed validation.
        """
        self.message = message
        self.field = field
        super().__init__(message)


def validate_settings(settings: Settings) -> None:
    """Perform validation that spans fields or needs key parsing.

    Args:
        settings: Settings instance to validate.

    Raises:
        ConfigValidationError: If validation fails.
    """
    if settings.private_key is not None:
        try:
            normalize_private_key(settings.private_key.get_secret_value(), settings.algorithm)
        except KeyFormatError as e:
            raise ConfigValidationError(
                f"QRDATE_PRIVATE_KEY is not a valid {settings.algorithm.value} private key",
                field="private_key",
            ) from e

    if (
        settings.signing_mode is SigningMode.VERSIONED
        and settings.version not in SUPPORTED_VERSIONS
    ):
        raise ConfigValidationError(
            f"Unsupported version for versioned mode: {settings.version}",
            field="version",
        )

    logger.info("Configuration validated. Config hash: %s", settings.get_config_hash())
