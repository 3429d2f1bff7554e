"""
Unified settings for the KMS signer.

All configuration comes from environment variables (a `.env` file is honoured) and is
validated when `Settings` is instantiated, so misconfiguration shows up at startup
rather than on the first signing request.

Usage:
    from app.core.settings import get_settings

    settings = get_settings()
    if settings.KEY_SERVICE_TYPE is KeyServiceType.AWS_KMS:
        ...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class KeyServiceType(Enum):
    """Key service backends."""

    AWS_KMS = "aws_kms"
    REMOTE = "remote"
    LOCAL = "local"


class SettingsValidationError(Exception):
    """Raised when settings validation fails."""

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid configuration for {field}={value!r}: {message}")


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean from environment variable."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_float(value: str | None, default: float) -> float:
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _env_str(name: str, *fallbacks: str) -> str | None:
    for key in (name, *fallbacks):
        v = (os.getenv(key) or "").strip()
        if v:
            return v
    return None


def _key_service_type() -> KeyServiceType:
    raw = os.getenv("KEY_SERVICE_TYPE", "aws_kms").strip().lower()
    if raw not in [e.value for e in KeyServiceType]:
        raise SettingsValidationError("KEY_SERVICE_TYPE", raw, f"expected one of {[e.value for e in KeyServiceType]}")
    return KeyServiceType(raw)


@dataclass
class Settings:
    """
    Settings with validation. Values are read from the environment at instantiation.
    """

    PROJECT_NAME: str = "kms-evm-signer"

    # Key service
    KEY_SERVICE_TYPE: KeyServiceType = field(default_factory=_key_service_type)
    AWS_REGION: str | None = field(default_factory=lambda: _env_str("AWS_REGION", "AWS_DEFAULT_REGION"))
    AWS_ACCESS_KEY_ID: str | None = field(default_factory=lambda: _env_str("AWS_ACCESS_KEY_ID"))
    AWS_SECRET_ACCESS_KEY: str | None = field(default_factory=lambda: _env_str("AWS_SECRET_ACCESS_KEY"))
    KMS_KEY_DESCRIPTION: str = field(default_factory=lambda: _env_str("KMS_KEY_DESCRIPTION") or "EVM Wallet Key")
    KEY_SERVICE_URL: str | None = field(default_factory=lambda: _env_str("KEY_SERVICE_URL"))
    HTTP_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("HTTP_TIMEOUT_SEC"), 10.0))

    # Address cache (0 disables; every flow then fetches the public key)
    ADDRESS_CACHE_TTL_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("ADDRESS_CACHE_TTL_SEC"), 0.0))

    DEV_MODE: bool = field(default_factory=lambda: _parse_bool(os.getenv("DEV_MODE"), False))

    # Observability
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "info").strip().lower())
    SERVICE_NAME: str = field(default_factory=lambda: os.getenv("SERVICE_NAME", "kms-signer").strip())

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        errors: list[str] = []

        if self.KEY_SERVICE_TYPE is KeyServiceType.AWS_KMS and not self.AWS_REGION:
            errors.append("AWS_REGION (or AWS_DEFAULT_REGION) required when KEY_SERVICE_TYPE=aws_kms")
        if bool(self.AWS_ACCESS_KEY_ID) != bool(self.AWS_SECRET_ACCESS_KEY):
            errors.append("AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must be set together")
        if self.KEY_SERVICE_TYPE is KeyServiceType.REMOTE:
            if not self.KEY_SERVICE_URL:
                errors.append("KEY_SERVICE_URL required when KEY_SERVICE_TYPE=remote")
            elif not self.DEV_MODE and not self.KEY_SERVICE_URL.lower().startswith("https://"):
                errors.append("KEY_SERVICE_URL must use https:// outside DEV_MODE")
        if self.KEY_SERVICE_TYPE is KeyServiceType.LOCAL and not self.DEV_MODE:
            errors.append("KEY_SERVICE_TYPE=local keeps private keys in process and requires DEV_MODE=true")

        if self.HTTP_TIMEOUT_SEC <= 0:
            errors.append(f"HTTP_TIMEOUT_SEC must be > 0, got {self.HTTP_TIMEOUT_SEC}")
        if self.ADDRESS_CACHE_TTL_SEC < 0:
            errors.append(f"ADDRESS_CACHE_TTL_SEC must be >= 0, got {self.ADDRESS_CACHE_TTL_SEC}")

        if errors:
            raise SettingsValidationError("MULTIPLE", None, "; ".join(errors))

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary (redacting secrets)."""
        result: dict[str, Any] = {}
        for key in dir(self):
            if key.startswith("_") or key.isupper() is False:
                continue
            value = getattr(self, key)
            if any(s in key.upper() for s in ["SECRET", "PASSWORD", "ACCESS_KEY", "TOKEN"]):
                result[key] = "***REDACTED***" if value else None
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
