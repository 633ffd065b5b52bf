"""
Vault Configuration — Master secret loading and validated settings.

Reads master secrets from environment variables in the format:
    ENCRYPTION_SECRET = <passphrase>            (key version 1)
    ENCRYPTION_SECRET_v{N} = <passphrase>       (key version N)
    CURRENT_ENCRYPTION_VERSION = <integer>      (defaults to 1)

Security Note:
    Never log secret material. Only log key versions.
"""
import os
import re
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .crypto import validate_encryption_key
from .exceptions import ConfigurationError, WeakKeyError

logger = logging.getLogger("credential_vault")

_SECRET_ENV_PATTERN = re.compile(r"^ENCRYPTION_SECRET_v(\d+)$")
_LEGACY_SECRET_ENV = "ENCRYPTION_SECRET"
_CURRENT_VERSION_ENV = "CURRENT_ENCRYPTION_VERSION"


def load_master_secrets(environ: Optional[Mapping[str, str]] = None) -> dict[int, str]:
    """Load master secrets from the environment.

    ``ENCRYPTION_SECRET`` registers version 1; ``ENCRYPTION_SECRET_v{N}``
    registers version N and takes precedence for the same version.

    Args:
        environ: Mapping to read from, defaults to ``os.environ``.

    Returns:
        Mapping of key version (int) to master secret.

    Raises:
        ConfigurationError: If no master secret is found.
    """
    environ = os.environ if environ is None else environ
    secrets: dict[int, str] = {}
    legacy = environ.get(_LEGACY_SECRET_ENV)
    if legacy:
        secrets[1] = legacy
    for name, value in environ.items():
        match = _SECRET_ENV_PATTERN.match(name)
        if match and value:
            secrets[int(match.group(1))] = value
    if not secrets:
        raise ConfigurationError(
            "No encryption secrets found in environment. "
            "Set ENCRYPTION_SECRET or ENCRYPTION_SECRET_v1"
        )
    logger.debug(
        "Loaded %d encryption secret version(s): %s",
        len(secrets), sorted(secrets.keys()),
    )
    return secrets


def get_current_version(environ: Optional[Mapping[str, str]] = None) -> int:
    """Read the current key version from CURRENT_ENCRYPTION_VERSION.

    Raises:
        ConfigurationError: If the value is not an integer.
    """
    environ = os.environ if environ is None else environ
    raw = environ.get(_CURRENT_VERSION_ENV)
    if raw is None or not raw.strip():
        return 1
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{_CURRENT_VERSION_ENV} must be an integer"
        ) from None


class EncryptionConfig(BaseModel):
    """Immutable encryption configuration, built once at process start."""

    master_secrets: Mapping[int, str] = Field(repr=False)
    current_version: int = Field(default=1, ge=1)

    model_config = {"frozen": True}

    @field_validator("master_secrets")
    @classmethod
    def validate_versions(cls, v: Mapping[int, str]) -> Mapping[int, str]:
        """Key versions must be positive and secrets non-empty.

        The secrets are copied into a read-only mapping.
        """
        for version, secret in v.items():
            if version < 1:
                raise ValueError(f"Key version must be positive, got {version}")
            if not secret:
                raise ValueError(f"Secret for key version {version} is empty")
        return MappingProxyType(dict(v))

    @model_validator(mode="after")
    def validate_current_version_exists(self) -> "EncryptionConfig":
        """Ensure current_version is present in master_secrets."""
        if self.current_version not in self.master_secrets:
            raise ValueError(
                f"current_version {self.current_version} not found in "
                f"master_secrets (available: {sorted(self.master_secrets.keys())})"
            )
        return self

    @property
    def versions(self) -> list[int]:
        return sorted(self.master_secrets.keys())

    def weak_versions(self) -> list[int]:
        """Return key versions whose secret fails the strength heuristic."""
        return [
            version for version in self.versions
            if not validate_encryption_key(self.master_secrets[version])
        ]

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        validate_strength: bool = True,
    ) -> "EncryptionConfig":
        """Create EncryptionConfig by loading values from environment.

        Args:
            environ: Mapping to read from, defaults to ``os.environ``.
            validate_strength: Reject weak secrets at startup.

        Returns:
            Populated EncryptionConfig instance.

        Raises:
            ConfigurationError: If secrets are missing or the current
                version is not configured.
            WeakKeyError: If ``validate_strength`` and a secret is weak.
        """
        master_secrets = load_master_secrets(environ)
        current_version = get_current_version(environ)
        if current_version not in master_secrets:
            raise ConfigurationError(
                f"Encryption key version {current_version} not configured"
            )
        config = cls(
            master_secrets=master_secrets,
            current_version=current_version,
        )
        if validate_strength:
            weak = config.weak_versions()
            if weak:
                raise WeakKeyError(
                    f"Encryption secret(s) for version(s) {weak} must be at "
                    "least 32 characters with good entropy and character variety"
                )
        return config
