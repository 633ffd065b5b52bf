"""Credential Vault — Encryption at rest for provider API keys.

Security Note (Threat Model):
    Master secrets and decrypted credentials live in process memory while
    in use. Scrubbing of intermediate buffers is best-effort: the Python
    runtime and OpenSSL may hold copies that cannot be wiped. Mitigation
    requires HSM/KMS integration which is out of scope.
"""

from .version import __version__
from .config import EncryptionConfig, load_master_secrets
from .crypto import calculate_entropy, derive_key, validate_encryption_key
from .envelope import EncryptedPayload, get_encryption_version
from .cipher import CredentialCipher
from .utils import generate_secure_secret, mask_api_key, validate_api_key
from .key_rotation import rotate_credentials, report_encryption_versions
from .provider import ProviderCredential
from .exceptions import (
    CredentialVaultError,
    InvalidInputError,
    ConfigurationError,
    WeakKeyError,
    KeyDerivationError,
    EncryptionError,
    InvalidFormatError,
    DecryptionError,
    RotationError,
)

__all__ = [
    "__version__",
    "EncryptionConfig",
    "load_master_secrets",
    "calculate_entropy",
    "derive_key",
    "validate_encryption_key",
    "EncryptedPayload",
    "get_encryption_version",
    "CredentialCipher",
    "generate_secure_secret",
    "mask_api_key",
    "validate_api_key",
    "rotate_credentials",
    "report_encryption_versions",
    "ProviderCredential",
    "CredentialVaultError",
    "InvalidInputError",
    "ConfigurationError",
    "WeakKeyError",
    "KeyDerivationError",
    "EncryptionError",
    "InvalidFormatError",
    "DecryptionError",
    "RotationError",
]
