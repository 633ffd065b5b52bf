"""
Credential Vault Errors — Closed taxonomy of failures.

Callers match on the class, never on the message text. Messages never carry
plaintext, master secrets or derived key material.
"""


class CredentialVaultError(Exception):
    """Base class for every error raised by credential_vault."""


class InvalidInputError(CredentialVaultError):
    """Plaintext handed to encrypt is empty or not a string."""


class ConfigurationError(CredentialVaultError):
    """No master secret is registered for the requested key version."""


class WeakKeyError(CredentialVaultError):
    """A configured master secret fails the strength heuristic.

    This is a deployment defect, not a transient per-request failure.
    """


class KeyDerivationError(CredentialVaultError):
    """scrypt could not derive a key (usually resource exhaustion)."""


class EncryptionError(CredentialVaultError):
    """Cipher-stage failure while encrypting."""


class InvalidFormatError(CredentialVaultError):
    """Envelope is not valid base64/JSON or lacks required fields."""


class DecryptionError(CredentialVaultError):
    """Authentication or cipher failure while decrypting.

    Deliberately undifferentiated: a wrong key, corrupted ciphertext and a
    tampered tag all raise the same error with the same message.
    """


class RotationError(CredentialVaultError):
    """Decrypt-then-reencrypt failed."""
