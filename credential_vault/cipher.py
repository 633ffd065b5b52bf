"""
CredentialCipher — Encryption at rest for user-supplied provider credentials.

Provides the public API of the credential vault:
- ``encrypt(plaintext, version)`` / ``decrypt(token)`` — fail loud
- ``safe_encrypt`` / ``safe_decrypt`` — return None instead of raising
- ``rotate_encryption(token, target_version)`` — re-encrypt under a new key
- ``get_encryption_version(token)`` — read the key version without decrypting

Each call derives a fresh key with scrypt from the master secret of the
envelope's key version and a per-call random salt, then seals the plaintext
with AES-256-GCM under a per-call random IV.

Security Note:
    Never log plaintext, secrets or derived keys. Decryption failures carry
    one generic message to callers; the specific reason is only logged.
"""
import os
import logging
from typing import Optional

from cryptography.exceptions import InvalidTag

from .config import EncryptionConfig
from .crypto import (
    IV_LENGTH,
    SALT_LENGTH,
    derive_key,
    open_sealed,
    scrubbed,
    seal,
    validate_encryption_key,
)
from .envelope import EncryptedPayload, get_encryption_version
from .exceptions import (
    ConfigurationError,
    CredentialVaultError,
    DecryptionError,
    EncryptionError,
    InvalidFormatError,
    InvalidInputError,
    RotationError,
    WeakKeyError,
)

logger = logging.getLogger("credential_vault")

_DECRYPTION_FAILED = "Decryption failed"


class CredentialCipher:
    """Stateless encrypt/decrypt service bound to an EncryptionConfig.

    The configuration is immutable and injected at construction; instances
    hold no per-call state and may be shared by concurrent requests.
    """

    def __init__(self, config: EncryptionConfig):
        self._config = config

    def __repr__(self) -> str:
        return (
            f"<CredentialCipher current_version={self.current_version} "
            f"versions={self._config.versions}>"
        )

    @property
    def current_version(self) -> int:
        return self._config.current_version

    # ------------------------------------------------------------------
    # Key management
    # ------------------------------------------------------------------

    def get_encryption_key(self, version: Optional[int] = None) -> str:
        """Return the validated master secret for a key version.

        Args:
            version: Key version, defaults to the current version.

        Raises:
            ConfigurationError: If no secret is registered for ``version``.
            WeakKeyError: If the secret fails the strength heuristic.
        """
        if version is None:
            version = self.current_version
        secret = self._config.master_secrets.get(version)
        if not secret:
            raise ConfigurationError(
                f"Encryption key version {version} not configured"
            )
        if not validate_encryption_key(secret):
            raise WeakKeyError(
                f"Encryption secret (version {version}) must be at least 32 "
                "characters with good entropy and character variety"
            )
        return secret

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    async def encrypt(self, plaintext: str, version: Optional[int] = None) -> str:
        """Encrypt a credential into an opaque envelope string.

        Args:
            plaintext: Non-empty string to encrypt.
            version: Key version to encrypt under, defaults to current.

        Returns:
            Base64 envelope string.

        Raises:
            InvalidInputError: If plaintext is empty or not a string.
            ConfigurationError: If ``version`` has no secret.
            WeakKeyError: If the secret for ``version`` is weak.
            KeyDerivationError: If scrypt fails.
            EncryptionError: On any other failure.
        """
        if not isinstance(plaintext, str) or not plaintext:
            raise InvalidInputError("Text to encrypt must be a non-empty string")
        if version is None:
            version = self.current_version

        salt = bytearray(os.urandom(SALT_LENGTH))
        iv = bytearray(os.urandom(IV_LENGTH))
        secret = bytearray()
        key = bytearray()
        with scrubbed(salt, iv, secret, key):
            secret.extend(self.get_encryption_key(version).encode("utf-8"))
            try:
                key.extend(await derive_key(secret, salt))
                ciphertext, tag = seal(key, iv, plaintext.encode("utf-8"))
                token = EncryptedPayload.build(
                    version=version,
                    iv=iv,
                    salt=salt,
                    tag=tag,
                    encrypted=ciphertext,
                ).to_token()
            except CredentialVaultError:
                raise
            except Exception as err:
                logger.error(
                    "Encryption failed (version=%s): %s",
                    version, type(err).__name__,
                )
                raise EncryptionError("Encryption operation failed") from err
        logger.debug("Encrypted credential with key version %s", version)
        return token

    async def decrypt(self, token: str) -> str:
        """Decrypt an envelope string produced by :meth:`encrypt`.

        The key version embedded in the envelope selects the master secret,
        so records written under older versions remain readable.

        Args:
            token: Base64 envelope string.

        Returns:
            Recovered plaintext.

        Raises:
            InvalidFormatError: If the envelope is malformed.
            ConfigurationError: If the embedded version has no secret.
            WeakKeyError: If the secret for that version is weak.
            KeyDerivationError: If scrypt fails.
            DecryptionError: If authentication or decryption fails.
        """
        if not isinstance(token, str) or not token:
            raise InvalidFormatError("Invalid encrypted data format")
        payload = EncryptedPayload.from_token(token)

        salt = payload.salt_bytes()
        iv = payload.iv_bytes()
        secret = bytearray()
        key = bytearray()
        with scrubbed(salt, iv, secret, key):
            secret.extend(self.get_encryption_key(payload.version).encode("utf-8"))
            key.extend(await derive_key(secret, salt))
            try:
                data = open_sealed(
                    key, iv, payload.encrypted_bytes(), payload.tag_bytes(),
                )
                plaintext = data.decode("utf-8")
            except InvalidTag as err:
                logger.warning(
                    "Decryption failed (version=%s): authentication tag mismatch",
                    payload.version,
                )
                raise DecryptionError(_DECRYPTION_FAILED) from err
            except (ValueError, TypeError) as err:
                logger.warning(
                    "Decryption failed (version=%s): %s",
                    payload.version, type(err).__name__,
                )
                raise DecryptionError(_DECRYPTION_FAILED) from err
        logger.debug("Decrypted credential with key version %s", payload.version)
        return plaintext

    # ------------------------------------------------------------------
    # Non-throwing wrappers
    # ------------------------------------------------------------------

    async def safe_encrypt(
        self,
        plaintext: Optional[str],
        version: Optional[int] = None,
    ) -> Optional[str]:
        """Encrypt, returning None for blank input or on any failure."""
        if not isinstance(plaintext, str) or not plaintext.strip():
            return None
        try:
            return await self.encrypt(plaintext, version)
        except Exception as err:
            logger.warning("Encryption error: %s", type(err).__name__)
            return None

    async def safe_decrypt(self, token: Optional[str]) -> Optional[str]:
        """Decrypt, returning None for empty input or on any failure."""
        if not token:
            return None
        try:
            return await self.decrypt(token)
        except Exception as err:
            logger.warning("Decryption error: %s", type(err).__name__)
            return None

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    async def rotate_encryption(self, token: str, target_version: int) -> str:
        """Re-encrypt an envelope under ``target_version``.

        Nothing is persisted; the caller stores the returned envelope.

        Raises:
            RotationError: If decryption or re-encryption fails.
        """
        try:
            plaintext = await self.decrypt(token)
            return await self.encrypt(plaintext, target_version)
        except Exception as err:
            raise RotationError(
                "Key rotation failed - could not decrypt or re-encrypt data"
            ) from err

    @staticmethod
    def get_encryption_version(token: str) -> Optional[int]:
        """Key version embedded in ``token``, or None if unreadable."""
        return get_encryption_version(token)
