"""
Provider credentials — AI provider settings carrying an encrypted API key.

The plaintext key is never stored on the model; it is recovered on demand
with :meth:`ProviderCredential.reveal` and masked for display.
"""
from typing import Optional

from pydantic import BaseModel, Field

from .cipher import CredentialCipher
from .envelope import get_encryption_version
from .utils import mask_api_key, validate_api_key


class ProviderCredential(BaseModel):
    """API key of a single AI provider, encrypted at rest."""

    provider: str = Field(min_length=1)
    encrypted_api_key: Optional[str] = Field(default=None, repr=False)

    @classmethod
    async def from_api_key(
        cls,
        cipher: CredentialCipher,
        provider: str,
        api_key: Optional[str],
    ) -> "ProviderCredential":
        """Build a credential, encrypting ``api_key`` when one is given."""
        encrypted = None
        if validate_api_key(api_key):
            encrypted = await cipher.safe_encrypt(api_key)
        return cls(provider=provider, encrypted_api_key=encrypted)

    @property
    def has_api_key(self) -> bool:
        return self.encrypted_api_key is not None

    @property
    def encryption_version(self) -> Optional[int]:
        if self.encrypted_api_key is None:
            return None
        return get_encryption_version(self.encrypted_api_key)

    async def reveal(self, cipher: CredentialCipher) -> Optional[str]:
        """Decrypted API key, or None if absent or unreadable."""
        return await cipher.safe_decrypt(self.encrypted_api_key)

    async def masked(self, cipher: CredentialCipher) -> str:
        return mask_api_key(await self.reveal(cipher))

    async def rotated(
        self,
        cipher: CredentialCipher,
        target_version: int,
    ) -> "ProviderCredential":
        """Copy of this credential re-encrypted under ``target_version``.

        Raises:
            RotationError: If the stored key cannot be rotated.
        """
        if self.encrypted_api_key is None:
            return self.model_copy()
        token = await cipher.rotate_encryption(self.encrypted_api_key, target_version)
        return self.model_copy(update={"encrypted_api_key": token})
