"""
Envelope — Versioned, self-describing wire form of an encrypted credential.

Wire format::

    base64( {"version": 1, "iv": "<hex>", "salt": "<hex>",
             "tag": "<hex>", "encrypted": "<hex>"} )

Callers treat the resulting string as opaque.
"""
import re
import base64
import binascii
from typing import Any, Optional

import orjson
from pydantic import (
    BaseModel,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from .crypto import IV_LENGTH, SALT_LENGTH, TAG_LENGTH
from .exceptions import InvalidFormatError

_MALFORMED = "Malformed encrypted envelope"

_HEX_PATTERN = re.compile(r"^(?:[0-9a-fA-F]{2})+\Z")

_FIXED_LENGTHS = {
    "iv": IV_LENGTH,
    "salt": SALT_LENGTH,
    "tag": TAG_LENGTH,
}


class EncryptedPayload(BaseModel):
    """Decoded envelope. Binary fields are kept hex-encoded."""

    version: int = Field(gt=0, strict=True)
    iv: str
    salt: str
    tag: str
    encrypted: str = Field(min_length=2)

    model_config = {"frozen": True}

    @field_validator("iv", "salt", "tag", "encrypted")
    @classmethod
    def validate_hex(cls, v: str, info: ValidationInfo) -> str:
        """Ensure binary fields are hex with the expected decoded length."""
        # bytes.fromhex would also accept embedded whitespace
        if not _HEX_PATTERN.match(v):
            raise ValueError(f"{info.field_name} is not valid hex")
        raw = bytes.fromhex(v)
        expected = _FIXED_LENGTHS.get(info.field_name)
        if expected is not None and len(raw) != expected:
            raise ValueError(
                f"{info.field_name} must be {expected} bytes, got {len(raw)}"
            )
        return v

    @classmethod
    def build(
        cls,
        version: int,
        iv: bytes | bytearray,
        salt: bytes | bytearray,
        tag: bytes,
        encrypted: bytes,
    ) -> "EncryptedPayload":
        return cls(
            version=version,
            iv=iv.hex(),
            salt=salt.hex(),
            tag=tag.hex(),
            encrypted=encrypted.hex(),
        )

    def to_token(self) -> str:
        """Serialize to the opaque base64 string stored by callers."""
        return base64.b64encode(orjson.dumps(self.model_dump())).decode("ascii")

    @classmethod
    def from_token(cls, token: str) -> "EncryptedPayload":
        """Parse an opaque envelope string.

        Raises:
            InvalidFormatError: If the token is not base64 JSON or any
                required field is missing or invalid.
        """
        data = _load(token)
        try:
            return cls.model_validate(data)
        except ValidationError as err:
            raise InvalidFormatError(_MALFORMED) from err

    def iv_bytes(self) -> bytearray:
        return bytearray.fromhex(self.iv)

    def salt_bytes(self) -> bytearray:
        return bytearray.fromhex(self.salt)

    def tag_bytes(self) -> bytes:
        return bytes.fromhex(self.tag)

    def encrypted_bytes(self) -> bytes:
        return bytes.fromhex(self.encrypted)


def _load(token: str) -> dict[str, Any]:
    if not isinstance(token, str) or not token:
        raise InvalidFormatError(_MALFORMED)
    try:
        data = orjson.loads(base64.b64decode(token, validate=True))
    except (binascii.Error, ValueError) as err:
        # orjson.JSONDecodeError is a ValueError
        raise InvalidFormatError(_MALFORMED) from err
    if not isinstance(data, dict):
        raise InvalidFormatError(_MALFORMED)
    return data


def get_encryption_version(token: str) -> Optional[int]:
    """Read the key version of an envelope without decrypting it.

    Only the ``version`` field is inspected, so partially damaged envelopes
    still report their version. Used by migration and reporting tooling.

    Returns:
        The embedded version, or None if the token cannot be parsed or the
        version is not a positive integer.
    """
    try:
        version = _load(token).get("version")
    except InvalidFormatError:
        return None
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        return None
    return version
