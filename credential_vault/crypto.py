"""
Vault Crypto Core — Secret strength checks, key derivation and AEAD primitives.

Implements the password-based layer used for provider credentials:
    scrypt(master_secret, salt) → 32-byte key → AES-256-GCM(iv) → ciphertext + tag

Security Note:
    Never log plaintext, master secrets or derived keys.
    Python cannot guarantee that immutable copies made by the interpreter or
    by OpenSSL are wiped; scrubbing of our own bytearrays is best-effort.
"""
import math
import asyncio
import logging
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .exceptions import KeyDerivationError

logger = logging.getLogger("credential_vault")

KEY_LENGTH = 32  # AES-256
IV_LENGTH = 16
SALT_LENGTH = 16
TAG_LENGTH = 16

# scrypt cost parameters (~16 MiB per derivation)
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1

MIN_SECRET_LENGTH = 32
MIN_SECRET_ENTROPY = 4.0
MIN_CHARACTER_CLASSES = 3


# ---------------------------------------------------------------------------
# Master secret strength
# ---------------------------------------------------------------------------

def calculate_entropy(text: str) -> float:
    """Shannon entropy of ``text`` in bits per character."""
    if not text:
        return 0.0
    length = len(text)
    entropy = 0.0
    for count in Counter(text).values():
        probability = count / length
        entropy -= probability * math.log2(probability)
    return entropy


def character_classes(text: str) -> int:
    """Count how many of upper, lower, digit and other characters appear."""
    return sum((
        any(c.isascii() and c.isupper() for c in text),
        any(c.isascii() and c.islower() for c in text),
        any(c.isascii() and c.isdigit() for c in text),
        any(not (c.isascii() and c.isalnum()) for c in text),
    ))


def validate_encryption_key(secret: str) -> bool:
    """Heuristic strength gate for a master secret.

    A secret passes when it is at least 32 characters long, has a Shannon
    entropy above 4.0 bits/char and uses at least three of the four
    character classes (uppercase, lowercase, digits, symbols).

    This is not a cryptographic strength proof. Unusual but strong
    passphrases (e.g. long diceware phrases) may be rejected, and weak
    but varied strings may pass.

    Args:
        secret: Candidate master secret.

    Returns:
        True if the secret passes every check.
    """
    if not isinstance(secret, str) or len(secret) < MIN_SECRET_LENGTH:
        return False
    return (
        calculate_entropy(secret) > MIN_SECRET_ENTROPY
        and character_classes(secret) >= MIN_CHARACTER_CLASSES
    )


# ---------------------------------------------------------------------------
# Buffer hygiene
# ---------------------------------------------------------------------------

def scrub(buffer: bytearray) -> None:
    """Overwrite a mutable buffer with zeros in place."""
    buffer[:] = bytes(len(buffer))


@contextmanager
def scrubbed(*buffers: bytearray) -> Iterator[tuple[bytearray, ...]]:
    """Yield ``buffers`` and zero every one of them on exit.

    Runs on normal return, on exceptions and when the enclosing task is
    cancelled.
    """
    try:
        yield buffers
    finally:
        for buffer in buffers:
            scrub(buffer)


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def _scrypt(secret: bytes | bytearray, salt: bytes) -> bytes:
    kdf = Scrypt(
        salt=salt,
        length=KEY_LENGTH,
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
    )
    return kdf.derive(secret)


async def derive_key(secret: bytes | bytearray, salt: bytes | bytearray) -> bytes:
    """Derive a 32-byte key from a master secret and salt using scrypt.

    The derivation is deterministic for a given ``(secret, salt)`` pair and
    runs in a worker thread so it never blocks the event loop.

    Args:
        secret: UTF-8 encoded master secret.
        salt: Per-envelope random salt.

    Returns:
        32-byte derived key.

    Raises:
        KeyDerivationError: If scrypt fails (e.g. out of memory).
    """
    try:
        return await asyncio.to_thread(_scrypt, secret, bytes(salt))
    except Exception as err:
        logger.error("Key derivation failed: %s", type(err).__name__)
        raise KeyDerivationError("Key derivation failed") from err


# ---------------------------------------------------------------------------
# AEAD
# ---------------------------------------------------------------------------

def seal(key: bytes | bytearray, iv: bytes | bytearray, plaintext: bytes) -> tuple[bytes, bytes]:
    """AES-256-GCM encrypt ``plaintext``.

    Returns:
        Tuple of (ciphertext, 16-byte authentication tag).
    """
    sealed = AESGCM(key).encrypt(iv, plaintext, None)
    return sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]


def open_sealed(
    key: bytes | bytearray,
    iv: bytes | bytearray,
    ciphertext: bytes,
    tag: bytes,
) -> bytes:
    """AES-256-GCM decrypt and authenticate ``ciphertext``.

    Raises:
        cryptography.exceptions.InvalidTag: If authentication fails.
    """
    return AESGCM(key).decrypt(iv, ciphertext + tag, None)
