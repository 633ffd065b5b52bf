"""Credential presentation helpers and operator utilities."""
import secrets
import string
from typing import Optional

BULLET = "•"

# 26 upper + 26 lower + 10 digits + 28 symbols
SECRET_ALPHABET = (
    string.ascii_uppercase
    + string.ascii_lowercase
    + string.digits
    + "!@#$%^&*()-_=+[]{}|;:,.<>?~/"
)


def validate_api_key(api_key: Optional[str]) -> bool:
    """True if an API key is present. This is not a format check."""
    return bool(api_key and api_key.strip())


def mask_api_key(api_key: Optional[str]) -> str:
    """Mask an API key for display.

    Keys of 8 characters or fewer are fully masked; longer keys keep their
    first and last four characters. Display only, the full key stays
    available server-side.
    """
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return BULLET * len(api_key)
    return f"{api_key[:4]}{BULLET * (len(api_key) - 8)}{api_key[-4:]}"


def generate_secure_secret(length: int = 64) -> str:
    """Generate a random master secret for operators.

    Characters are drawn uniformly from a fixed 90-character alphabet using
    the ``secrets`` CSPRNG.

    Args:
        length: Number of characters.

    Returns:
        Random secret string.
    """
    if length < 1:
        raise ValueError(f"Secret length must be positive, got {length}")
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(length))
