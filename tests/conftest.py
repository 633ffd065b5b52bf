"""Shared fixtures for credential_vault tests."""
import base64

import orjson
import pytest

from credential_vault import CredentialCipher, EncryptionConfig

# 32 distinct characters across all four classes
STRONG_SECRET_V1 = "Kx9#mP2$vL7@qR4!wT8&nB3*hJ6%dF5^"
STRONG_SECRET_V2 = "Zq8!Yw3@Xe7#Vr2$Ut6%Ss1^Pa9&Nm4*"
WEAK_SECRET = "a" * 40


def decode_token(token: str) -> dict:
    """Open an envelope string into its JSON fields."""
    return orjson.loads(base64.b64decode(token))


def encode_token(data: dict) -> str:
    """Build an envelope string from raw JSON fields."""
    return base64.b64encode(orjson.dumps(data)).decode("ascii")


def flip_hex_byte(value: str, index: int = 0) -> str:
    """Flip the low bit of one byte in a hex string."""
    raw = bytearray.fromhex(value)
    raw[index] ^= 0x01
    return raw.hex()


@pytest.fixture
def config():
    """Config with two strong key versions, current version 1."""
    return EncryptionConfig(
        master_secrets={1: STRONG_SECRET_V1, 2: STRONG_SECRET_V2},
        current_version=1,
    )


@pytest.fixture
def cipher(config):
    return CredentialCipher(config)


@pytest.fixture
def weak_cipher():
    """Cipher whose version 3 secret fails the strength heuristic."""
    return CredentialCipher(
        EncryptionConfig(
            master_secrets={1: STRONG_SECRET_V1, 3: WEAK_SECRET},
            current_version=1,
        )
    )
