"""
Credential Key Rotation — Batch re-encryption of stored provider API keys.

Re-encrypts every stored envelope that is not already at the target key
version, in configurable batches. Each batch is written in its own
transaction for resumability. The operation is idempotent: envelopes already
at the target version are skipped, and updates are conditional on the stored
envelope being unchanged since it was read.

Security Note:
    Plaintext exists in memory only during re-encryption of each row.
    Never log plaintext or envelope values.
"""
import logging
from collections import Counter
from typing import Any, Optional

from .cipher import CredentialCipher
from .envelope import get_encryption_version
from .exceptions import CredentialVaultError

logger = logging.getLogger("credential_vault")

# SQL statements
_SELECT_BATCH = """
SELECT id, encrypted_api_key
FROM ai_provider_configurations
WHERE encrypted_api_key IS NOT NULL AND id > $1
ORDER BY id
LIMIT $2
"""

_UPDATE_CREDENTIAL = """
UPDATE ai_provider_configurations
SET encrypted_api_key = $1, updated_at = NOW()
WHERE id = $2 AND encrypted_api_key = $3
"""

_SELECT_ALL = """
SELECT encrypted_api_key
FROM ai_provider_configurations
WHERE encrypted_api_key IS NOT NULL
"""


def _rows_affected(status: str) -> int:
    """Row count from an asyncpg command status such as ``"UPDATE 1"``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (AttributeError, ValueError):
        return 0


async def rotate_credentials(
    db_pool: Any,
    cipher: CredentialCipher,
    target_version: int,
    batch_size: int = 100,
) -> dict:
    """Re-encrypt all stored provider API keys under target_version.

    Args:
        db_pool: asyncpg-compatible connection pool.
        cipher: Cipher configured with every key version in use.
        target_version: Key version to rotate to.
        batch_size: Number of rows to process per batch/transaction.

    Returns:
        Stats dict with keys: total, rotated, errors, skipped.

    Raises:
        ConfigurationError: If target_version is not configured.
        WeakKeyError: If the target secret fails the strength heuristic.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    # fail before touching any row
    cipher.get_encryption_key(target_version)

    stats = {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}
    last_id = ""
    batch_num = 0

    logger.info(
        "Starting credential rotation to v%d (batch_size=%d)",
        target_version, batch_size,
    )

    while True:
        async with db_pool.acquire() as conn:
            rows = await conn.fetch(_SELECT_BATCH, last_id, batch_size)

        if not rows:
            break

        batch_num += 1
        last_id = rows[-1]["id"]
        logger.info(
            "Processing batch %d (%d rows)", batch_num, len(rows),
        )

        updates = []
        for row in rows:
            stats["total"] += 1
            row_id = row["id"]
            token = row["encrypted_api_key"]

            if get_encryption_version(token) == target_version:
                stats["skipped"] += 1
                continue
            try:
                rotated = await cipher.rotate_encryption(token, target_version)
            except CredentialVaultError as err:
                logger.error(
                    "Error rotating credential id=%s: %s",
                    row_id, type(err.__cause__ or err).__name__,
                )
                stats["errors"] += 1
                continue
            updates.append((rotated, row_id, token))

        if updates:
            async with db_pool.acquire() as conn:
                tx = conn.transaction()
                await tx.start()
                applied = 0
                try:
                    for rotated, row_id, token in updates:
                        status = await conn.execute(
                            _UPDATE_CREDENTIAL, rotated, row_id, token,
                        )
                        if _rows_affected(status):
                            applied += 1
                        else:
                            # changed by another writer since it was read
                            logger.warning(
                                "Credential id=%s changed during rotation, skipped",
                                row_id,
                            )
                    await tx.commit()
                except Exception:
                    await tx.rollback()
                    raise
            stats["rotated"] += applied
            stats["skipped"] += len(updates) - applied

    logger.info(
        "Credential rotation complete: %s", stats,
    )
    return stats


async def report_encryption_versions(db_pool: Any) -> dict[Optional[int], int]:
    """Count stored envelopes per embedded key version.

    Unreadable envelopes are counted under ``None``.

    Args:
        db_pool: asyncpg-compatible connection pool.

    Returns:
        Mapping of key version to number of stored envelopes.
    """
    async with db_pool.acquire() as conn:
        rows = await conn.fetch(_SELECT_ALL)
    counts = Counter(
        get_encryption_version(row["encrypted_api_key"]) for row in rows
    )
    logger.debug("Encryption version report: %s", dict(counts))
    return dict(counts)
