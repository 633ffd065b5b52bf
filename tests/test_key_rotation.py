"""
Tests for batch credential rotation and version reporting.

Uses an in-memory stand-in for an asyncpg pool that understands the two
SELECT shapes and the conditional UPDATE issued by key_rotation.
"""
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio

from credential_vault import (
    ConfigurationError,
    WeakKeyError,
    get_encryption_version,
    report_encryption_versions,
    rotate_credentials,
)


# --- Test Fixtures ---

class FakeTransaction:
    def __init__(self, conn):
        self._conn = conn

    async def start(self):
        self._conn.pending = []

    async def commit(self):
        for token, row_id, old in self._conn.pending:
            if self._conn.table.get(row_id) == old:
                self._conn.table[row_id] = token
        self._conn.pending = None

    async def rollback(self):
        self._conn.pending = None


class FakeConnection:
    def __init__(self, pool):
        self.table = pool.table
        self.fail_updates = pool.fail_updates
        self.concurrent_writes = pool.concurrent_writes
        self.pending = None

    def transaction(self):
        return FakeTransaction(self)

    async def fetch(self, sql, *args):
        rows = [
            {"id": row_id, "encrypted_api_key": token}
            for row_id, token in sorted(self.table.items())
            if token is not None
        ]
        if "id > $1" in sql:
            last_id, limit = args
            return [row for row in rows if row["id"] > last_id][:limit]
        return rows

    async def execute(self, sql, *args):
        if self.fail_updates:
            raise RuntimeError("connection lost")
        token, row_id, old = args
        if row_id in self.concurrent_writes:
            # another writer lands between the SELECT and this UPDATE
            self.table[row_id] = self.concurrent_writes.pop(row_id)
        if self.table.get(row_id) != old:
            return "UPDATE 0"
        self.pending.append(args)
        return "UPDATE 1"


class FakePool:
    def __init__(self, table, fail_updates=False, concurrent_writes=None):
        self.table = table
        self.fail_updates = fail_updates
        self.concurrent_writes = dict(concurrent_writes or {})
        self.acquired = 0

    @asynccontextmanager
    async def acquire(self):
        self.acquired += 1
        yield FakeConnection(self)


@pytest_asyncio.fixture
async def stored(cipher):
    """Stored envelopes: two at v1, one at v2, one corrupted, one empty."""
    return {
        "cfg-a": await cipher.encrypt("sk-alpha", 1),
        "cfg-b": await cipher.encrypt("sk-bravo", 2),
        "cfg-c": "invalid",
        "cfg-d": await cipher.encrypt("sk-delta", 1),
        "cfg-e": None,
    }


# --- Test Rotation ---

class TestRotateCredentials:
    """Tests for rotate_credentials."""

    @pytest.mark.asyncio
    async def test_rotates_to_target(self, cipher, stored):
        pool = FakePool(dict(stored))
        stats = await rotate_credentials(pool, cipher, 2, batch_size=2)

        assert stats == {"total": 4, "rotated": 2, "errors": 1, "skipped": 1}
        assert get_encryption_version(pool.table["cfg-a"]) == 2
        assert get_encryption_version(pool.table["cfg-d"]) == 2
        assert pool.table["cfg-b"] == stored["cfg-b"]
        assert pool.table["cfg-c"] == "invalid"
        assert pool.table["cfg-e"] is None
        assert await cipher.decrypt(pool.table["cfg-a"]) == "sk-alpha"
        assert await cipher.decrypt(pool.table["cfg-d"]) == "sk-delta"

    @pytest.mark.asyncio
    async def test_idempotent(self, cipher, stored):
        """Test a second run skips everything it already rotated."""
        pool = FakePool(dict(stored))
        await rotate_credentials(pool, cipher, 2)
        stats = await rotate_credentials(pool, cipher, 2)

        assert stats == {"total": 4, "rotated": 0, "errors": 1, "skipped": 3}

    @pytest.mark.asyncio
    async def test_unknown_target(self, cipher, stored):
        """Test the target version is checked before any row is read."""
        pool = FakePool(dict(stored))
        with pytest.raises(ConfigurationError):
            await rotate_credentials(pool, cipher, 9)
        assert pool.acquired == 0

    @pytest.mark.asyncio
    async def test_weak_target(self, weak_cipher):
        pool = FakePool({})
        with pytest.raises(WeakKeyError):
            await rotate_credentials(pool, weak_cipher, 3)

    @pytest.mark.asyncio
    async def test_invalid_batch_size(self, cipher):
        with pytest.raises(ValueError):
            await rotate_credentials(FakePool({}), cipher, 2, batch_size=0)

    @pytest.mark.asyncio
    async def test_update_failure_rolls_back(self, cipher, stored):
        """Test a database failure aborts the batch unchanged."""
        pool = FakePool(dict(stored), fail_updates=True)
        with pytest.raises(RuntimeError):
            await rotate_credentials(pool, cipher, 2)
        assert pool.table == stored

    @pytest.mark.asyncio
    async def test_concurrent_write_not_counted(self, cipher, stored):
        """Test a row changed between read and update is skipped, not rotated."""
        replacement = await cipher.encrypt("sk-alpha-new", 1)
        pool = FakePool(dict(stored), concurrent_writes={"cfg-a": replacement})
        stats = await rotate_credentials(pool, cipher, 2)

        assert stats == {"total": 4, "rotated": 1, "errors": 1, "skipped": 2}
        assert pool.table["cfg-a"] == replacement
        assert get_encryption_version(pool.table["cfg-d"]) == 2
        assert await cipher.decrypt(pool.table["cfg-a"]) == "sk-alpha-new"

    @pytest.mark.asyncio
    async def test_empty_table(self, cipher):
        stats = await rotate_credentials(FakePool({}), cipher, 2)
        assert stats == {"total": 0, "rotated": 0, "errors": 0, "skipped": 0}


# --- Test Reporting ---

class TestReportEncryptionVersions:
    """Tests for report_encryption_versions."""

    @pytest.mark.asyncio
    async def test_counts_by_version(self, stored):
        report = await report_encryption_versions(FakePool(dict(stored)))
        assert report == {1: 2, 2: 1, None: 1}

    @pytest.mark.asyncio
    async def test_after_rotation(self, cipher, stored):
        pool = FakePool(dict(stored))
        await rotate_credentials(pool, cipher, 2)
        assert await report_encryption_versions(pool) == {2: 3, None: 1}
