"""
SQLite adapter tests

SQLiteAdapter, connection setup and the register schema.
"""

import asyncio
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio

from adapters.db.sqlite_adapter import (
    SQLiteAdapter,
    create_connection,
    get_db_path,
    init_schema,
)
from core.config.loader import get_settings, Settings
from core.constants import Paths


class TestGetDbPath:
    """get_db_path"""

    def test_default_path(self) -> None:
        path = get_db_path()

        assert path == Paths.DEFAULT_DB
        assert isinstance(path, Path)

    def test_from_settings(self, temp_settings_file: Path, temp_dir: Path) -> None:
        Settings.reset()
        try:
            settings = get_settings(temp_settings_file)
            assert get_db_path(settings) == temp_dir / "register.db"
        finally:
            Settings.reset()


class TestCreateConnection:
    """create_connection"""

    @pytest.mark.asyncio
    async def test_wal_mode(self, tmp_path: Path) -> None:
        conn = await create_connection(tmp_path / "test.db")

        cursor = await conn.execute("PRAGMA journal_mode")
        row = await cursor.fetchone()
        assert row[0].upper() == "WAL"

        await conn.close()

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled(self, tmp_path: Path) -> None:
        conn = await create_connection(tmp_path / "test.db")

        cursor = await conn.execute("PRAGMA foreign_keys")
        row = await cursor.fetchone()
        assert row[0] == 1

        await conn.close()

    @pytest.mark.asyncio
    async def test_creates_parent_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "test.db"

        conn = await create_connection(db_path)

        assert db_path.parent.exists()
        await conn.close()


class TestSQLiteAdapter:
    """SQLiteAdapter"""

    @pytest_asyncio.fixture
    async def adapter(self, tmp_path: Path) -> SQLiteAdapter:
        adapter = SQLiteAdapter(tmp_path / "test.db")
        await adapter.connect()
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_connect_and_close(self, tmp_path: Path) -> None:
        adapter = SQLiteAdapter(tmp_path / "test.db")

        assert adapter.is_connected is False

        await adapter.connect()
        assert adapter.is_connected is True

        await adapter.close()
        assert adapter.is_connected is False

    @pytest.mark.asyncio
    async def test_execute_requires_connection(self, tmp_path: Path) -> None:
        adapter = SQLiteAdapter(tmp_path / "test.db")

        with pytest.raises(RuntimeError):
            await adapter.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_fetchall(self, adapter: SQLiteAdapter) -> None:
        await adapter.execute("CREATE TABLE items (value TEXT)")
        async with adapter.transaction():
            await adapter.executemany(
                "INSERT INTO items (value) VALUES (?)",
                [("A",), ("B",), ("C",)],
            )

        rows = await adapter.fetchall("SELECT value FROM items ORDER BY value")

        assert [row[0] for row in rows] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_transaction_commit(self, adapter: SQLiteAdapter) -> None:
        await adapter.execute("CREATE TABLE tx_test (id INTEGER)")

        async with adapter.transaction() as conn:
            await conn.execute("INSERT INTO tx_test (id) VALUES (1)")
            await conn.execute("INSERT INTO tx_test (id) VALUES (2)")

        assert adapter.in_transaction is False
        rows = await adapter.fetchall("SELECT id FROM tx_test")
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_transaction_rollback(self, adapter: SQLiteAdapter) -> None:
        await adapter.execute("CREATE TABLE tx_test2 (id INTEGER)")

        with pytest.raises(ValueError):
            async with adapter.transaction():
                await adapter.execute("INSERT INTO tx_test2 (id) VALUES (1)")
                raise ValueError("intentional")

        assert adapter.in_transaction is False
        rows = await adapter.fetchall("SELECT id FROM tx_test2")
        assert rows == []

    @pytest.mark.asyncio
    async def test_transactions_are_serialised(self, adapter: SQLiteAdapter) -> None:
        """Concurrent transactions on one adapter do not interleave"""
        await adapter.execute("CREATE TABLE seq (step TEXT)")

        async def writer(name: str) -> None:
            async with adapter.transaction():
                await adapter.execute("INSERT INTO seq (step) VALUES (?)", (f"{name}-begin",))
                await asyncio.sleep(0.01)
                await adapter.execute("INSERT INTO seq (step) VALUES (?)", (f"{name}-end",))

        await asyncio.gather(writer("a"), writer("b"))

        rows = [row[0] for row in await adapter.fetchall("SELECT step FROM seq ORDER BY rowid")]
        assert rows in (
            ["a-begin", "a-end", "b-begin", "b-end"],
            ["b-begin", "b-end", "a-begin", "a-end"],
        )

    @pytest.mark.asyncio
    async def test_table_exists(self, adapter: SQLiteAdapter) -> None:
        assert await adapter.table_exists("nonexistent") is False

        await adapter.execute("CREATE TABLE existing (id INTEGER)")

        assert await adapter.table_exists("existing") is True

    @pytest.mark.asyncio
    async def test_context_manager(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "ctx_test.db") as adapter:
            assert adapter.is_connected is True

        assert adapter.is_connected is False


class TestInitSchema:
    """init_schema"""

    @pytest.mark.asyncio
    async def test_creates_tables(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "schema_test.db") as adapter:
            await init_schema(adapter)

            assert await adapter.table_exists("register_ledger") is True
            assert await adapter.table_exists("register_entry") is True
            assert await adapter.table_exists("entry_annotation") is True

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "idempotent_test.db") as adapter:
            await init_schema(adapter)
            await init_schema(adapter)

            assert await adapter.table_exists("register_entry") is True

    @pytest.mark.asyncio
    async def test_register_entry_columns(self, tmp_path: Path) -> None:
        async with SQLiteAdapter(tmp_path / "columns_test.db") as adapter:
            await init_schema(adapter)

            columns = await adapter.get_table_info("register_entry")
            column_names = [c["name"] for c in columns]

            for name in (
                "entry_id", "ledger_id", "entry_number", "entry_type",
                "corrects_entry_id", "correction_reason", "date_of_transaction",
                "payload_json", "entered_by", "entered_at", "source",
                "ledger_lock_version",
            ):
                assert name in column_names


class TestAppendOnlyTriggers:
    """Database-level append-only enforcement"""

    @pytest_asyncio.fixture
    async def seeded(self, tmp_path: Path) -> SQLiteAdapter:
        adapter = SQLiteAdapter(tmp_path / "triggers.db")
        await adapter.connect()
        await init_schema(adapter)
        async with adapter.transaction():
            await adapter.execute("""
                INSERT INTO register_ledger (
                    ledger_id, register_type, subject_key, lock_version,
                    created_at, updated_at
                ) VALUES ('l1', 'RP', '', 1, '2024-01-01T00:00:00+00:00', '2024-01-01T00:00:00+00:00')
            """)
            await adapter.execute("""
                INSERT INTO register_entry (
                    entry_id, ledger_id, entry_number, entry_type,
                    date_of_transaction, payload_json, entered_by, entered_at,
                    source, ledger_lock_version
                ) VALUES ('e1', 'l1', 1, 'normal', '2024-01-01', '{}', 'u',
                          '2024-01-01T00:00:00+00:00', 'manual', 0)
            """)
        yield adapter
        await adapter.close()

    @pytest.mark.asyncio
    async def test_entry_update_rejected(self, seeded: SQLiteAdapter) -> None:
        with pytest.raises(aiosqlite.IntegrityError, match="append-only"):
            async with seeded.transaction():
                await seeded.execute("UPDATE register_entry SET entered_by = 'x' WHERE entry_id = 'e1'")

    @pytest.mark.asyncio
    async def test_entry_delete_rejected(self, seeded: SQLiteAdapter) -> None:
        with pytest.raises(aiosqlite.IntegrityError, match="append-only"):
            async with seeded.transaction():
                await seeded.execute("DELETE FROM register_entry WHERE entry_id = 'e1'")

    @pytest.mark.asyncio
    async def test_ledger_delete_rejected(self, seeded: SQLiteAdapter) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            async with seeded.transaction():
                await seeded.execute("DELETE FROM register_ledger WHERE ledger_id = 'l1'")

    @pytest.mark.asyncio
    async def test_duplicate_entry_number_rejected(self, seeded: SQLiteAdapter) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            async with seeded.transaction():
                await seeded.execute("""
                    INSERT INTO register_entry (
                        entry_id, ledger_id, entry_number, entry_type,
                        date_of_transaction, payload_json, entered_by, entered_at,
                        source, ledger_lock_version
                    ) VALUES ('e2', 'l1', 1, 'normal', '2024-01-02', '{}', 'u',
                              '2024-01-02T00:00:00+00:00', 'manual', 1)
                """)

    @pytest.mark.asyncio
    async def test_rows_unchanged_after_rejection(self, seeded: SQLiteAdapter) -> None:
        with pytest.raises(aiosqlite.IntegrityError):
            async with seeded.transaction():
                await seeded.execute("DELETE FROM register_entry")

        row = await seeded.fetchone("SELECT COUNT(*) FROM register_entry")
        assert row[0] == 1
