"""
SQLite adapter

Manages the SQLite connection in WAL mode so the web process and
maintenance scripts can access the same database file concurrently.

Transactions are explicit (autocommit connection + BEGIN IMMEDIATE), so
the write lock is taken up front and two writers never both read a stale
lock_version inside their transactions.

Note: do not use time or count as SQLite aliases (reserved words)
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator

import aiosqlite

from core.constants import Paths

if TYPE_CHECKING:
    from core.config.loader import Settings

logger = logging.getLogger(__name__)


def get_db_path(settings: "Settings | None" = None) -> Path:
    """Database path from settings

    Args:
        settings: loaded Settings (default DB path if None)

    Returns:
        DB file path (Path)
    """
    if settings is None:
        return Paths.DEFAULT_DB
    return settings.db_path


async def create_connection(
    db_path: Path | str,
    readonly: bool = False,
) -> aiosqlite.Connection:
    """Create a SQLite connection (WAL mode)

    Args:
        db_path: DB file path
        readonly: open read-only

    Returns:
        aiosqlite connection
    """
    db_path_str = str(db_path)

    # Create the directory if needed
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    # isolation_level=None: no implicit BEGIN, transactions are explicit
    if readonly:
        conn = await aiosqlite.connect(
            f"file:{db_path_str}?mode=ro", uri=True, isolation_level=None
        )
    else:
        conn = await aiosqlite.connect(db_path_str, isolation_level=None)

    await conn.execute("PRAGMA journal_mode=WAL")

    # Concurrent access
    await conn.execute("PRAGMA busy_timeout=30000")  # wait up to 30s

    await conn.execute("PRAGMA foreign_keys=ON")

    logger.info(
        "SQLite connection created",
        extra={"db_path": db_path_str, "readonly": readonly},
    )

    return conn


class SQLiteAdapter:
    """SQLite adapter

    Manages one WAL-mode connection and provides a transaction context
    manager. Transactions on the same adapter are serialised by an
    asyncio.Lock; across connections SQLite's write lock serialises them.

    Args:
        db_path: DB file path
        readonly: read-only connection

    Usage:
    ```python
    adapter = SQLiteAdapter(db_path)
    await adapter.connect()

    async with adapter.transaction():
        await adapter.execute("INSERT INTO ...")

    await adapter.close()
    ```
    """

    def __init__(self, db_path: Path | str, readonly: bool = False):
        self.db_path = Path(db_path)
        self.readonly = readonly
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Connection state"""
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    async def connect(self) -> None:
        """Open the connection"""
        if self._conn is not None:
            return

        self._conn = await create_connection(self.db_path, self.readonly)

    async def close(self) -> None:
        """Close the connection"""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("SQLite connection closed")

    async def execute(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> aiosqlite.Cursor:
        """Execute SQL"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        if parameters:
            return await self._conn.execute(sql, parameters)
        return await self._conn.execute(sql)

    async def executemany(
        self,
        sql: str,
        parameters: list[tuple[Any, ...]],
    ) -> aiosqlite.Cursor:
        """Execute SQL for each parameter tuple"""
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        return await self._conn.executemany(sql, parameters)

    async def fetchone(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> tuple[Any, ...] | None:
        """Fetch a single row"""
        cursor = await self.execute(sql, parameters)
        return await cursor.fetchone()

    async def fetchall(
        self,
        sql: str,
        parameters: tuple[Any, ...] | None = None,
    ) -> list[tuple[Any, ...]]:
        """Fetch all rows"""
        cursor = await self.execute(sql, parameters)
        return list(await cursor.fetchall())

    async def commit(self) -> None:
        """Commit"""
        if self._conn is not None:
            await self._conn.commit()

    async def rollback(self) -> None:
        """Rollback"""
        if self._conn is not None:
            await self._conn.rollback()

    @asynccontextmanager
    async def transaction(self, immediate: bool = True) -> AsyncIterator[aiosqlite.Connection]:
        """Transaction context manager

        Commits on success, rolls back and re-raises on any exception.

        Args:
            immediate: BEGIN IMMEDIATE (take the write lock up front)

        Usage:
        ```python
        async with adapter.transaction():
            await adapter.execute("UPDATE ...")
            # committed on exit
        ```
        """
        if self._conn is None:
            raise RuntimeError("Not connected to database")

        async with self._tx_lock:
            await self._conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            try:
                yield self._conn
                await self._conn.commit()
            except BaseException:
                await self._conn.rollback()
                raise

    async def table_exists(self, table_name: str) -> bool:
        """Check whether a table exists"""
        result = await self.fetchone(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
            (table_name,),
        )
        return result is not None

    async def get_table_info(self, table_name: str) -> list[dict[str, Any]]:
        """Table column info"""
        rows = await self.fetchall(f"PRAGMA table_info({table_name})")

        columns = []
        for row in rows:
            columns.append({
                "cid": row[0],
                "name": row[1],
                "type": row[2],
                "notnull": bool(row[3]),
                "default_value": row[4],
                "pk": bool(row[5]),
            })

        return columns

    # -------------------------------------------------------------------------
    # Context manager
    # -------------------------------------------------------------------------

    async def __aenter__(self) -> "SQLiteAdapter":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


async def init_schema(adapter: SQLiteAdapter) -> None:
    """Initialise the schema (create tables, indexes and triggers)

    Args:
        adapter: connected SQLiteAdapter

    Idempotent; called by the web lifespan and scripts/init_db.py.
    """
    from core.register.db_schema import init_register_schema

    await init_register_schema(adapter)
    logger.info("Schema initialised", extra={"db_path": str(adapter.db_path)})
