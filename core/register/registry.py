"""
Ledger registry

Maps a Subject to exactly one ledger, creating it lazily on first access.
The registry never changes lock_version; only the ConcurrencyGuard does.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from core.register.errors import NotFoundError, ValidationError
from core.register.schema import SchemaRegistry, SubjectKeyRule
from core.register.types import LEDGER_COLUMNS, Ledger, Subject
from core.utils.timezone import now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class LedgerRegistry:
    """Ledger registry

    Args:
        db: SQLite adapter
        schemas: register schemas (register type and subject key rules)
        clock: UTC clock for created_at/updated_at
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        schemas: SchemaRegistry,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.db = db
        self.schemas = schemas
        self.clock = clock

    def _check_subject(self, subject: Subject) -> None:
        schema = self.schemas.get(subject.register_type)
        if schema.subject_key == SubjectKeyRule.REQUIRED and subject.key is None:
            raise ValidationError(
                f"subject_key: required for register {subject.register_type}"
            )
        if schema.subject_key == SubjectKeyRule.FORBIDDEN and subject.key is not None:
            raise ValidationError(
                f"subject_key: not allowed for register {subject.register_type}"
            )

    async def get_or_create(
        self,
        subject: Subject,
        metadata: dict[str, Any] | None = None,
        created_by: str | None = None,
    ) -> Ledger:
        """Ledger of a subject, created with lock_version 0 if absent

        Idempotent: repeated calls (also concurrent ones) return the same
        ledger. metadata is only stored on creation.

        Raises:
            ValidationError: unknown register type or subject key rule
        """
        self._check_subject(subject)

        now = self.clock().isoformat()
        async with self.db.transaction():
            cursor = await self.db.execute(
                """
                INSERT OR IGNORE INTO register_ledger (
                    ledger_id, register_type, subject_key, lock_version,
                    metadata_json, is_active, created_by, created_at, updated_at
                ) VALUES (?, ?, ?, 0, ?, 1, ?, ?, ?)
                """,
                (
                    str(uuid.uuid4()),
                    subject.register_type,
                    subject.storage_key,
                    json.dumps(metadata or {}),
                    created_by,
                    now,
                    now,
                ),
            )
            created = cursor.rowcount == 1

        ledger = await self.find(subject)
        assert ledger is not None

        if created:
            logger.info(
                f"Ledger created: {subject}",
                extra={"ledger_id": ledger.ledger_id, "created_by": created_by},
            )
        return ledger

    async def find(self, subject: Subject) -> Ledger | None:
        """Ledger of a subject, or None"""
        row = await self.db.fetchone(
            f"""
            SELECT {LEDGER_COLUMNS} FROM register_ledger
            WHERE register_type = ? AND subject_key = ?
            """,
            (subject.register_type, subject.storage_key),
        )
        return Ledger.from_row(row) if row else None

    async def get(self, ledger_id: str) -> Ledger:
        """Ledger by id

        Raises:
            NotFoundError: no such ledger
        """
        row = await self.db.fetchone(
            f"SELECT {LEDGER_COLUMNS} FROM register_ledger WHERE ledger_id = ?",
            (ledger_id,),
        )
        if row is None:
            raise NotFoundError("ledger", ledger_id)
        return Ledger.from_row(row)

    async def current_version(self, ledger_id: str) -> int:
        """Latest committed lock_version"""
        row = await self.db.fetchone(
            "SELECT lock_version FROM register_ledger WHERE ledger_id = ?",
            (ledger_id,),
        )
        if row is None:
            raise NotFoundError("ledger", ledger_id)
        return row[0]

    async def list_ledgers(
        self,
        register_type: str | None = None,
        active_only: bool = True,
    ) -> list[Ledger]:
        """Ledgers ordered by register type and subject key"""
        sql = f"SELECT {LEDGER_COLUMNS} FROM register_ledger WHERE 1=1"
        params: list[Any] = []

        if register_type:
            sql += " AND register_type = ?"
            params.append(str(getattr(register_type, "value", register_type)))
        if active_only:
            sql += " AND is_active = 1"

        sql += " ORDER BY register_type, subject_key"

        rows = await self.db.fetchall(sql, tuple(params))
        return [Ledger.from_row(row) for row in rows]
