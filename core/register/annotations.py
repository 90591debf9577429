"""
Entry annotations

Append-only notes, flags, queries and resolutions attached to an entry.
They never modify the entry or its ledger's lock_version.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from core.register.errors import ValidationError
from core.register.store import EntryStore
from core.register.types import ANNOTATION_COLUMNS, EntryAnnotation
from core.types import AnnotationType
from core.utils.timezone import ensure_utc, now_utc

if TYPE_CHECKING:
    from adapters.db.sqlite_adapter import SQLiteAdapter

logger = logging.getLogger(__name__)


class AnnotationStore:
    """Annotation store

    Args:
        db: SQLite adapter
        clock: UTC clock for created_at
    """

    def __init__(
        self,
        db: SQLiteAdapter,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.db = db
        self.clock = clock
        self.entries = EntryStore(db)

    async def add(
        self,
        entry_id: str,
        annotation_type: AnnotationType | str,
        text: str,
        created_by: str,
    ) -> EntryAnnotation:
        """Attach an annotation to an entry

        Raises:
            NotFoundError: unknown entry
            ValidationError: unknown type, blank text or blank author
        """
        issues = []
        try:
            annotation_type = AnnotationType(annotation_type)
        except ValueError:
            valid = [t.value for t in AnnotationType]
            issues.append(f"annotation_type: must be one of {valid}")
        if not isinstance(text, str) or not text.strip():
            issues.append("annotation_text: required")
        if not isinstance(created_by, str) or not created_by.strip():
            issues.append("created_by: required")
        if issues:
            raise ValidationError(issues)

        entry = await self.entries.get(entry_id)

        annotation = EntryAnnotation(
            annotation_id=str(uuid.uuid4()),
            entry_id=entry.entry_id,
            ledger_id=entry.ledger_id,
            annotation_type=annotation_type.value,
            annotation_text=text.strip(),
            created_by=created_by.strip(),
            created_at=ensure_utc(self.clock()),
        )

        async with self.db.transaction():
            await self.db.execute(
                f"INSERT INTO entry_annotation ({ANNOTATION_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    annotation.annotation_id,
                    annotation.entry_id,
                    annotation.ledger_id,
                    annotation.annotation_type,
                    annotation.annotation_text,
                    annotation.created_by,
                    annotation.created_at.isoformat(),
                ),
            )

        logger.info(
            f"Annotation added: {annotation.annotation_type}",
            extra={"entry_id": entry_id, "annotation_id": annotation.annotation_id},
        )
        return annotation

    async def list_for_entry(self, entry_id: str) -> list[EntryAnnotation]:
        """Annotations of an entry, oldest first

        Raises:
            NotFoundError: unknown entry
        """
        await self.entries.get(entry_id)
        rows = await self.db.fetchall(
            f"""
            SELECT {ANNOTATION_COLUMNS} FROM entry_annotation
            WHERE entry_id = ?
            ORDER BY created_at, rowid
            """,
            (entry_id,),
        )
        return [EntryAnnotation.from_row(row) for row in rows]
