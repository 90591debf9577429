"""
Request schemas (Pydantic)

Web API request validation. Register payloads stay free-form here; they
are validated against the register schema by the ConcurrencyGuard.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from core.types import AnnotationType, EntrySource, EntryType


class LedgerOpenRequest(BaseModel):
    """Open (get or create) the ledger of a subject"""

    register_type: str = Field(..., description="Register type (CD, RP, RETURNS, PRIVATE_CD, POM)")
    subject_key: str | None = Field(default=None, description="Subject key, e.g. drug id (CD registers)")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Subject description, stored on creation only")
    created_by: str | None = Field(default=None, description="User creating the ledger")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "register_type": "CD",
                    "subject_key": "morphine-sulfate-10mg-ml",
                    "metadata": {"drug_name": "Morphine sulfate", "form": "oral solution",
                                 "strength": "10mg/5ml", "drug_class": "Schedule 2"},
                    "created_by": "a.patel",
                },
            ]
        }
    }


class EntryAppendRequest(BaseModel):
    """Append a normal entry or a correction

    expected_lock_version is the ledger version the caller last saw. A stale
    version is rejected with 409 and nothing is written.
    """

    register_type: str = Field(..., description="Register type of the ledger")
    entry_type: EntryType = Field(default=EntryType.NORMAL, description="normal | correction")
    date_of_transaction: date = Field(..., description="Logical date of the record")
    payload: dict[str, Any] = Field(default_factory=dict, description="Register-specific fields")
    expected_lock_version: int = Field(..., ge=0, description="Ledger version last seen (optimistic lock)")
    entered_by: str = Field(..., min_length=1, description="User entering the record")
    source: EntrySource = Field(default=EntrySource.MANUAL, description="manual | ai_scan | import")
    corrects_entry_id: str | None = Field(default=None, description="Entry superseded by this correction")
    correction_reason: str | None = Field(default=None, description="Reason, required for corrections")
    authorised_by: str | None = Field(default=None, description="Authorising user")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "register_type": "CD",
                    "entry_type": "normal",
                    "date_of_transaction": "2024-03-01",
                    "payload": {"transaction_type": "receipt", "quantity_received": "100",
                                "supplier_name": "Alliance", "invoice_number": "INV-1001"},
                    "expected_lock_version": 0,
                    "entered_by": "a.patel",
                },
                {
                    "register_type": "CD",
                    "entry_type": "correction",
                    "date_of_transaction": "2024-03-01",
                    "payload": {"transaction_type": "receipt", "quantity_received": "110",
                                "supplier_name": "Alliance", "invoice_number": "INV-1001"},
                    "expected_lock_version": 1,
                    "entered_by": "a.patel",
                    "corrects_entry_id": "<entry_id>",
                    "correction_reason": "Quantity misread from invoice",
                },
            ]
        }
    }


class BalanceCheckRequest(BaseModel):
    """Physical stock count to compare with the ledger balance"""

    counted: Decimal = Field(..., description="Quantity physically counted")


class AnnotationCreateRequest(BaseModel):
    """Annotate an entry"""

    annotation_type: AnnotationType = Field(default=AnnotationType.NOTE, description="note | flag | query | resolution")
    annotation_text: str = Field(..., description="Annotation text")
    created_by: str = Field(..., description="Annotating user")
