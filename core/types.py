"""
Type definitions

Core Enum definitions shared across the register ledger.
Every Enum inherits from str so it serialises as a plain string.
"""

from enum import Enum


class RegisterType(str, Enum):
    """Built-in register types

    Additional register types may be declared in registers.yaml; the
    engine treats register_type as a plain string validated against the
    loaded schemas.
    """

    CD = "CD"  # Controlled drug register
    RP = "RP"  # Responsible pharmacist log
    RETURNS = "RETURNS"  # Patient returns log
    PRIVATE_CD = "PRIVATE_CD"  # Private CD prescriptions
    POM = "POM"  # Prescription-only medicine register


class EntryType(str, Enum):
    """Ledger entry kind"""

    NORMAL = "normal"
    CORRECTION = "correction"


class EntrySource(str, Enum):
    """How an entry was created"""

    MANUAL = "manual"
    AI_SCAN = "ai_scan"
    IMPORT = "import"


class TransactionType(str, Enum):
    """CD register transaction types"""

    RECEIPT = "receipt"
    SUPPLY = "supply"
    RETURN_TO_SUPPLIER = "return_to_supplier"
    PATIENT_RETURN = "patient_return"
    DISPOSAL = "disposal"
    TRANSFER_IN = "transfer_in"
    TRANSFER_OUT = "transfer_out"


class FieldType(str, Enum):
    """Semantic type of a register payload field"""

    TEXT = "text"
    INTEGER = "integer"
    DECIMAL = "decimal"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    CHOICE = "choice"
    BOOLEAN = "boolean"


class AnnotationType(str, Enum):
    """Entry annotation kind"""

    NOTE = "note"
    FLAG = "flag"
    QUERY = "query"
    RESOLUTION = "resolution"


class BalanceCheckStatus(str, Enum):
    """Outcome of comparing a physical count with the ledger balance"""

    MATCHED = "matched"
    DISCREPANCY = "discrepancy"
