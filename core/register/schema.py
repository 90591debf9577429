"""
Register schemas

Typed configuration of the register-specific payload fields. Each register
type lists its fields (semantic type, required/optional, conditional
requirements, choices, patterns), whether its ledgers are keyed by a
subject (e.g. a drug), and an optional running-balance rule.

Definitions come from registers.yaml or, when no file is configured, from
DEFAULT_REGISTER_DEFINITIONS. The Concurrency Guard validates every payload
generically through validate_payload(); nothing is hard-coded per register.

Usage:
```python
registry = load_register_schemas(Paths.REGISTERS_FILE)
schema = registry.get("CD")
payload = schema.validate_payload({"transaction_type": "receipt", ...})
```
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from core.register.errors import RegisterConfigError, ValidationError
from core.types import FieldType
from core.utils.timezone import ensure_utc

logger = logging.getLogger(__name__)


class SubjectKeyRule(str, Enum):
    """Whether ledgers of a register type are keyed by a subject"""

    REQUIRED = "required"  # one ledger per subject (e.g. per drug)
    FORBIDDEN = "forbidden"  # a single ledger for the register type
    OPTIONAL = "optional"


@dataclass(frozen=True)
class FieldSpec:
    """Payload field definition

    required_when maps another field name to the values that make this
    field required, e.g. {"transaction_type": {"supply"}}.
    """

    name: str
    field_type: FieldType
    required: bool = False
    required_when: dict[str, frozenset[str]] = field(default_factory=dict)
    choices: frozenset[str] = frozenset()
    pattern: str | None = None
    min_value: Decimal | None = None
    max_length: int | None = None
    label: str | None = None


@dataclass(frozen=True)
class BalanceRule:
    """Running-balance rule of a quantity-bearing register

    Signed mode: quantity_field holds a signed quantity (+10, -3).
    Directional mode: direction_field selects inbound/outbound, and the
    magnitude is read from inbound_quantity_field / outbound_quantity_field.
    """

    quantity_field: str | None = None
    direction_field: str | None = None
    inbound: frozenset[str] = frozenset()
    outbound: frozenset[str] = frozenset()
    inbound_quantity_field: str | None = None
    outbound_quantity_field: str | None = None

    @property
    def is_directional(self) -> bool:
        return self.direction_field is not None


@dataclass(frozen=True)
class RegisterSchema:
    """Schema of one register type"""

    register_type: str
    fields: tuple[FieldSpec, ...]
    subject_key: SubjectKeyRule = SubjectKeyRule.OPTIONAL
    balance: BalanceRule | None = None
    description: str | None = None

    @property
    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields]

    def get_field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    def validate_payload(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Validate and normalise a payload

        Args:
            payload: raw payload from the caller

        Returns:
            Normalised payload (decimals as strings, dates as ISO strings,
            blank values dropped)

        Raises:
            ValidationError: every issue found, one message per field
        """
        if not isinstance(payload, dict):
            raise ValidationError("payload: must be a mapping")

        issues: list[str] = []
        normalised: dict[str, Any] = {}

        for name in payload:
            if self.get_field(name) is None:
                issues.append(f"{name}: unknown field for register {self.register_type}")

        for spec in self.fields:
            raw = payload.get(spec.name)
            if _is_blank(raw):
                continue
            try:
                normalised[spec.name] = _normalise_value(spec, raw)
            except ValueError as e:
                issues.append(f"{spec.name}: {e}")

        for spec in self.fields:
            if spec.name in normalised:
                continue
            if spec.required:
                issues.append(f"{spec.name}: required")
                continue
            for other, values in spec.required_when.items():
                other_value = normalised.get(other, payload.get(other))
                if other_value is not None and str(other_value) in values:
                    issues.append(f"{spec.name}: required when {other} is {other_value}")
                    break

        if issues:
            raise ValidationError(issues)

        return normalised


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _normalise_value(spec: FieldSpec, raw: Any) -> Any:
    """Convert one raw value to its stored form (ValueError on mismatch)"""
    field_type = spec.field_type

    if field_type in (FieldType.TEXT, FieldType.CHOICE):
        if not isinstance(raw, str):
            raise ValueError("must be a string")
        value = raw.strip()
        if spec.max_length is not None and len(value) > spec.max_length:
            raise ValueError(f"must be at most {spec.max_length} characters")
        if spec.pattern is not None and not re.fullmatch(spec.pattern, value):
            raise ValueError(f"does not match pattern {spec.pattern}")
        if field_type == FieldType.CHOICE and value not in spec.choices:
            raise ValueError(f"must be one of {sorted(spec.choices)}")
        return value

    if field_type == FieldType.BOOLEAN:
        if not isinstance(raw, bool):
            raise ValueError("must be true or false")
        return raw

    if field_type == FieldType.INTEGER:
        if isinstance(raw, bool):
            raise ValueError("must be an integer")
        try:
            value = int(raw) if isinstance(raw, (int, str)) else None
        except ValueError:
            value = None
        if value is None:
            raise ValueError("must be an integer")
        if spec.min_value is not None and value < spec.min_value:
            raise ValueError(f"must be >= {spec.min_value}")
        return value

    if field_type == FieldType.DECIMAL:
        if isinstance(raw, bool) or not isinstance(raw, (int, float, str, Decimal)):
            raise ValueError("must be a number")
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            raise ValueError("must be a number") from None
        if not value.is_finite():
            raise ValueError("must be a finite number")
        if spec.min_value is not None and value < spec.min_value:
            raise ValueError(f"must be >= {spec.min_value}")
        return str(value)

    if field_type == FieldType.DATE:
        if isinstance(raw, datetime):
            raise ValueError("must be a date, not a datetime")
        if isinstance(raw, date):
            return raw.isoformat()
        if isinstance(raw, str):
            try:
                return date.fromisoformat(raw.strip()).isoformat()
            except ValueError:
                raise ValueError("must be an ISO date (YYYY-MM-DD)") from None
        raise ValueError("must be an ISO date (YYYY-MM-DD)")

    if field_type == FieldType.DATETIME:
        if isinstance(raw, str):
            try:
                raw = datetime.fromisoformat(raw.strip())
            except ValueError:
                raise ValueError("must be an ISO datetime") from None
        if not isinstance(raw, datetime):
            raise ValueError("must be an ISO datetime")
        return ensure_utc(raw).isoformat()

    if field_type == FieldType.TIME:
        if isinstance(raw, str):
            try:
                raw = time.fromisoformat(raw.strip())
            except ValueError:
                raise ValueError("must be a time (HH:MM)") from None
        if not isinstance(raw, time):
            raise ValueError("must be a time (HH:MM)")
        return raw.isoformat(timespec="minutes")

    raise ValueError(f"unsupported field type {field_type}")


class SchemaRegistry:
    """Register schemas by register type

    Args:
        schemas: RegisterSchema instances (register_type must be unique)
    """

    def __init__(self, schemas: list[RegisterSchema]):
        self._schemas: dict[str, RegisterSchema] = {}
        for schema in schemas:
            if schema.register_type in self._schemas:
                raise RegisterConfigError(
                    f"Duplicate register type: {schema.register_type}"
                )
            self._schemas[schema.register_type] = schema

    @property
    def register_types(self) -> list[str]:
        return sorted(self._schemas)

    def __contains__(self, register_type: object) -> bool:
        return register_type in self._schemas

    def get(self, register_type: str) -> RegisterSchema:
        """Schema of a register type

        Raises:
            ValidationError: unknown register type
        """
        schema = self._schemas.get(str(register_type))
        if schema is None:
            raise ValidationError(
                f"register_type: unknown register type '{register_type}' "
                f"(known: {', '.join(self.register_types)})"
            )
        return schema

    @classmethod
    def from_definitions(cls, definitions: dict[str, Any]) -> "SchemaRegistry":
        """Build from the registers.yaml structure"""
        if not isinstance(definitions, dict) or not definitions:
            raise RegisterConfigError("register definitions must be a non-empty mapping")
        return cls([
            parse_register_schema(register_type, definition)
            for register_type, definition in definitions.items()
        ])

    @classmethod
    def default(cls) -> "SchemaRegistry":
        """Built-in register definitions"""
        return cls.from_definitions(DEFAULT_REGISTER_DEFINITIONS)


# =========================================================================
# Parsing
# =========================================================================


def _parse_field(register_type: str, name: str, definition: Any) -> FieldSpec:
    where = f"{register_type}.fields.{name}"
    if not isinstance(definition, dict):
        raise RegisterConfigError(f"{where}: must be a mapping")

    try:
        field_type = FieldType(definition.get("type", FieldType.TEXT.value))
    except ValueError:
        valid = [t.value for t in FieldType]
        raise RegisterConfigError(
            f"{where}: invalid type '{definition.get('type')}'. Valid values: {valid}"
        ) from None

    choices = frozenset(str(c) for c in definition.get("choices") or [])
    if field_type == FieldType.CHOICE and not choices:
        raise RegisterConfigError(f"{where}: choice field requires 'choices'")

    required_when: dict[str, frozenset[str]] = {}
    for other, values in (definition.get("required_when") or {}).items():
        if isinstance(values, str):
            values = [values]
        required_when[str(other)] = frozenset(str(v) for v in values)

    pattern = definition.get("pattern")
    if pattern is not None:
        try:
            re.compile(pattern)
        except re.error as e:
            raise RegisterConfigError(f"{where}: invalid pattern: {e}") from e

    min_value = definition.get("min_value")
    if min_value is not None:
        try:
            min_value = Decimal(str(min_value))
        except InvalidOperation:
            raise RegisterConfigError(f"{where}: invalid min_value") from None

    return FieldSpec(
        name=name,
        field_type=field_type,
        required=bool(definition.get("required", False)),
        required_when=required_when,
        choices=choices,
        pattern=pattern,
        min_value=min_value,
        max_length=definition.get("max_length"),
        label=definition.get("label"),
    )


def _parse_balance(
    register_type: str,
    definition: Any,
    fields: tuple[FieldSpec, ...],
) -> BalanceRule:
    where = f"{register_type}.balance"
    if not isinstance(definition, dict):
        raise RegisterConfigError(f"{where}: must be a mapping")

    rule = BalanceRule(
        quantity_field=definition.get("quantity_field"),
        direction_field=definition.get("direction_field"),
        inbound=frozenset(str(v) for v in definition.get("inbound") or []),
        outbound=frozenset(str(v) for v in definition.get("outbound") or []),
        inbound_quantity_field=definition.get("inbound_quantity_field"),
        outbound_quantity_field=definition.get("outbound_quantity_field"),
    )

    if rule.is_directional:
        referenced = [
            rule.direction_field,
            rule.inbound_quantity_field,
            rule.outbound_quantity_field,
        ]
        if not rule.inbound_quantity_field or not rule.outbound_quantity_field:
            raise RegisterConfigError(
                f"{where}: directional rule needs inbound_quantity_field "
                "and outbound_quantity_field"
            )
        if rule.inbound & rule.outbound:
            raise RegisterConfigError(f"{where}: inbound and outbound overlap")
    elif rule.quantity_field:
        referenced = [rule.quantity_field]
    else:
        raise RegisterConfigError(
            f"{where}: needs either quantity_field or direction_field"
        )

    names = {spec.name for spec in fields}
    for name in referenced:
        if name not in names:
            raise RegisterConfigError(f"{where}: unknown field '{name}'")

    return rule


def parse_register_schema(register_type: str, definition: Any) -> RegisterSchema:
    """Parse one register definition

    Raises:
        RegisterConfigError: malformed definition
    """
    if not isinstance(definition, dict):
        raise RegisterConfigError(f"{register_type}: definition must be a mapping")

    raw_fields = definition.get("fields")
    if not isinstance(raw_fields, dict) or not raw_fields:
        raise RegisterConfigError(f"{register_type}: 'fields' must be a non-empty mapping")

    fields = tuple(
        _parse_field(register_type, str(name), spec)
        for name, spec in raw_fields.items()
    )

    names = {spec.name for spec in fields}
    for spec in fields:
        for other in spec.required_when:
            if other not in names:
                raise RegisterConfigError(
                    f"{register_type}.fields.{spec.name}: required_when "
                    f"references unknown field '{other}'"
                )

    try:
        subject_key = SubjectKeyRule(definition.get("subject_key", SubjectKeyRule.OPTIONAL.value))
    except ValueError:
        valid = [r.value for r in SubjectKeyRule]
        raise RegisterConfigError(
            f"{register_type}: invalid subject_key. Valid values: {valid}"
        ) from None

    balance = None
    if definition.get("balance") is not None:
        balance = _parse_balance(register_type, definition["balance"], fields)

    return RegisterSchema(
        register_type=register_type,
        fields=fields,
        subject_key=subject_key,
        balance=balance,
        description=definition.get("description"),
    )


def load_register_schemas(path: Path | None = None) -> SchemaRegistry:
    """Load register schemas from registers.yaml

    Args:
        path: registers.yaml path (None or missing file: built-in definitions)

    Returns:
        SchemaRegistry

    Raises:
        RegisterConfigError: file unreadable or invalid
    """
    if path is None:
        logger.info("Using built-in register definitions")
        return SchemaRegistry.default()

    if not path.exists():
        logger.warning(
            "registers file not found, using built-in register definitions",
            extra={"path": str(path)},
        )
        return SchemaRegistry.default()

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise RegisterConfigError(f"Failed to parse {path.name}: {e}") from e

    if not isinstance(data, dict) or "registers" not in data:
        raise RegisterConfigError(f"{path.name}: top-level 'registers' mapping is required")

    registry = SchemaRegistry.from_definitions(data["registers"])
    logger.info(
        "Register schemas loaded",
        extra={"path": str(path), "register_types": registry.register_types},
    )
    return registry


# =========================================================================
# Built-in definitions (same structure as config/registers.yaml)
# =========================================================================

_CD_RECEIPT_TYPES = ["receipt", "transfer_in", "patient_return"]
_CD_DEDUCT_TYPES = ["supply", "return_to_supplier", "disposal", "transfer_out"]

_CD_FIELDS: dict[str, Any] = {
    "transaction_type": {
        "type": "choice",
        "required": True,
        "choices": _CD_RECEIPT_TYPES + _CD_DEDUCT_TYPES,
    },
    "quantity_received": {
        "type": "decimal",
        "min_value": 0,
        "required_when": {"transaction_type": _CD_RECEIPT_TYPES},
    },
    "quantity_deducted": {
        "type": "decimal",
        "min_value": 0,
        "required_when": {"transaction_type": _CD_DEDUCT_TYPES},
    },
    "supplier_name": {"type": "text"},
    "invoice_number": {"type": "text"},
    "patient_name": {"type": "text", "required_when": {"transaction_type": ["supply"]}},
    "patient_address": {"type": "text"},
    "prescriber_name": {"type": "text", "required_when": {"transaction_type": ["supply"]}},
    "prescriber_address": {"type": "text"},
    "prescription_date": {"type": "date"},
    "witness_name": {"type": "text"},
    "witness_role": {"type": "text"},
    "notes": {"type": "text"},
}

_CD_BALANCE: dict[str, Any] = {
    "direction_field": "transaction_type",
    "inbound": _CD_RECEIPT_TYPES,
    "outbound": _CD_DEDUCT_TYPES,
    "inbound_quantity_field": "quantity_received",
    "outbound_quantity_field": "quantity_deducted",
}

DEFAULT_REGISTER_DEFINITIONS: dict[str, Any] = {
    "CD": {
        "description": "Controlled drug register (one ledger per drug)",
        "subject_key": "required",
        "fields": _CD_FIELDS,
        "balance": _CD_BALANCE,
    },
    "PRIVATE_CD": {
        "description": "Private controlled drug prescriptions (one ledger per drug)",
        "subject_key": "required",
        "fields": _CD_FIELDS,
        "balance": _CD_BALANCE,
    },
    "RP": {
        "description": "Responsible pharmacist sign-in/out log",
        "subject_key": "forbidden",
        "fields": {
            "pharmacist_name": {"type": "text", "required": True},
            "gphc_number": {"type": "text", "required": True, "pattern": r"\d{1,7}"},
            "rp_signed_in_at": {"type": "datetime", "required": True},
            "rp_signed_out_at": {"type": "datetime"},
            "notes": {"type": "text"},
        },
    },
    "RETURNS": {
        "description": "Patient returns and destruction log",
        "subject_key": "forbidden",
        "fields": {
            "return_patient_name": {"type": "text"},
            "return_drug_name": {"type": "text", "required": True},
            "return_drug_form": {"type": "text"},
            "return_drug_strength": {"type": "text"},
            "return_quantity": {"type": "decimal", "required": True, "min_value": 0},
            "return_reason": {"type": "text"},
            "return_received_by": {"type": "text"},
            "disposal_date": {"type": "date"},
            "disposal_witness": {"type": "text"},
            "disposal_method": {"type": "text"},
            "notes": {"type": "text"},
        },
    },
    "POM": {
        "description": "Prescription-only medicine register (private prescriptions)",
        "subject_key": "forbidden",
        "fields": {
            "patient_name": {"type": "text", "required": True},
            "patient_address": {"type": "text"},
            "prescriber_name": {"type": "text", "required": True},
            "prescriber_address": {"type": "text"},
            "prescription_date": {"type": "date", "required": True},
            "drug_name": {"type": "text", "required": True},
            "quantity": {"type": "decimal", "required": True, "min_value": 0},
            "notes": {"type": "text"},
        },
    },
}
