"""
core/register/schema.py tests

Register definitions, YAML loading and generic payload validation.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from core.constants import Paths
from core.register.errors import RegisterConfigError, ValidationError
from core.register.schema import (
    DEFAULT_REGISTER_DEFINITIONS,
    SchemaRegistry,
    SubjectKeyRule,
    load_register_schemas,
    parse_register_schema,
)
from core.types import FieldType, RegisterType


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry.default()


class TestDefaultDefinitions:
    """Built-in register definitions"""

    def test_all_builtin_register_types(self, registry: SchemaRegistry) -> None:
        assert set(registry.register_types) == {t.value for t in RegisterType}

    def test_cd_requires_subject_and_has_balance(self, registry: SchemaRegistry) -> None:
        cd = registry.get("CD")

        assert cd.subject_key == SubjectKeyRule.REQUIRED
        assert cd.balance is not None
        assert cd.balance.is_directional
        assert "receipt" in cd.balance.inbound
        assert "supply" in cd.balance.outbound

    def test_rp_forbids_subject_and_has_no_balance(self, registry: SchemaRegistry) -> None:
        rp = registry.get("RP")

        assert rp.subject_key == SubjectKeyRule.FORBIDDEN
        assert rp.balance is None
        assert rp.get_field("rp_signed_in_at").field_type == FieldType.DATETIME

    def test_unknown_register_type(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError, match="unknown register type"):
            registry.get("NOPE")

    def test_repository_yaml_matches_builtin(self) -> None:
        from_yaml = load_register_schemas(Paths.REGISTERS_FILE)
        builtin = SchemaRegistry.default()

        assert from_yaml.register_types == builtin.register_types
        for register_type in builtin.register_types:
            assert from_yaml.get(register_type) == builtin.get(register_type)


class TestCdPayload:
    """CD payload validation"""

    def test_receipt(self, registry: SchemaRegistry) -> None:
        payload = registry.get("CD").validate_payload({
            "transaction_type": "receipt",
            "quantity_received": 100,
            "supplier_name": "  Alliance  ",
            "invoice_number": "INV-1",
        })

        assert payload == {
            "transaction_type": "receipt",
            "quantity_received": "100",
            "supplier_name": "Alliance",
            "invoice_number": "INV-1",
        }

    def test_receipt_requires_quantity_received(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registry.get("CD").validate_payload({"transaction_type": "receipt"})

        assert any("quantity_received" in issue for issue in exc_info.value.issues)

    def test_supply_requires_patient_and_prescriber(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registry.get("CD").validate_payload({
                "transaction_type": "supply",
                "quantity_deducted": "3",
            })

        fields = {issue.split(":")[0] for issue in exc_info.value.issues}
        assert fields == {"patient_name", "prescriber_name"}

    def test_collects_every_issue(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registry.get("CD").validate_payload({
                "transaction_type": "stolen",
                "quantity_received": "abc",
                "colour": "blue",
            })

        fields = {issue.split(":")[0] for issue in exc_info.value.issues}
        assert {"transaction_type", "quantity_received", "colour"} <= fields

    def test_negative_quantity_rejected(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError, match="quantity_received"):
            registry.get("CD").validate_payload({
                "transaction_type": "receipt",
                "quantity_received": "-5",
            })

    def test_blank_values_dropped(self, registry: SchemaRegistry) -> None:
        payload = registry.get("CD").validate_payload({
            "transaction_type": "receipt",
            "quantity_received": "2.5",
            "notes": "   ",
            "witness_name": None,
        })

        assert payload == {"transaction_type": "receipt", "quantity_received": "2.5"}

    def test_prescription_date_normalised(self, registry: SchemaRegistry) -> None:
        payload = registry.get("CD").validate_payload({
            "transaction_type": "supply",
            "quantity_deducted": Decimal("1"),
            "patient_name": "J. Smith",
            "prescriber_name": "Dr. Jones",
            "prescription_date": date(2024, 2, 28),
        })

        assert payload["prescription_date"] == "2024-02-28"
        assert payload["quantity_deducted"] == "1"


class TestRpPayload:
    """RP payload validation"""

    def test_valid(self, registry: SchemaRegistry) -> None:
        payload = registry.get("RP").validate_payload({
            "pharmacist_name": "A. Patel",
            "gphc_number": "2045123",
            "rp_signed_in_at": "2024-03-01T08:55:00Z",
        })

        assert payload["rp_signed_in_at"] == "2024-03-01T08:55:00+00:00"

    def test_gphc_number_pattern(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError, match="gphc_number"):
            registry.get("RP").validate_payload({
                "pharmacist_name": "A. Patel",
                "gphc_number": "GPH-12",
                "rp_signed_in_at": datetime(2024, 3, 1, 9, tzinfo=timezone.utc),
            })

    def test_missing_required(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError) as exc_info:
            registry.get("RP").validate_payload({})

        assert len(exc_info.value.issues) == 3

    def test_not_a_mapping(self, registry: SchemaRegistry) -> None:
        with pytest.raises(ValidationError):
            registry.get("RP").validate_payload(["pharmacist_name"])  # type: ignore


class TestFieldTypes:
    """Normalisation of each field type"""

    @pytest.fixture
    def schema(self):
        return parse_register_schema("TYPES", {
            "fields": {
                "count": {"type": "integer"},
                "at": {"type": "time"},
                "flag": {"type": "boolean"},
                "level": {"type": "choice", "choices": ["low", "high"]},
            },
        })

    def test_integer(self, schema) -> None:
        assert schema.validate_payload({"count": "7"}) == {"count": 7}

    def test_integer_rejects_float(self, schema) -> None:
        with pytest.raises(ValidationError, match="count"):
            schema.validate_payload({"count": 1.5})

    def test_time(self, schema) -> None:
        assert schema.validate_payload({"at": time(9, 5)}) == {"at": "09:05"}
        assert schema.validate_payload({"at": "17:30"}) == {"at": "17:30"}

    def test_boolean(self, schema) -> None:
        assert schema.validate_payload({"flag": False}) == {"flag": False}
        with pytest.raises(ValidationError, match="flag"):
            schema.validate_payload({"flag": "yes"})

    def test_choice(self, schema) -> None:
        with pytest.raises(ValidationError, match="level"):
            schema.validate_payload({"level": "medium"})


class TestParseRegisterSchema:
    """Definition parsing errors"""

    def test_fields_required(self) -> None:
        with pytest.raises(RegisterConfigError, match="fields"):
            parse_register_schema("X", {"subject_key": "optional"})

    def test_invalid_type(self) -> None:
        with pytest.raises(RegisterConfigError, match="invalid type"):
            parse_register_schema("X", {"fields": {"a": {"type": "money"}}})

    def test_choice_without_choices(self) -> None:
        with pytest.raises(RegisterConfigError, match="choices"):
            parse_register_schema("X", {"fields": {"a": {"type": "choice"}}})

    def test_required_when_unknown_field(self) -> None:
        with pytest.raises(RegisterConfigError, match="required_when"):
            parse_register_schema("X", {
                "fields": {"a": {"type": "text", "required_when": {"b": ["x"]}}},
            })

    def test_balance_unknown_field(self) -> None:
        with pytest.raises(RegisterConfigError, match="unknown field"):
            parse_register_schema("X", {
                "fields": {"qty": {"type": "decimal"}},
                "balance": {"quantity_field": "amount"},
            })

    def test_signed_balance_rule(self) -> None:
        schema = parse_register_schema("STOCK", {
            "fields": {"qty": {"type": "decimal"}},
            "balance": {"quantity_field": "qty"},
        })

        assert schema.balance is not None
        assert schema.balance.is_directional is False

    def test_invalid_subject_key_rule(self) -> None:
        with pytest.raises(RegisterConfigError, match="subject_key"):
            parse_register_schema("X", {"fields": {"a": {}}, "subject_key": "maybe"})

    def test_duplicate_register_type(self) -> None:
        schema = parse_register_schema("X", {"fields": {"a": {}}})

        with pytest.raises(RegisterConfigError, match="Duplicate"):
            SchemaRegistry([schema, schema])


class TestLoadRegisterSchemas:
    """load_register_schemas"""

    def test_none_uses_builtin(self) -> None:
        registry = load_register_schemas(None)

        assert registry.register_types == sorted(DEFAULT_REGISTER_DEFINITIONS)

    def test_missing_file_uses_builtin(self, temp_dir: Path) -> None:
        registry = load_register_schemas(temp_dir / "missing.yaml")

        assert "CD" in registry

    def test_custom_file(self, temp_dir: Path) -> None:
        path = temp_dir / "registers.yaml"
        path.write_text(
            "registers:\n"
            "  OXYGEN:\n"
            "    subject_key: required\n"
            "    fields:\n"
            "      cylinders: {type: integer, required: true}\n"
            "    balance:\n"
            "      quantity_field: cylinders\n",
            encoding="utf-8",
        )

        registry = load_register_schemas(path)

        assert registry.register_types == ["OXYGEN"]
        assert registry.get("OXYGEN").balance.quantity_field == "cylinders"

    def test_top_level_registers_required(self, temp_dir: Path) -> None:
        path = temp_dir / "registers.yaml"
        path.write_text("CD: {}\n", encoding="utf-8")

        with pytest.raises(RegisterConfigError, match="registers"):
            load_register_schemas(path)

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "registers.yaml"
        path.write_text("registers: [broken\n", encoding="utf-8")

        with pytest.raises(RegisterConfigError, match="parse"):
            load_register_schemas(path)
