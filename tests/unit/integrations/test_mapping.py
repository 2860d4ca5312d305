"""
Field Mapping Unit Tests
"""

import pytest

from integrations.base import EntityType, FieldMapping, FieldTransformation
from integrations.exceptions import FieldMappingError
from integrations.mapping import (
    _MISSING,
    apply_field_mappings,
    apply_transformation,
    get_nested_value,
    mappings_for,
    register_transform,
)

RECORD = {
    "id": "emp-1",
    "email": "",
    "department": "eng",
    "hire_date": "2024-02-03T10:00:00Z",
    "custom_fields": {"originalData": {"workEmail": "Ada@Example.com", "costCenter": "CC-9"}},
}


class TestGetNestedValue:

    def test_dotted_path(self):
        assert get_nested_value(RECORD, "custom_fields.originalData.costCenter") == "CC-9"

    def test_missing_hop_returns_sentinel(self):
        assert get_nested_value(RECORD, "custom_fields.nope.deeper") is _MISSING


class TestApplyTransformation:

    def test_direct_and_none(self):
        assert apply_transformation("x", None) == "x"
        assert apply_transformation("x", FieldTransformation(type="direct")) == "x"

    def test_lookup_falls_back_to_value(self):
        t = FieldTransformation(type="lookup", lookup_table={"eng": "Engineering"})
        assert apply_transformation("eng", t) == "Engineering"
        assert apply_transformation("ops", t) == "ops"

    def test_format_date(self):
        t = FieldTransformation(type="format", format="YYYY-MM-DD")
        assert apply_transformation("2024-02-03T10:00:00Z", t) == "2024-02-03"

    def test_format_template(self):
        t = FieldTransformation(type="format", format="EMP-{}")
        assert apply_transformation(42, t) == "EMP-42"

    def test_custom_registered_transform(self):
        register_transform("reverse", lambda v: v[::-1])
        t = FieldTransformation(type="custom", custom_function="reverse")
        assert apply_transformation("abc", t) == "cba"

    def test_unknown_custom_transform_passes_through(self):
        t = FieldTransformation(type="custom", custom_function="does_not_exist")
        assert apply_transformation("abc", t) == "abc"


class TestApplyFieldMappings:

    def test_maps_nested_source_and_keeps_unmapped_fields(self):
        mappings = [
            FieldMapping(
                source_field="custom_fields.originalData.workEmail",
                target_field="email",
                transformation=FieldTransformation(type="custom", custom_function="lower"),
            ),
            FieldMapping(
                source_field="department",
                target_field="department",
                transformation=FieldTransformation(type="lookup", lookup_table={"eng": "Engineering"}),
            ),
        ]

        result = apply_field_mappings(RECORD, mappings)

        assert result["email"] == "ada@example.com"
        assert result["department"] == "Engineering"
        assert result["hire_date"] == RECORD["hire_date"]
        assert RECORD["email"] == ""

    def test_optional_missing_field_is_skipped(self):
        mappings = [FieldMapping(source_field="custom_fields.originalData.nickname", target_field="first_name")]
        assert apply_field_mappings(RECORD, mappings) == RECORD

    def test_required_missing_field_raises(self):
        mappings = [
            FieldMapping(source_field="custom_fields.originalData.ssn", target_field="ssn", is_required=True)
        ]
        with pytest.raises(FieldMappingError) as exc_info:
            apply_field_mappings(RECORD, mappings)
        assert exc_info.value.field == "custom_fields.originalData.ssn"

    def test_camel_case_rules_parse(self):
        mapping = FieldMapping.model_validate(
            {"sourceField": "department", "targetField": "department", "isRequired": True, "entity": "departments"}
        )
        assert mapping.is_required is True
        assert mapping.entity == EntityType.DEPARTMENTS

    def test_mappings_for_filters_by_entity(self):
        employee_rule = FieldMapping(source_field="a", target_field="b")
        job_rule = FieldMapping(source_field="c", target_field="d", entity=EntityType.JOB_POSITIONS)
        assert mappings_for([employee_rule, job_rule], EntityType.EMPLOYEES) == [employee_rule]
