from __future__ import annotations

import pytest

from stratum.core.exceptions import InvalidSchemaError
from stratum.core.schemas import DocumentSchema, Violation, check_schema, format_path, format_violations, validate
from stratum.core.schemas.validation import (
    INVALID_VALUE,
    MISSING_REQUIRED_PROPERTY,
    TYPE_MISMATCH,
    UNEXPECTED_PROPERTY,
)
from helpers.schemas import full_profile


def test_valid_document_has_no_violations(profile_schema: DocumentSchema) -> None:
    assert profile_schema.validate(full_profile()) == []


def test_one_violation_per_missing_required_property(profile_schema: DocumentSchema) -> None:
    violations = profile_schema.validate({"Category": "General"})

    missing = [v for v in violations if v.kind == MISSING_REQUIRED_PROPERTY]
    assert [(v.path, v.property) for v in missing] == [("Fields", "Fields"), ("Name", "Name")]


def test_unexpected_property_is_reported_at_its_path(profile_schema: DocumentSchema) -> None:
    violations = profile_schema.validate(full_profile(Legacy=True))

    assert violations == [
        Violation(UNEXPECTED_PROPERTY, "Legacy", "Property 'Legacy' is not declared by the schema", "Legacy")
    ]


def test_nested_paths_render_with_indices(profile_schema: DocumentSchema) -> None:
    doc = full_profile(Fields=[{"Name": "Mark"}, {"Name": 5}, {"Width": 2}])
    violations = profile_schema.validate(doc)

    assert [(v.path, v.kind) for v in violations] == [
        ("Fields[1].Name", TYPE_MISMATCH),
        ("Fields[2].Name", MISSING_REQUIRED_PROPERTY),
    ]


def test_reserved_root_keys_are_accepted_by_full_variant(profile_schema: DocumentSchema) -> None:
    doc = full_profile()
    doc["$schema"] = "./schema.json"
    assert profile_schema.validate(doc) == []


def test_nullable_one_of_reports_the_non_null_branch() -> None:
    schema = {
        "type": "object",
        "properties": {
            "Owner": {
                "oneOf": [
                    {"type": "null"},
                    {"type": "object", "properties": {"Id": {"type": "integer"}}, "required": ["Id"]},
                ]
            }
        },
    }
    assert validate({"Owner": None}, schema) == []

    violations = validate({"Owner": {}}, schema)
    assert [(v.kind, v.path) for v in violations] == [(MISSING_REQUIRED_PROPERTY, "Owner.Id")]


def test_enum_and_const_map_to_invalid_value() -> None:
    schema = {"type": "object", "properties": {"Mode": {"enum": ["a", "b"]}, "Kind": {"const": "x"}}}
    violations = validate({"Mode": "c", "Kind": "y"}, schema)

    assert [(v.path, v.kind) for v in violations] == [("Kind", INVALID_VALUE), ("Mode", INVALID_VALUE)]


def test_root_type_mismatch_uses_root_path() -> None:
    violations = validate([], {"type": "object"})
    assert [(v.path, v.kind) for v in violations] == [("(root)", TYPE_MISMATCH)]


def test_results_are_sorted_and_repeatable(profile_schema: DocumentSchema) -> None:
    doc = {"Zeta": 1, "Alpha": 2, "Fields": "nope"}
    first = profile_schema.validate(doc)
    second = profile_schema.validate(doc)

    assert first == second
    assert [v.path for v in first] == sorted(v.path for v in first)


def test_format_helpers() -> None:
    assert format_path([]) == "(root)"
    assert format_path(["Fields", 0, "Name"]) == "Fields[0].Name"
    assert format_path([2]) == "[2]"
    v = Violation(TYPE_MISMATCH, "Fields[0].Name", "5 is not of type 'string'", "Name")
    assert format_violations([v]) == ["Fields[0].Name: 5 is not of type 'string'"]


def test_check_schema_rejects_non_objects_and_bad_keywords() -> None:
    with pytest.raises(InvalidSchemaError):
        check_schema(["not", "a", "schema"])
    with pytest.raises(InvalidSchemaError):
        check_schema({"type": "no-such-type"})
