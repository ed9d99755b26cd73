from __future__ import annotations

import pytest

from stratum.core.schemas import MISSING, DecodeError, DocumentSchema, Shape
from helpers.schemas import full_profile


def test_default_document_fills_declared_defaults(profile_schema: DocumentSchema) -> None:
    assert profile_schema.default_document() == {
        "Name": "",
        "Version": 1,
        "Tags": [],
        "Category": "General",
        "Options": {"Enabled": True, "Limit": 10},
        "Fields": [],
    }


def test_default_document_is_valid_for_profile(profile_schema: DocumentSchema) -> None:
    assert profile_schema.validate(profile_schema.default_document()) == []


def test_decode_accepts_a_valid_document(profile_schema: DocumentSchema) -> None:
    profile_schema.shape.decode(full_profile())


def test_decode_reports_first_mismatch_with_location(profile_schema: DocumentSchema) -> None:
    with pytest.raises(DecodeError) as exc_info:
        profile_schema.shape.decode(full_profile(Tags="hvac"))

    err = exc_info.value
    assert err.location == ("Tags",)
    assert err.path == "Tags"
    assert err.expected == "array"
    assert err.found == "string"
    assert err.value == "hvac"


def test_decode_descends_into_array_items_through_refs(profile_schema: DocumentSchema) -> None:
    with pytest.raises(DecodeError) as exc_info:
        profile_schema.shape.decode(full_profile(Fields=[{"Name": "A"}, {"Name": 7}]))

    assert exc_info.value.path == "Fields[1].Name"
    assert exc_info.value.found == "integer"


def test_decode_treats_non_nullable_null_as_absent(profile_schema: DocumentSchema) -> None:
    profile_schema.shape.decode(full_profile(Category=None))


def test_integral_float_is_an_integer() -> None:
    shape = Shape.compile({"type": "object", "properties": {"n": {"type": "integer"}}})
    shape.decode({"n": 3.0})
    with pytest.raises(DecodeError):
        shape.decode({"n": 3.5})


def test_normalize_drops_undeclared_and_fills_defaults(profile_schema: DocumentSchema) -> None:
    doc = {
        "Name": "X",
        "Legacy": "gone",
        "Options": {"Enabled": False, "Old": 1},
        "Fields": [{"Name": "A", "Stale": True}],
    }
    assert profile_schema.normalize(doc) == {
        "Name": "X",
        "Version": 1,
        "Tags": [],
        "Category": "General",
        "Options": {"Enabled": False, "Limit": 10},
        "Fields": [{"Name": "A", "Width": 1}],
    }


def test_normalize_strips_reserved_root_keys(profile_schema: DocumentSchema) -> None:
    doc = full_profile()
    doc["$schema"] = "schema.json"
    doc["$extends"] = "base"
    assert profile_schema.normalize(doc) == full_profile()


def test_normalize_keeps_nullable_null_and_replaces_non_nullable_null(profile_schema: DocumentSchema) -> None:
    out = profile_schema.normalize(full_profile(Notes=None, Category=None))
    assert out["Notes"] is None
    assert out["Category"] == "General"


def test_additional_properties_schema_and_free_form_maps_are_kept() -> None:
    shape = Shape.compile(
        {
            "type": "object",
            "properties": {
                "Labels": {"type": "object", "additionalProperties": {"type": "string"}},
                "Meta": {"type": "object"},
            },
        }
    )
    doc = {"Labels": {"a": "1"}, "Meta": {"anything": [1, 2]}, "Dropped": 1}
    assert shape.normalize(doc) == {"Labels": {"a": "1"}, "Meta": {"anything": [1, 2]}}


def test_recursive_definitions_compile_and_default_without_looping() -> None:
    schema = {
        "type": "object",
        "properties": {"Root": {"$ref": "#/$defs/Node"}},
        "$defs": {
            "Node": {
                "type": "object",
                "properties": {
                    "Name": {"type": "string", "default": "n"},
                    "Child": {"$ref": "#/$defs/Node"},
                },
            }
        },
    }
    shape = Shape.compile(schema)

    assert shape.properties["Root"] is shape.properties["Root"].properties["Child"]
    assert shape.default_value() == {"Root": {"Name": "n"}}


def test_nullable_property_has_no_implicit_default() -> None:
    shape = Shape.compile({"type": ["array", "null"]})
    assert shape.default_value() is MISSING


def test_non_local_refs_are_rejected() -> None:
    with pytest.raises(ValueError, match="local"):
        Shape.compile({"type": "object", "properties": {"a": {"$ref": "other.json#/x"}}})
