from __future__ import annotations

from pathlib import Path

import pytest

from stratum.core.exceptions import (
    DocumentLoadError,
    DocumentValidationError,
    InvalidDocumentIdError,
    PathEscapesRootError,
)
from stratum.core.schemas import DocumentSchema
from stratum.core.store import BehaviorMode, DocumentStore, Outcome
from helpers.io_utils import read_json, write_json, write_raw
from helpers.schemas import field, full_profile


@pytest.fixture
def store(root_dir: Path, profile_schema: DocumentSchema) -> DocumentStore:
    return DocumentStore(root_dir, profile_schema, BehaviorMode.SETTINGS)


def test_ids_resolve_inside_the_root(store: DocumentStore, root_dir: Path) -> None:
    assert store.path_for("profiles/MechEquip") == root_dir / "profiles" / "MechEquip.json"
    assert store.path_for("Base.json") == root_dir / "Base.json"

    with pytest.raises(PathEscapesRootError):
        store.path_for("../Outside")
    with pytest.raises(InvalidDocumentIdError):
        store.path_for("  ")


def test_store_creates_its_root(tmp_path: Path, profile_schema: DocumentSchema) -> None:
    store = DocumentStore(tmp_path / "new" / "root", profile_schema, "state")

    assert store.root_dir.is_dir()
    assert store.behavior is BehaviorMode.STATE


def test_read_and_write_by_id(store: DocumentStore, root_dir: Path) -> None:
    path = store.write("profiles/A", full_profile(Name="A"))

    assert path == root_dir / "profiles" / "A.json"
    assert store.read("profiles/A") == full_profile(Name="A")
    assert store.is_cache_valid("profiles/A", 5) is True


def test_result_variants_capture_errors(store: DocumentStore, root_dir: Path) -> None:
    store.write("Good", full_profile())
    write_raw(root_dir / "Broken.json", "{")

    good = store.read_result("Good")
    broken = store.read_result("Broken")
    rejected = store.write_result("Bad", full_profile(Fields="x"))

    assert good == Outcome(full_profile(), None) and good.ok
    assert broken.value is None and not broken.ok
    assert isinstance(broken.error, DocumentLoadError)
    assert isinstance(rejected.error, DocumentValidationError)


def test_result_variants_capture_invalid_ids(store: DocumentStore) -> None:
    empty = store.read_result("")
    blank = store.write_result("  ", full_profile())
    missing = store.read_result(None)  # type: ignore[arg-type]

    for outcome in (empty, blank, missing):
        assert outcome.value is None and not outcome.ok
        assert isinstance(outcome.error, InvalidDocumentIdError)
    assert missing.error.document_id is None
    assert empty.error.to_json_error()["code"] == "InvalidDocumentIdError"


def test_list_documents_skips_schema_files_and_fragments(store: DocumentStore, root_dir: Path) -> None:
    store.write("Base", full_profile())
    store.write("Child", full_profile(Name="Child"))
    store.write("profiles/Nested", full_profile(Name="Nested"))
    write_json(root_dir / "_fragments" / "header.json", {"Items": [field("H")]})
    write_json(root_dir / "profiles" / "_fragments" / "x.json", {"Items": []})
    (root_dir / "notes.txt").write_text("ignored", encoding="utf-8")

    assert (root_dir / "schema.json").exists()
    assert store.list_documents() == ["Base", "Child"]
    assert store.list_documents(recursive=True) == ["Base", "Child", "profiles/Nested"]


def test_create_child_writes_only_overrides(store: DocumentStore, root_dir: Path) -> None:
    store.write("Base", full_profile(Notes="base notes"))
    edited = full_profile(Name="Child", Options={"Enabled": True, "Limit": 3})

    path = store.create_child("profiles/Child", "Base", edited)

    assert path == root_dir / "profiles" / "Child.json"
    assert read_json(path) == {
        "$schema": "../schema-extends.json",
        "$extends": "../Base",
        "Name": "Child",
        "Options": {"Limit": 3},
        "Notes": None,
    }
    value = store.read("profiles/Child")
    assert value["Name"] == "Child"
    assert value["Options"] == {"Enabled": True, "Limit": 3}
    assert value["Fields"] == full_profile()["Fields"]


def test_create_child_rejects_invalid_edit(store: DocumentStore, root_dir: Path) -> None:
    store.write("Base", full_profile())

    with pytest.raises(DocumentValidationError):
        store.create_child("Child", "Base", full_profile(Fields=[{"Width": 1}]))
    assert not (root_dir / "Child.json").exists()


def test_output_store_cannot_create_children(root_dir: Path) -> None:
    store = DocumentStore(root_dir, None, BehaviorMode.OUTPUT)
    with pytest.raises(ValueError):
        store.create_child("Child", "Base", {})
