from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from stratum.core.config import EngineConfig
from stratum.core.exceptions import ReadNotSupportedError, SettingsReviewRequiredError
from stratum.core.schemas import DocumentSchema
from stratum.core.store import BehaviorMode, OutputManager, SettingsManager, SettingsSubDir, StateManager
from helpers.io_utils import read_json, write_json
from helpers.schemas import full_profile

NOW = datetime(2024, 5, 1, 9, 30, 0)


def test_settings_manager_paths(tmp_path: Path, engine_config: EngineConfig) -> None:
    manager = SettingsManager(tmp_path, config=engine_config)

    assert manager.directory.is_dir()
    assert manager.directory.name == "settings"
    assert manager.root_dir == manager.directory
    assert manager.json_path() == manager.directory / "settings.json"
    assert manager.json_path("Profile") == manager.directory / "Profile.json"
    assert manager.dated_json_path("run", now=NOW).name == "run_2024-05-01_09-30-00.json"
    assert manager.dated_json_path("run.json", now=NOW).name == "run_2024-05-01_09-30-00.json"


def test_settings_document_requires_review_when_missing(
    tmp_path: Path, profile_schema: DocumentSchema, engine_config: EngineConfig
) -> None:
    manager = SettingsManager(tmp_path, config=engine_config)
    doc = manager.document(profile_schema, "Profile")

    assert doc.behavior is BehaviorMode.SETTINGS
    with pytest.raises(SettingsReviewRequiredError):
        doc.read()
    assert doc.read() == profile_schema.default_document()


def test_subdirectory_documents_extend_parent_documents(
    tmp_path: Path, profile_schema: DocumentSchema, engine_config: EngineConfig
) -> None:
    manager = SettingsManager(tmp_path, config=engine_config)
    manager.document(profile_schema, "Base").write(full_profile())
    sub = manager.subdir("profiles")
    write_json(sub.json_path("Child"), {"$extends": "../Base", "Name": "Child"})

    assert isinstance(sub, SettingsSubDir)
    assert sub.root_dir == manager.root_dir
    assert sub.json_path() == manager.directory / "profiles" / "profiles.json"
    assert sub.document(profile_schema, "Child").read()["Name"] == "Child"


def test_subdirectory_cannot_escape(tmp_path: Path, engine_config: EngineConfig) -> None:
    manager = SettingsManager(tmp_path, config=engine_config)
    with pytest.raises(ValueError, match="escape"):
        manager.subdir("../elsewhere")


def test_subdirectory_listing(tmp_path: Path, profile_schema: DocumentSchema, engine_config: EngineConfig) -> None:
    manager = SettingsManager(tmp_path, config=engine_config)
    store = manager.store(profile_schema)
    store.write("profiles/A", full_profile(Name="A"))
    store.write("profiles/deep/B", full_profile(Name="B"))

    assert manager.list_documents() == []
    assert manager.list_documents(recursive=True) == ["profiles/A", "profiles/deep/B"]
    assert manager.subdir("profiles").list_documents() == ["A"]
    assert manager.subdir("profiles", recursive=True).list_documents() == ["A", "deep/B"]


def test_state_manager_returns_defaults(
    tmp_path: Path, profile_schema: DocumentSchema, engine_config: EngineConfig
) -> None:
    manager = StateManager(tmp_path, config=engine_config)
    doc = manager.document(profile_schema)

    assert doc.path == manager.directory / "state.json"
    assert doc.read() == profile_schema.default_document()
    assert manager.store(profile_schema).behavior is BehaviorMode.STATE


def test_output_manager_writes(tmp_path: Path, engine_config: EngineConfig) -> None:
    manager = OutputManager(tmp_path, config=engine_config)

    path = manager.write("report", {"rows": [1, 2]})
    dated = manager.dated_document("report", now=NOW)

    assert path == manager.directory / "report.json"
    assert read_json(path) == {"rows": [1, 2]}
    assert dated.path.name == "report_2024-05-01_09-30-00.json"
    with pytest.raises(ReadNotSupportedError):
        manager.document("report").read()


def test_output_timestamped_subdirectories(tmp_path: Path, engine_config: EngineConfig) -> None:
    manager = OutputManager(tmp_path, config=engine_config)

    run = manager.timestamped_subdir("run", now=NOW)
    bare = manager.timestamped_subdir(now=NOW)

    assert run.directory == manager.directory / "run_2024-05-01_09-30-00"
    assert bare.directory == manager.directory / "2024-05-01_09-30-00"
    assert run.root_dir == manager.root_dir
    run.write("summary", {"ok": True})
    assert (run.directory / "summary.json").exists()


def test_manager_loads_project_config(tmp_path: Path) -> None:
    settings = tmp_path / "settings"
    settings.mkdir()
    (settings / ".stratum.yaml").write_text("composition:\n  extension: .cfg\n", encoding="utf-8")

    manager = SettingsManager(tmp_path)

    assert manager.config.extension == ".cfg"
    assert manager.json_path("Profile").name == "Profile.cfg"
