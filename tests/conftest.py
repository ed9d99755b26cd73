from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

# Keep the repository free of Python bytecode and __pycache__ artifacts during tests.
sys.dont_write_bytecode = True

TESTS_ROOT = Path(__file__).resolve().parent
REPO_ROOT = TESTS_ROOT.parent
SRC_ROOT = REPO_ROOT / "src"

# Make src/ importable as 'stratum' and tests/ importable for 'helpers'
for p in (SRC_ROOT, TESTS_ROOT):
    if str(p) not in sys.path:
        sys.path.insert(0, str(p))


from stratum.core.config import ConfigManager, EngineConfig
from stratum.core.schemas import DocumentSchema
from helpers.io_utils import write_json
from helpers.schemas import PROFILE_SCHEMA


@pytest.fixture(autouse=True)
def _isolate_stratum_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop STRATUM_* overrides leaking in from the developer environment."""
    for key in list(os.environ):
        if key.startswith("STRATUM_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(ConfigManager(environ={}).load_config())


@pytest.fixture
def root_dir(tmp_path: Path) -> Path:
    """Composition root for a test (canonical, so path comparisons are exact)."""
    root = tmp_path / "settings"
    root.mkdir()
    return Path(os.path.realpath(root))


@pytest.fixture
def profile_schema(engine_config: EngineConfig) -> DocumentSchema:
    return DocumentSchema.from_dict(
        PROFILE_SCHEMA,
        fragment_property="Fields",
        name="profile",
        config=engine_config,
    )


@pytest.fixture
def write_doc(root_dir: Path) -> Callable[[str, Dict[str, Any]], Path]:
    """Write a JSON document relative to ``root_dir`` (``.json`` appended when missing)."""

    def _write(rel: str, data: Any) -> Path:
        name = rel if rel.endswith(".json") else f"{rel}.json"
        path = root_dir / name
        write_json(path, data)
        return path

    return _write
