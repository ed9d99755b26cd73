"""JSON document I/O with atomic writes."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO

from .core import atomic_write, read_text

# Key order is meaningful in configuration documents ($schema first, field
# order as authored), so keys are never sorted by default.
DEFAULT_JSON_CONFIG: Dict[str, Any] = {
    "indent": 2,
    "sort_keys": False,
    "ensure_ascii": False,
    "encoding": "utf-8",
}


def _resolve_cfg(
    indent: Optional[int],
    sort_keys: Optional[bool],
    ensure_ascii: Optional[bool],
) -> Dict[str, Any]:
    cfg = DEFAULT_JSON_CONFIG.copy()
    if indent is not None:
        cfg["indent"] = indent
    if sort_keys is not None:
        cfg["sort_keys"] = sort_keys
    if ensure_ascii is not None:
        cfg["ensure_ascii"] = ensure_ascii
    return cfg


def _json_writer(data: Any, cfg: Dict[str, Any]) -> Callable[[TextIO], None]:
    def _writer(f: TextIO) -> None:
        json.dump(
            data,
            f,
            indent=cfg["indent"],
            sort_keys=cfg["sort_keys"],
            ensure_ascii=cfg["ensure_ascii"],
        )
        f.write("\n")

    return _writer


def read_json(file_path: Path | str) -> Any:
    """Read JSON; raises FileNotFoundError on missing files and
    json.JSONDecodeError on malformed content."""
    return json.loads(read_text(Path(file_path)))


def dump_json_string(
    data: Any,
    *,
    indent: int | None = None,
    sort_keys: bool | None = None,
    ensure_ascii: bool | None = None,
) -> str:
    """Serialize ``data`` exactly as :func:`write_json_atomic` would write it."""
    cfg = _resolve_cfg(indent, sort_keys, ensure_ascii)
    return (
        json.dumps(
            data,
            indent=cfg["indent"],
            sort_keys=cfg["sort_keys"],
            ensure_ascii=cfg["ensure_ascii"],
        )
        + "\n"
    )


def write_json_atomic(
    file_path: Path | str,
    data: Any,
    *,
    indent: int | None = None,
    sort_keys: bool | None = None,
    ensure_ascii: bool | None = None,
) -> None:
    """Atomically write JSON to ``file_path``."""
    cfg = _resolve_cfg(indent, sort_keys, ensure_ascii)
    atomic_write(Path(file_path), _json_writer(data, cfg), encoding=cfg["encoding"])


__all__ = ["DEFAULT_JSON_CONFIG", "read_json", "dump_json_string", "write_json_atomic"]
