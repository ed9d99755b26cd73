"""Typed accessor over the merged engine configuration."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .manager import ConfigManager

FRAGMENT_BASES = ("document", "root")


class EngineConfig:
    """Read-only view of the ``composition``, ``schemas``, ``json`` and
    ``discovery`` sections.

    Usage:
        cfg = EngineConfig.load(root_dir)
        cfg.extension        # ".json"
        cfg.fragment_base    # "document"
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        if data is None:
            data = ConfigManager().load_config()
        self._data: Dict[str, Any] = dict(data)

    @classmethod
    def load(cls, root_dir: Optional[Path] = None, *, config_path: Optional[Path] = None) -> "EngineConfig":
        return cls(ConfigManager(root_dir, config_path=config_path).load_config())

    def section(self, name: str) -> Dict[str, Any]:
        return self._data.get(name, {}) or {}

    # ----- composition -----

    @cached_property
    def extension(self) -> str:
        return str(self.section("composition").get("extension", ".json"))

    @cached_property
    def extends_key(self) -> str:
        return str(self.section("composition").get("extends_key", "$extends"))

    @cached_property
    def include_key(self) -> str:
        return str(self.section("composition").get("include_key", "$include"))

    @cached_property
    def schema_key(self) -> str:
        return str(self.section("composition").get("schema_key", "$schema"))

    @cached_property
    def fragment_items_key(self) -> str:
        return str(self.section("composition").get("fragment_items_key", "Items"))

    @cached_property
    def fragment_base(self) -> str:
        value = str(self.section("composition").get("fragment_base", "document")).strip().lower()
        if value not in FRAGMENT_BASES:
            raise ValueError(
                f"composition.fragment_base must be one of {', '.join(FRAGMENT_BASES)}; got '{value}'"
            )
        return value

    # ----- schemas -----

    @cached_property
    def full_schema_file(self) -> str:
        return str(self.section("schemas").get("full_file", "schema.json"))

    @cached_property
    def extends_schema_file(self) -> str:
        return str(self.section("schemas").get("extends_file", "schema-extends.json"))

    @cached_property
    def fragment_schema_file(self) -> str:
        return str(self.section("schemas").get("fragment_file", "schema-fragment.json"))

    @cached_property
    def inject_on_read(self) -> bool:
        return bool(self.section("schemas").get("inject_on_read", True))

    @cached_property
    def schema_files(self) -> List[str]:
        return [self.full_schema_file, self.extends_schema_file, self.fragment_schema_file]

    # ----- json -----

    @cached_property
    def json_options(self) -> Dict[str, Any]:
        sec = self.section("json")
        return {
            "indent": int(sec.get("indent", 2)),
            "ensure_ascii": bool(sec.get("ensure_ascii", False)),
            "sort_keys": bool(sec.get("sort_keys", False)),
        }

    # ----- discovery -----

    @cached_property
    def exclude_patterns(self) -> List[str]:
        patterns = self.section("discovery").get("exclude_patterns", ["_*"]) or []
        return [str(p) for p in patterns]


__all__ = ["EngineConfig", "FRAGMENT_BASES"]
