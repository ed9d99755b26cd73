"""
Stratum engine configuration management (YAML + environment overrides).
"""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from stratum.core.utils.io import read_yaml
from stratum.core.utils.merge import deep_merge
from stratum.data import get_data_path

logger = logging.getLogger(__name__)

PROJECT_CONFIG_FILENAME = ".stratum.yaml"
ENV_PREFIX = "STRATUM_"


class ConfigManager:
    """Load and merge Stratum configuration.

    Configuration sources (highest to lowest priority):
    1. Environment variables: STRATUM_<section>__<key>
    2. Project config: ``config_path`` or ``<root_dir>/.stratum.yaml``
    3. Bundled defaults: stratum.data/config/defaults.yaml
    """

    def __init__(
        self,
        root_dir: Optional[Path] = None,
        *,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.root_dir = Path(root_dir) if root_dir is not None else None
        self.defaults_path = get_data_path("config", "defaults.yaml")
        if config_path is not None:
            self.project_config_path: Optional[Path] = Path(config_path)
        elif self.root_dir is not None:
            self.project_config_path = self.root_dir / PROJECT_CONFIG_FILENAME
        else:
            self.project_config_path = None
        self._environ = environ

    def load_yaml(self, path: Path) -> Dict[str, Any]:
        # Fail closed: configuration must never silently ignore invalid YAML.
        data = read_yaml(path, default={}, raise_on_error=True)
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {path}")
        return data

    def load_config(self) -> Dict[str, Any]:
        """Return the merged configuration dictionary."""
        cfg = self.load_yaml(self.defaults_path)

        if self.project_config_path is not None and self.project_config_path.exists():
            logger.debug("Applying project configuration from %s", self.project_config_path)
            cfg = deep_merge(cfg, self.load_yaml(self.project_config_path))

        self.apply_env_overrides(cfg)
        return cfg

    # ========== Environment overrides ==========

    def _as_bool(self, v: str) -> Optional[bool]:
        low = v.strip().lower()
        if low in {"true", "false"}:
            return low == "true"
        return None

    def _as_int(self, v: str) -> Optional[int]:
        if re.fullmatch(r"[-+]?\d+", v.strip() or " "):
            return int(v)
        return None

    def _as_float(self, v: str) -> Optional[float]:
        s = v.strip()
        if re.fullmatch(r"[-+]?\d*\.\d+", s) or re.fullmatch(r"[-+]?\d+\.\d*", s):
            return float(s)
        return None

    def _as_json(self, v: str) -> Optional[Any]:
        s = v.strip()
        if (s.startswith("{") and s.endswith("}")) or (s.startswith("[") and s.endswith("]")):
            try:
                return json.loads(s)
            except json.JSONDecodeError:
                return None
        return None

    def _coerce_type(self, value: str) -> Any:
        for caster in (self._as_bool, self._as_int, self._as_float, self._as_json):
            result = caster(value)
            if result is not None:
                return result
        return value.strip()

    def _parse_env_key(self, raw: str) -> List[str]:
        segs = raw.split("__") if "__" in raw else raw.split("_")
        if any(seg == "" for seg in segs):
            raise ValueError(f"Malformed {ENV_PREFIX}* key: empty segment in '{raw}'.")
        return [seg.lower() for seg in segs]

    def _iter_env_overrides(self) -> Iterator[Tuple[List[str], Any]]:
        environ = self._environ if self._environ is not None else os.environ
        for key in sorted(environ.keys()):
            if not key.startswith(ENV_PREFIX):
                continue
            raw = key[len(ENV_PREFIX):]
            if not raw:
                continue
            yield self._parse_env_key(raw), self._coerce_type(environ[key])

    def _set_nested(self, root: Dict[str, Any], path: List[str], value: Any) -> None:
        cur: Dict[str, Any] = root
        for part in path[:-1]:
            candidates = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
            key = candidates.get(part, part)
            nxt = cur.get(key)
            if not isinstance(nxt, dict):
                nxt = {}
                cur[key] = nxt
            cur = nxt
        candidates = {k.lower(): k for k in cur.keys() if isinstance(k, str)}
        cur[candidates.get(path[-1], path[-1])] = value

    def apply_env_overrides(self, cfg: Dict[str, Any]) -> None:
        for path, typed_value in self._iter_env_overrides():
            self._set_nested(cfg, path, typed_value)


__all__ = ["ConfigManager", "PROJECT_CONFIG_FILENAME", "ENV_PREFIX"]
