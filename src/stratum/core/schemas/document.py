"""Document schemas: full, extends and fragment variants of one contract.

The engine is handed a JSON Schema describing the target shape. From it:

- **full**: the contract plus the reserved root keys (``$schema``,
  ``$extends``) so that stored files validate with their directives in place
- **extends**: the full variant with root ``required`` cleared and only
  ``$extends`` required; a child document may omit anything its base supplies
- **fragment**: ``{"$schema"?: string, "Items": [...]}`` where the item
  schema is that of the array property fragments are spliced into

Editor variants (written next to the documents for external tooling) also
accept ``{"$include": "..."}`` elements in that array.
"""
from __future__ import annotations

import copy
import logging
from functools import cached_property
from pathlib import Path
from typing import Any, Dict, List, Optional

from stratum.core.config import EngineConfig
from stratum.core.exceptions import InvalidSchemaError
from stratum.core.utils.io import read_json, read_yaml

from .shape import Shape
from .validation import Violation, build_validator, check_schema, validate

logger = logging.getLogger(__name__)

_DEFINITION_KEYS = ("$defs", "definitions")


class DocumentSchema:
    """A schema contract and its derived variants.

    Usage:
        schema = DocumentSchema.from_dict(raw, fragment_property="Fields")
        violations = schema.validate(tree)
        schema.default_document()
    """

    def __init__(
        self,
        full: Dict[str, Any],
        *,
        extends: Optional[Dict[str, Any]] = None,
        fragment_property: Optional[str] = None,
        name: Optional[str] = None,
        config: Optional[EngineConfig] = None,
    ) -> None:
        check_schema(full, source=name)
        if extends is not None:
            check_schema(extends, source=name)
        self.config = config or EngineConfig()
        self.name = name or str(full.get("title") or "document")
        self.original: Dict[str, Any] = copy.deepcopy(full)
        self.fragment_property = fragment_property
        self._explicit_extends = copy.deepcopy(extends) if extends is not None else None

        if fragment_property is not None:
            prop = (self.original.get("properties") or {}).get(fragment_property)
            if not isinstance(prop, dict):
                raise InvalidSchemaError(
                    f"Fragment property '{fragment_property}' is not declared by schema '{self.name}'",
                    source=name,
                )

    @classmethod
    def from_dict(
        cls,
        schema: Dict[str, Any],
        *,
        extends: Optional[Dict[str, Any]] = None,
        fragment_property: Optional[str] = None,
        name: Optional[str] = None,
        config: Optional[EngineConfig] = None,
    ) -> "DocumentSchema":
        return cls(schema, extends=extends, fragment_property=fragment_property, name=name, config=config)

    @classmethod
    def load(
        cls,
        path: Path,
        *,
        fragment_property: Optional[str] = None,
        config: Optional[EngineConfig] = None,
    ) -> "DocumentSchema":
        """Load a schema file (JSON, or JSON Schema expressed in YAML)."""
        path = Path(path)
        if path.suffix.lower() in (".yaml", ".yml"):
            data = read_yaml(path, default=None, raise_on_error=True)
        else:
            data = read_json(path)
        if not isinstance(data, dict):
            raise InvalidSchemaError(
                f"Schema must be a mapping, got {type(data).__name__}", source=str(path)
            )
        return cls(data, fragment_property=fragment_property, name=path.stem, config=config)

    # ----- reserved keys -----

    @property
    def reserved_keys(self) -> tuple:
        return (self.config.schema_key, self.config.extends_key)

    def strip_reserved(self, tree: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in tree.items() if k not in self.reserved_keys}

    # ----- variants -----

    @cached_property
    def full(self) -> Dict[str, Any]:
        schema = copy.deepcopy(self.original)
        props = schema.setdefault("properties", {})
        props.setdefault(self.config.schema_key, {"type": "string"})
        props.setdefault(self.config.extends_key, {"type": "string", "minLength": 1})
        return schema

    @cached_property
    def extends(self) -> Dict[str, Any]:
        if self._explicit_extends is not None:
            return self._explicit_extends
        schema = copy.deepcopy(self.full)
        schema["required"] = [self.config.extends_key]
        return schema

    @cached_property
    def fragment(self) -> Optional[Dict[str, Any]]:
        if self.fragment_property is None:
            return None
        items_schema = copy.deepcopy(self.original["properties"][self.fragment_property])
        schema: Dict[str, Any] = {
            "type": "object",
            "properties": {
                self.config.schema_key: {"type": "string"},
                self.config.fragment_items_key: items_schema,
            },
            "required": [self.config.fragment_items_key],
            "additionalProperties": False,
        }
        if "$schema" in self.original:
            # JSON Schema dialect URI of the contract, not the document key.
            schema["$schema"] = self.original["$schema"]
        for key in _DEFINITION_KEYS:
            if key in self.original:
                schema[key] = copy.deepcopy(self.original[key])
        return schema

    def _include_item(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {self.config.include_key: {"type": "string", "minLength": 1}},
            "required": [self.config.include_key],
            "additionalProperties": False,
        }

    def _allow_includes(self, schema: Dict[str, Any], prop_name: str) -> Dict[str, Any]:
        schema = copy.deepcopy(schema)
        prop = (schema.get("properties") or {}).get(prop_name)
        if isinstance(prop, dict):
            items = prop.get("items", {})
            prop["items"] = {"anyOf": [items, self._include_item()]}
        return schema

    @cached_property
    def editor_full(self) -> Dict[str, Any]:
        if self.fragment_property is None:
            return self.full
        return self._allow_includes(self.full, self.fragment_property)

    @cached_property
    def editor_extends(self) -> Dict[str, Any]:
        if self.fragment_property is None:
            return self.extends
        return self._allow_includes(self.extends, self.fragment_property)

    @cached_property
    def editor_fragment(self) -> Optional[Dict[str, Any]]:
        if self.fragment is None:
            return None
        return self._allow_includes(self.fragment, self.config.fragment_items_key)

    # ----- shape & validation -----

    @cached_property
    def shape(self) -> Shape:
        return Shape.compile(self.original)

    @cached_property
    def _full_validator(self) -> Any:
        return build_validator(self.full)

    @cached_property
    def _extends_validator(self) -> Any:
        return build_validator(self.extends)

    @cached_property
    def _fragment_validator(self) -> Any:
        return build_validator(self.fragment) if self.fragment is not None else None

    def validate(self, tree: Any) -> List[Violation]:
        """Validate a fully resolved document against the full variant."""
        return validate(tree, self._full_validator)

    def validate_extends(self, tree: Any) -> List[Violation]:
        """Validate an unresolved child document against the extends variant."""
        return validate(tree, self._extends_validator)

    def validate_fragment(self, tree: Any) -> List[Violation]:
        if self._fragment_validator is None:
            return []
        return validate(tree, self._fragment_validator)

    def normalize(self, tree: Dict[str, Any]) -> Dict[str, Any]:
        """Re-serialize ``tree`` through the shape; reserved keys are not carried."""
        return self.shape.normalize(self.strip_reserved(tree))

    def default_document(self) -> Dict[str, Any]:
        value = self.shape.default_value()
        if not isinstance(value, dict):
            logger.debug("Schema '%s' yields no object default; using {}", self.name)
            return {}
        return value


__all__ = ["DocumentSchema"]
