"""Shape descriptors compiled from a JSON Schema.

A :class:`Shape` is the capability table the engine consults instead of a
typed object model: declared properties, accepted JSON types, defaults,
nested object shapes, array item shapes and whether undeclared keys are
kept. It drives three operations:

- ``decode``: strict type check that stops at the first mismatch
- ``normalize``: re-serialization through the shape (fill defaults, drop
  undeclared properties)
- ``default_value``: the document a missing file is replaced with

Local ``$ref`` pointers (``#/$defs/...``, ``#/definitions/...``) are resolved
while compiling; recursive definitions share one Shape instance.
"""
from __future__ import annotations

import copy
import re
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from .validation import PathSegment, format_path


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

JSON_TYPES = ("object", "array", "string", "integer", "number", "boolean", "null")


def json_type(value: Any) -> str:
    """JSON type name of a parsed value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


class DecodeError(ValueError):
    """First type mismatch found while decoding a tree through a Shape."""

    def __init__(self, location: Tuple[PathSegment, ...], expected: str, found: str, value: Any) -> None:
        self.location = tuple(location)
        self.path = format_path(self.location)
        self.expected = expected
        self.found = found
        self.value = value
        super().__init__(f"{self.path}: expected {expected}, found {found}")


class Shape:
    """Capability table for one schema node."""

    def __init__(self) -> None:
        self.types: FrozenSet[str] = frozenset()
        self.nullable: bool = False
        self.default: Any = MISSING
        self.properties: Dict[str, "Shape"] = {}
        self.pattern_properties: List[Tuple[str, "Shape"]] = []
        # True: keep undeclared keys as is; Shape: keep and normalize; False: drop
        self.additional: Any = False
        self.items: Optional["Shape"] = None

    @classmethod
    def compile(cls, schema: Dict[str, Any]) -> "Shape":
        return _Compiler(schema).compile(schema)

    # ----- type predicates -----

    @property
    def is_any(self) -> bool:
        return not self.types

    @property
    def is_object(self) -> bool:
        return "object" in self.types

    @property
    def is_array(self) -> bool:
        return "array" in self.types

    def accepts_null(self) -> bool:
        return self.nullable or self.is_any or "null" in self.types

    def accepts(self, value: Any) -> bool:
        if self.is_any:
            return True
        kind = json_type(value)
        if kind in self.types:
            return True
        if kind == "integer" and "number" in self.types:
            return True
        if kind == "number" and "integer" in self.types and float(value).is_integer():
            return True
        if kind == "null":
            return self.accepts_null()
        return False

    def expected(self) -> str:
        names = sorted(self.types)
        if self.nullable and "null" not in names:
            names.append("null")
        return " | ".join(names) or "any"

    def shape_for(self, key: str) -> Any:
        """Shape governing ``key`` of an object: declared, pattern, additional or None."""
        if key in self.properties:
            return self.properties[key]
        for pattern, shape in self.pattern_properties:
            if re.search(pattern, key):
                return shape
        if isinstance(self.additional, Shape):
            return self.additional
        if self.additional is True:
            return True
        return None

    # ----- decode -----

    def decode(self, value: Any, location: Tuple[PathSegment, ...] = ()) -> None:
        """Raise :class:`DecodeError` at the first value whose type does not fit."""
        if value is None:
            if location and not self.accepts_null():
                # Non-nullable nulls read as "absent"; normalization drops them.
                return
            if not location and not self.accepts_null():
                raise DecodeError(location, self.expected(), "null", value)
            return
        if not self.accepts(value):
            raise DecodeError(location, self.expected(), json_type(value), value)
        if isinstance(value, dict):
            for key, item in value.items():
                sub = self.shape_for(key)
                if isinstance(sub, Shape):
                    sub.decode(item, location + (key,))
        elif isinstance(value, list) and self.items is not None:
            for index, item in enumerate(value):
                if item is None:
                    continue
                self.items.decode(item, location + (index,))

    # ----- normalize -----

    def normalize(self, value: Any) -> Any:
        """Return ``value`` re-serialized through this shape.

        Declared properties are emitted in schema order (missing ones take
        their default); undeclared ones are kept or dropped according to
        ``additionalProperties``/``patternProperties``.
        """
        if isinstance(value, dict) and (self.is_object or self.properties):
            result: Dict[str, Any] = {}
            for name, prop in self.properties.items():
                if name in value:
                    current = value[name]
                    if current is not None or prop.accepts_null():
                        result[name] = prop.normalize(current)
                        continue
                default = prop.default_value()
                if default is not MISSING:
                    result[name] = default
            for key, current in value.items():
                if key in self.properties:
                    continue
                sub = self.shape_for(key)
                if isinstance(sub, Shape):
                    result[key] = sub.normalize(current)
                elif sub is True:
                    result[key] = copy.deepcopy(current)
            return result
        if isinstance(value, list) and self.items is not None:
            return [self.items.normalize(item) if item is not None else None for item in value]
        return copy.deepcopy(value)

    # ----- defaults -----

    def default_value(self, _building: Optional[Set[int]] = None) -> Any:
        """Declared default, else a recursively built object, else ``[]`` for
        arrays, else MISSING."""
        if self.default is not MISSING:
            return copy.deepcopy(self.default)
        if self.nullable:
            return MISSING
        if self.is_object and self.properties:
            building = _building if _building is not None else set()
            if id(self) in building:
                return MISSING
            building.add(id(self))
            try:
                result: Dict[str, Any] = {}
                for name, prop in self.properties.items():
                    value = prop.default_value(building)
                    if value is not MISSING:
                        result[name] = value
                return result
            finally:
                building.discard(id(self))
        if self.is_array:
            return []
        return MISSING

    def iter_paths(self, value: Any, prefix: Tuple[PathSegment, ...] = ()) -> List[str]:
        """Dotted paths of every object property in ``value`` (used for drift reports)."""
        out: List[str] = []
        if isinstance(value, dict):
            for key, item in value.items():
                loc = prefix + (key,)
                out.append(format_path(loc))
                out.extend(self.iter_paths(item, loc))
        elif isinstance(value, list):
            for index, item in enumerate(value):
                out.extend(self.iter_paths(item, prefix + (index,)))
        return out


class _Compiler:
    def __init__(self, root: Dict[str, Any]) -> None:
        self.root = root
        self.registry: Dict[str, Shape] = {}

    def _lookup(self, ref: str) -> Any:
        if not ref.startswith("#"):
            raise ValueError(f"Only local $ref pointers are supported, got '{ref}'")
        node: Any = self.root
        for raw in ref[1:].split("/"):
            if not raw:
                continue
            part = raw.replace("~1", "/").replace("~0", "~")
            if isinstance(node, list):
                node = node[int(part)]
            elif isinstance(node, dict) and part in node:
                node = node[part]
            else:
                raise ValueError(f"Unresolvable $ref '{ref}'")
        return node

    def compile(self, node: Any) -> Shape:
        if isinstance(node, dict) and isinstance(node.get("$ref"), str):
            ref = node["$ref"]
            overlay = {k: v for k, v in node.items() if k != "$ref"}
            if not overlay and ref in self.registry:
                return self.registry[ref]
            shape = Shape()
            if not overlay:
                self.registry[ref] = shape
            self._fill(shape, self._lookup(ref))
            self._fill(shape, overlay)
            return shape
        shape = Shape()
        self._fill(shape, node)
        return shape

    def _fill(self, shape: Shape, node: Any) -> None:
        if not isinstance(node, dict):
            # ``true`` schema or anything unrecognised: accept any value.
            return

        if isinstance(node.get("$ref"), str):
            self._fill(shape, self._lookup(node["$ref"]))

        for sub in node.get("allOf", []) or []:
            self._fill(shape, sub)

        for keyword in ("oneOf", "anyOf"):
            variants = node.get(keyword)
            if not isinstance(variants, list):
                continue
            non_null = []
            for variant in variants:
                if isinstance(variant, dict) and (variant.get("type") == "null" or variant.get("const", 0) is None):
                    shape.nullable = True
                else:
                    non_null.append(variant)
            if len(non_null) == 1:
                self._merge(shape, self.compile(non_null[0]))
            else:
                for variant in non_null:
                    compiled = self.compile(variant)
                    shape.types = shape.types | compiled.types
                shape.additional = True

        declared = node.get("type")
        if isinstance(declared, str):
            declared = [declared]
        if isinstance(declared, list):
            types = {t for t in declared if t in JSON_TYPES}
            if "null" in types:
                shape.nullable = True
                types.discard("null")
            shape.types = frozenset(types) if not shape.types else shape.types | types

        if "properties" in node and "object" not in shape.types:
            shape.types = shape.types | {"object"}
        if "items" in node and "array" not in shape.types:
            shape.types = shape.types | {"array"}

        if "default" in node:
            shape.default = copy.deepcopy(node["default"])

        properties = node.get("properties")
        if isinstance(properties, dict):
            for name, sub in properties.items():
                shape.properties[name] = self.compile(sub)

        patterns = node.get("patternProperties")
        if isinstance(patterns, dict):
            for pattern, sub in patterns.items():
                shape.pattern_properties.append((pattern, self.compile(sub)))

        if "additionalProperties" in node:
            extra = node["additionalProperties"]
            if extra is True:
                shape.additional = True
            elif extra is False:
                shape.additional = False
            else:
                shape.additional = self.compile(extra)
        elif shape.is_object and not shape.properties and not shape.pattern_properties:
            # Free-form map: nothing declared, keep everything.
            shape.additional = True

        items = node.get("items")
        if isinstance(items, dict):
            shape.items = self.compile(items)
        elif items is True:
            shape.items = Shape()

    def _merge(self, target: Shape, source: Shape) -> None:
        target.types = target.types | source.types
        target.nullable = target.nullable or source.nullable
        if source.default is not MISSING:
            target.default = source.default
        target.properties.update(source.properties)
        target.pattern_properties.extend(source.pattern_properties)
        if source.additional is not False:
            target.additional = source.additional
        if source.items is not None:
            target.items = source.items


__all__ = ["Shape", "DecodeError", "MISSING", "json_type"]
