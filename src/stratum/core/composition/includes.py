"""``$include`` expansion: splicing fragment files into arrays.

A fragment is a file ``{"Items": [...]}``. An array element of the form
``{"$include": "_fragments/header"}`` is replaced, in place and in order, by
the fragment's items. Fragments may include other fragments; each include
chain is tracked and a fragment that reappears in its own chain is a cycle.

The same fragment may be included any number of times from siblings; only
an ancestor repeat is a cycle.
"""
from __future__ import annotations

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from stratum.core.exceptions import (
    CircularFragmentIncludeError,
    FragmentLoadFailedError,
    FragmentNotFoundError,
    InvalidFragmentFormatError,
    InvalidIncludeValueError,
    MisplacedDirectiveError,
)
from stratum.core.schemas.shape import json_type
from stratum.core.schemas.validation import PathSegment, format_path
from stratum.core.utils.io import read_json
from stratum.core.utils.paths import PathResolver

from .directives import describe_value

logger = logging.getLogger(__name__)


def _same_path(a: Path, b: Path) -> bool:
    return os.path.normcase(str(a)) == os.path.normcase(str(b))


class FragmentExpander:
    """Expands ``$include`` directives anywhere in a document tree.

    Args:
        resolver: Reference resolution bound to the root directory
        include_key: Name of the include directive
        items_key: Array property of a fragment file
        extends_key: When given, ``$extends`` below the root is rejected
        schema_writer: When given, fragments lacking ``$schema`` get one
        cache: Fragment items by path, shared for the duration of one read
    """

    def __init__(
        self,
        resolver: PathResolver,
        *,
        include_key: str = "$include",
        items_key: str = "Items",
        extends_key: Optional[str] = None,
        schema_writer: Optional[Any] = None,
        cache: Optional[Dict[str, List[Any]]] = None,
    ) -> None:
        self.resolver = resolver
        self.include_key = include_key
        self.items_key = items_key
        self.extends_key = extends_key
        self.schema_writer = schema_writer
        self.cache: Dict[str, List[Any]] = cache if cache is not None else {}

    def expand(
        self,
        tree: Dict[str, Any],
        base_dir: Path,
        visited: Sequence[Path] = (),
        *,
        source: Optional[Path] = None,
    ) -> Dict[str, Any]:
        """Return a copy of ``tree`` with every ``$include`` spliced in.

        Args:
            tree: Document root object
            base_dir: Directory include references are resolved against
            visited: Fragments already on the include chain
            source: File the tree came from (reported in errors)
        """
        if self.include_key in tree:
            raise MisplacedDirectiveError(self.include_key, "the document root", referrer=source)
        return self._expand_object(tree, Path(base_dir), tuple(visited), source, (), root=True)

    # ----- walkers -----

    def _expand_object(
        self,
        obj: Dict[str, Any],
        base_dir: Path,
        visited: Tuple[Path, ...],
        source: Optional[Path],
        loc: Tuple[PathSegment, ...],
        *,
        root: bool = False,
    ) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, value in obj.items():
            here = loc + (key,)
            if not root and self.extends_key is not None and key == self.extends_key:
                raise MisplacedDirectiveError(
                    self.extends_key, f"'{format_path(here)}' (only the root may extend)", referrer=source
                )
            if isinstance(value, dict):
                if self.include_key in value:
                    raise MisplacedDirectiveError(
                        self.include_key, f"'{format_path(here)}' (not an array element)", referrer=source
                    )
                out[key] = self._expand_object(value, base_dir, visited, source, here)
            elif isinstance(value, list):
                out[key] = self._expand_array(value, base_dir, visited, source, here)
            else:
                out[key] = copy.deepcopy(value)
        return out

    def _expand_array(
        self,
        items: List[Any],
        base_dir: Path,
        visited: Tuple[Path, ...],
        source: Optional[Path],
        loc: Tuple[PathSegment, ...],
    ) -> List[Any]:
        out: List[Any] = []
        for index, element in enumerate(items):
            here = loc + (index,)
            if isinstance(element, dict) and self.include_key in element:
                if len(element) != 1:
                    raise MisplacedDirectiveError(
                        self.include_key,
                        f"'{format_path(here)}' (an include object must have no other keys)",
                        referrer=source,
                    )
                out.extend(self._splice(element[self.include_key], base_dir, visited, source))
            elif isinstance(element, dict):
                out.append(self._expand_object(element, base_dir, visited, source, here))
            elif isinstance(element, list):
                out.append(self._expand_array(element, base_dir, visited, source, here))
            else:
                out.append(copy.deepcopy(element))
        return out

    # ----- fragments -----

    def _splice(
        self,
        reference: Any,
        base_dir: Path,
        visited: Tuple[Path, ...],
        source: Optional[Path],
    ) -> List[Any]:
        if not isinstance(reference, str) or not reference.strip():
            raise InvalidIncludeValueError(describe_value(reference), referrer=source)

        fragment_path = self.resolver.resolve(base_dir, reference, referrer=source)
        if any(_same_path(fragment_path, seen) for seen in visited):
            raise CircularFragmentIncludeError(
                fragment_path,
                list(visited) + [fragment_path],
                root_dir=self.resolver.root_dir,
                referrer=source,
            )

        items = self.load_items(fragment_path, referrer=source)
        expanded = self._expand_array(
            items,
            fragment_path.parent,
            visited + (fragment_path,),
            fragment_path,
            (self.items_key,),
        )
        logger.debug(
            "Spliced %d item(s) from %s into %s",
            len(expanded),
            self.resolver.relative(fragment_path),
            source or "<document>",
        )
        return expanded

    def load_items(self, fragment_path: Path, *, referrer: Optional[Path] = None) -> List[Any]:
        """Read a fragment file and return its items array (cached per expander)."""
        key = os.path.normcase(str(fragment_path))
        if key in self.cache:
            return self.cache[key]

        if not fragment_path.exists():
            raise FragmentNotFoundError(fragment_path, referrer=referrer)
        try:
            data = read_json(fragment_path)
        except FileNotFoundError as exc:
            raise FragmentNotFoundError(fragment_path, referrer=referrer) from exc
        except (OSError, ValueError) as exc:
            raise FragmentLoadFailedError(fragment_path, exc) from exc

        if not isinstance(data, dict):
            raise InvalidFragmentFormatError(
                fragment_path, f"a JSON {json_type(data)}", items_key=self.items_key
            )
        if self.items_key not in data:
            raise InvalidFragmentFormatError(
                fragment_path,
                f"an object without '{self.items_key}' (keys: {', '.join(data) or 'none'})",
                items_key=self.items_key,
            )
        items = data[self.items_key]
        if not isinstance(items, list):
            raise InvalidFragmentFormatError(
                fragment_path,
                f"'{self.items_key}' is a JSON {json_type(items)}",
                items_key=self.items_key,
            )

        if self.schema_writer is not None:
            self.schema_writer.ensure_fragment_reference(fragment_path, data)

        self.cache[key] = items
        return items


__all__ = ["FragmentExpander"]
