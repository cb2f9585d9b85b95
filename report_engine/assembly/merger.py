"""Precedence merge of ranked data sources.

Sources are ordered highest priority first (a saved draft, then freshly
extracted data, then defaults). The schema drives the walk:

- leaves take the first value that is not an empty sentinel, else "";
- repeated sections take the first source that defines the array at all,
  even as [], and never merge rows element-wise;
- keys unknown to the schema are dropped, except at the top level where
  they pass through verbatim (record identifiers and other metadata).
"""

import copy
import logging
from collections.abc import Sequence
from typing import Any

from report_engine.assembly.schema import (
    LeafNode,
    ObjectNode,
    Path,
    RepeatedNode,
    SchemaModel,
    UnknownNode,
)
from report_engine.interfaces.errors import MergeError

logger = logging.getLogger(__name__)

EMPTY_SENTINELS = ("", "N/A")

# Deeper than any real report layout; guards hand-built cyclic trees
MAX_DEPTH = 64


def is_empty(value: Any) -> bool:
    """Return True for None, "" and "N/A"."""
    if value is None:
        return True
    return isinstance(value, str) and value in EMPTY_SENTINELS


class DataMerger:
    """Schema-driven merge of N ranked data sources.

    Example:
        ```python
        merger = DataMerger(model)
        merged = merger.merge([draft_data, extracted_data, defaults])
        ```
    """

    def __init__(self, model: SchemaModel) -> None:
        self._model = model

    def merge(self, sources: Sequence[Any]) -> dict[str, Any]:
        """Merge sources, index 0 winning.

        Args:
            sources: Data trees ordered by priority. Non-dict entries are
                treated as empty sources.

        Returns:
            A new merged tree; the inputs are never mutated.

        Raises:
            MergeError: If the schema tree itself cannot be walked.
        """
        dict_sources = [s if isinstance(s, dict) else None for s in sources]
        merged = self._merge_object(self._model.root, dict_sources, (), set())

        for key in _passthrough_keys(self._model.root, dict_sources):
            merged[key] = _first_present(dict_sources, key)

        logger.debug(f"Merged {len(dict_sources)} sources into {len(merged)} top-level keys")
        return merged

    def _merge_object(
        self,
        node: ObjectNode,
        sources: list[dict | None],
        path: Path,
        active: set[int],
    ) -> dict[str, Any]:
        if len(path) > MAX_DEPTH or id(node) in active:
            raise MergeError("schema tree is cyclic or too deep", path)
        active.add(id(node))

        merged: dict[str, Any] = {}
        for name, child in node.children.items():
            child_path = path + (name,)
            values = [src.get(name) if src is not None else None for src in sources]

            if isinstance(child, LeafNode):
                merged[name] = next((copy.deepcopy(v) for v in values if not is_empty(v)), "")
            elif isinstance(child, ObjectNode):
                sub_sources = [v if isinstance(v, dict) else None for v in values]
                merged[name] = self._merge_object(child, sub_sources, child_path, active)
            elif isinstance(child, RepeatedNode):
                merged[name] = _first_array(sources, name)
            elif isinstance(child, UnknownNode):
                continue
            else:
                raise MergeError(f"unresolvable schema node {type(child).__name__}", child_path)

        active.discard(id(node))
        return merged


def merge_sources(sources: Sequence[Any], model: SchemaModel) -> dict[str, Any]:
    """Convenience wrapper around DataMerger.merge."""
    return DataMerger(model).merge(sources)


def merge_with_draft(form_data: Any, extracted: Any, model: SchemaModel) -> dict[str, Any]:
    """Merge extracted data into a saved draft's form data.

    The draft's own values win. Every other form property (selections,
    commentary choices) is carried over unchanged; only ``data`` is replaced.
    """
    form = dict(form_data) if isinstance(form_data, dict) else {}
    merged = DataMerger(model).merge([form.get("data"), extracted])
    return {**form, "data": merged}


def _first_array(sources: list[dict | None], name: str) -> list[Any]:
    for src in sources:
        if src is not None and isinstance(src.get(name), list):
            return copy.deepcopy(src[name])
    return []


def _passthrough_keys(root: ObjectNode, sources: list[dict | None]) -> list[str]:
    recognized = {
        name for name, child in root.children.items() if not isinstance(child, UnknownNode)
    }
    keys: list[str] = []
    for src in sources:
        for key in src or ():
            if key not in recognized and key not in keys:
                keys.append(key)
    return keys


def _first_present(sources: list[dict | None], key: str) -> Any:
    present = [src[key] for src in sources if src is not None and key in src]
    value = next((v for v in present if not is_empty(v)), present[0])
    return copy.deepcopy(value)
