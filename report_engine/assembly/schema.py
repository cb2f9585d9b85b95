"""Declarative field schema.

The schema is operator-editable JSON, so its shape is only known at run
time. It is parsed into a tree of frozen nodes:

- ``ObjectNode``: ordered section of named children ("Property Details").
- ``LeafNode``: one scalar field with a label and a template placeholder.
- ``RepeatedNode``: homogeneous array of rows ("comparableSales").
- ``UnknownNode``: anything that cannot be classified; ignored downstream.

Parsing is total: only a definition that is not an object at all raises.
Every other problem degrades to an ``UnknownNode`` plus a recorded issue.
"""

import enum
import json
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

from report_engine.interfaces.errors import SchemaParseError

logger = logging.getLogger(__name__)

Path = tuple[str, ...]


def token_name(
    placeholder: str,
    extracted_prefix: str = "extracted_",
    template_prefix: str = "Replace_",
) -> str:
    """Bare template token for a schema placeholder.

    "[extracted_Address]" -> "Replace_Address"; "[Replace_Owner]" -> "Replace_Owner".
    """
    name = placeholder.strip()
    if name.startswith("[") and name.endswith("]"):
        name = name[1:-1].strip()
    if extracted_prefix and name.startswith(extracted_prefix):
        name = template_prefix + name[len(extracted_prefix):]
    return name


class ValueKind(str, enum.Enum):
    """Scalar kind a leaf expects."""

    STRING = "string"
    NUMBER = "number"


@dataclass(frozen=True)
class LeafNode:
    """A terminal field.

    Attributes:
        label: Human-readable field name.
        placeholder: Placeholder token as written in the schema
            (e.g. "[extracted_Address]").
        kind: Expected scalar kind.
        validation: Extra validation hints (e.g. {"required": True}).
    """

    label: str
    placeholder: str
    kind: ValueKind = ValueKind.STRING
    validation: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ObjectNode:
    """A named section; children keep the definition's order."""

    children: dict[str, "SchemaNode"] = field(default_factory=dict)


@dataclass(frozen=True)
class RepeatedNode:
    """An array of rows sharing one shape."""

    item: ObjectNode


@dataclass(frozen=True)
class UnknownNode:
    """A node that could not be classified."""

    reason: str


SchemaNode = Union[LeafNode, ObjectNode, RepeatedNode, UnknownNode]


class SchemaModel:
    """Parsed schema tree with traversal and lookup helpers.

    The tree is never mutated after parsing, so traversals can be
    restarted any number of times.
    """

    def __init__(self, root: ObjectNode, issues: list[SchemaParseError] | None = None) -> None:
        self._root = root
        self._issues = list(issues or [])

    @property
    def root(self) -> ObjectNode:
        return self._root

    @property
    def issues(self) -> list[SchemaParseError]:
        """Nodes that were excluded while parsing."""
        return list(self._issues)

    @classmethod
    def parse(
        cls,
        raw: Any,
        extracted_prefix: str = "extracted_",
        template_prefix: str = "Replace_",
    ) -> "SchemaModel":
        """Parse a schema definition.

        Two leaves whose placeholders resolve to the same template token
        (e.g. "[extracted_Address]" and "[Replace_Address]") collide; the
        second one is recorded as an issue and excluded.

        Args:
            raw: The decoded definition, or its JSON text.
            extracted_prefix: Placeholder prefix used by the extraction schema.
            template_prefix: Prefix the same fields carry inside templates.

        Returns:
            The parsed SchemaModel.

        Raises:
            SchemaParseError: If raw is not a JSON object.
        """
        if isinstance(raw, (str, bytes, bytearray)):
            try:
                raw = json.loads(raw)
            except ValueError as e:
                raise SchemaParseError(f"Schema definition is not valid JSON: {e}") from e

        if not isinstance(raw, dict):
            raise SchemaParseError(
                f"Schema definition must be an object, got {type(raw).__name__}"
            )

        parser = _SchemaParser(extracted_prefix, template_prefix)
        root = parser.parse_object(raw, ())
        for issue in parser.issues:
            logger.warning(f"Schema node ignored at {'.'.join(issue.path)}: {issue.message}")

        model = cls(root, parser.issues)
        logger.debug(f"Schema parsed: {model.leaf_count} leaves, {len(parser.issues)} issues")
        return model

    def traverse_leaves(self) -> Iterator[tuple[Path, LeafNode]]:
        """Yield (path, leaf) for every leaf outside repeated sections, depth first."""
        yield from _walk_leaves(self._root, ())

    def traverse_repeated(self) -> Iterator[tuple[Path, RepeatedNode]]:
        """Yield (path, node) for every repeated section, depth first."""
        yield from _walk_repeated(self._root, ())

    def lookup(self, path: Sequence[str]) -> SchemaNode | None:
        """Return the node at path, or None if there is none."""
        node: SchemaNode = self._root
        for name in path:
            if isinstance(node, RepeatedNode):
                node = node.item
            if not isinstance(node, ObjectNode) or name not in node.children:
                return None
            node = node.children[name]
        return node

    @property
    def leaf_count(self) -> int:
        return sum(1 for _ in self.traverse_leaves())


def _walk_leaves(node: ObjectNode, path: Path) -> Iterator[tuple[Path, LeafNode]]:
    for name, child in node.children.items():
        child_path = path + (name,)
        if isinstance(child, LeafNode):
            yield child_path, child
        elif isinstance(child, ObjectNode):
            yield from _walk_leaves(child, child_path)


def _walk_repeated(node: ObjectNode, path: Path) -> Iterator[tuple[Path, RepeatedNode]]:
    for name, child in node.children.items():
        child_path = path + (name,)
        if isinstance(child, RepeatedNode):
            yield child_path, child
        elif isinstance(child, ObjectNode):
            yield from _walk_repeated(child, child_path)


class _SchemaParser:
    """Single-use parser state: issue log, seen tokens and the ancestor chain."""

    def __init__(self, extracted_prefix: str, template_prefix: str) -> None:
        self._prefixes = (extracted_prefix, template_prefix)
        self.issues: list[SchemaParseError] = []
        self._tokens: dict[str, Path] = {}
        self._ancestors: set[int] = set()

    def _unknown(self, path: Path, reason: str) -> UnknownNode:
        self.issues.append(SchemaParseError(reason, path))
        return UnknownNode(reason)

    def parse_object(self, raw: dict, path: Path, in_repeated: bool = False) -> ObjectNode:
        self._ancestors.add(id(raw))
        try:
            children: dict[str, SchemaNode] = {}
            for name, value in raw.items():
                children[str(name)] = self.parse_node(value, path + (str(name),), in_repeated)
            return ObjectNode(children=children)
        finally:
            self._ancestors.discard(id(raw))

    def parse_node(self, value: Any, path: Path, in_repeated: bool) -> SchemaNode:
        if isinstance(value, str):
            if not value.strip():
                if not in_repeated:
                    return self._unknown(path, "empty placeholder")
                value = path[-1]
            return self._leaf(path, label=path[-1], placeholder=value, raw={}, in_repeated=in_repeated)

        if isinstance(value, dict):
            if id(value) in self._ancestors:
                return self._unknown(path, "cyclic reference")
            if "label" in value or "placeholder" in value:
                placeholder = value.get("placeholder")
                if not isinstance(placeholder, str) or not placeholder.strip():
                    if not in_repeated:
                        return self._unknown(path, "leaf has no placeholder")
                    placeholder = path[-1]
                label = value.get("label")
                return self._leaf(
                    path,
                    label=label if isinstance(label, str) and label else path[-1],
                    placeholder=placeholder,
                    raw=value,
                    in_repeated=in_repeated,
                )
            return self.parse_object(value, path, in_repeated)

        if isinstance(value, list):
            return self._repeated(value, path)

        return self._unknown(path, f"unsupported node type {type(value).__name__}")

    def _repeated(self, value: list, path: Path) -> SchemaNode:
        if not value:
            return self._unknown(path, "array has no row shape")
        if not all(isinstance(item, dict) for item in value):
            return self._unknown(path, "array items are not all objects")
        shapes = {tuple(item.keys()) for item in value}
        if len(shapes) != 1:
            return self._unknown(path, "array items have non-uniform shapes")

        item = self.parse_object(value[0], path, in_repeated=True)
        return RepeatedNode(item=item)

    def _leaf(
        self,
        path: Path,
        label: str,
        placeholder: str,
        raw: dict,
        in_repeated: bool,
    ) -> SchemaNode:
        validation = raw.get("validation") or {}
        if isinstance(validation, str):
            validation = {"type": validation}
        elif not isinstance(validation, dict):
            self.issues.append(SchemaParseError("validation hint ignored", path))
            validation = {}

        kind_raw = raw.get("type") or validation.get("type") or ValueKind.STRING.value
        try:
            kind = ValueKind(str(kind_raw).lower())
        except ValueError:
            self.issues.append(SchemaParseError(f"unknown value kind {kind_raw!r}", path))
            kind = ValueKind.STRING

        placeholder = placeholder.strip()
        # Row fields are addressed by key inside their loop; only section tokens are global
        if not in_repeated:
            token = token_name(placeholder, *self._prefixes)
            if token in self._tokens:
                first = ".".join(self._tokens[token])
                return self._unknown(
                    path, f"duplicate placeholder {placeholder} for token {token} (first used at {first})"
                )
            self._tokens[token] = path

        return LeafNode(label=label, placeholder=placeholder, kind=kind, validation=dict(validation))
