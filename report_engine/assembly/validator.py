"""Run-time payload validation derived from a schema.

The schema is only known at run time, so the validating pydantic models
are built on the fly with ``create_model`` by walking the schema tree.
Failures are reported per leaf path and never raised: the caller decides
whether to proceed with partial data.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, create_model

from report_engine.assembly.merger import is_empty
from report_engine.assembly.schema import LeafNode, ObjectNode, Path, RepeatedNode, SchemaModel, ValueKind

logger = logging.getLogger(__name__)

_MISSING = object()
_NUMBER_NOISE = re.compile(r"[,\s$£€]")


class FieldStatus(str, enum.Enum):
    """Validation outcome for one leaf."""

    VALID = "valid"
    ABSENT = "absent"
    INVALID = "invalid"


@dataclass(frozen=True)
class ValidationWarning:
    """A non-fatal, field-scoped validation finding."""

    path: Path
    status: FieldStatus
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": "validation_warning",
            "path": ".".join(self.path),
            "status": self.status.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class ValidationResult:
    """Per-path statuses plus the warnings worth showing to a user."""

    statuses: dict[Path, FieldStatus] = field(default_factory=dict)
    warnings: list[ValidationWarning] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return all(status != FieldStatus.INVALID for status in self.statuses.values())

    def paths_with(self, status: FieldStatus) -> list[Path]:
        return [path for path, s in self.statuses.items() if s == status]


def coerce_number(value: Any) -> float | int:
    """Coerce a native number or numeric text ("1,250,000", "$42.5").

    Raises:
        ValueError: If the value cannot be read as a number.
    """
    if isinstance(value, bool):
        raise ValueError("expected a number, got a boolean")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        cleaned = _NUMBER_NOISE.sub("", value)
        try:
            number = float(cleaned)
        except ValueError:
            raise ValueError(f"{value!r} is not a number") from None
        return int(number) if number.is_integer() and "." not in cleaned else number
    raise ValueError(f"expected a number, got {type(value).__name__}")


def _number_before(value: Any) -> Any:
    if is_empty(value):
        return None
    return coerce_number(value)


def _text_before(value: Any) -> Any:
    if is_empty(value):
        return None
    if isinstance(value, (dict, list)):
        raise ValueError(f"expected text, got {type(value).__name__}")
    return value if isinstance(value, str) else str(value)


NumberField = Annotated[Optional[float], BeforeValidator(_number_before)]
TextField = Annotated[Optional[str], BeforeValidator(_text_before)]


class _LenientModel(BaseModel):
    """Base for generated models: unknown keys are ignored, not rejected."""

    model_config = ConfigDict(extra="ignore")


class SchemaValidator:
    """Validator built from one SchemaModel.

    Example:
        ```python
        validator = SchemaValidator.build(model)
        result = validator.check(extracted)
        for warning in result.warnings:
            print(warning.to_dict())
        ```
    """

    def __init__(self, model: SchemaModel, payload_model: type[BaseModel]) -> None:
        self._model = model
        self._payload_model = payload_model

    @classmethod
    def build(cls, model: SchemaModel) -> "SchemaValidator":
        payload_model = _model_for(model.root, "SchemaPayload")
        return cls(model, payload_model)

    @property
    def payload_model(self) -> type[BaseModel]:
        return self._payload_model

    def check(self, data: Any) -> ValidationResult:
        """Check any JSON tree against the schema.

        Args:
            data: Candidate payload (need not match the schema shape).

        Returns:
            ValidationResult with a status for every leaf path.
        """
        errors: dict[Path, str] = {}
        if not isinstance(data, dict):
            errors[()] = f"payload must be an object, got {type(data).__name__}"
            data = {}
        else:
            try:
                self._payload_model.model_validate(data)
            except ValidationError as e:
                for err in e.errors():
                    errors[tuple(str(part) for part in err["loc"])] = err["msg"]

        statuses: dict[Path, FieldStatus] = {}
        warnings: list[ValidationWarning] = []

        for path, leaf in self._model.traverse_leaves():
            message = _error_for(path, errors)
            value = _value_at(data, path)

            if message is None and not is_empty(value) and value is not _MISSING:
                message = _check_pattern(leaf, value)

            if message is not None:
                statuses[path] = FieldStatus.INVALID
                warnings.append(ValidationWarning(path, FieldStatus.INVALID, message))
            elif value is _MISSING or is_empty(value):
                statuses[path] = FieldStatus.ABSENT
                if leaf.validation.get("required"):
                    warnings.append(
                        ValidationWarning(path, FieldStatus.ABSENT, f"{leaf.label} is required")
                    )
            else:
                statuses[path] = FieldStatus.VALID

        # Errors inside repeated rows or on whole sections have no leaf of their own
        for path, message in errors.items():
            if path not in statuses:
                statuses[path] = FieldStatus.INVALID
                warnings.append(ValidationWarning(path, FieldStatus.INVALID, message))

        if warnings:
            logger.info(f"Validation found {len(warnings)} warnings")
        return ValidationResult(statuses=statuses, warnings=warnings)


def _model_for(node: ObjectNode, name: str) -> type[BaseModel]:
    fields: dict[str, Any] = {}
    for idx, (key, child) in enumerate(node.children.items()):
        if isinstance(child, LeafNode):
            annotation: Any = NumberField if child.kind == ValueKind.NUMBER else TextField
        elif isinstance(child, ObjectNode):
            annotation = Optional[_model_for(child, f"{name}_{idx}")]
        elif isinstance(child, RepeatedNode):
            annotation = Optional[list[_model_for(child.item, f"{name}_{idx}_row")]]
        else:
            continue
        # Schema keys are free text ("Property Details"), so they live in aliases
        fields[f"field_{idx}"] = (annotation, Field(default=None, alias=key))
    return create_model(name, __base__=_LenientModel, **fields)


def _error_for(path: Path, errors: dict[Path, str]) -> str | None:
    for depth in range(len(path), -1, -1):
        if path[:depth] in errors:
            return errors[path[:depth]]
    return None


def _value_at(data: Any, path: Path) -> Any:
    node = data
    for name in path:
        if not isinstance(node, dict) or name not in node:
            return _MISSING
        node = node[name]
    return node


def _check_pattern(leaf: LeafNode, value: Any) -> str | None:
    pattern = leaf.validation.get("pattern")
    if not isinstance(pattern, str) or leaf.kind != ValueKind.STRING:
        return None
    try:
        matched = re.fullmatch(pattern, str(value))
    except re.error:
        logger.warning(f"Ignoring invalid pattern hint for {leaf.placeholder}: {pattern!r}")
        return None
    return None if matched else f"{leaf.label} does not match {pattern}"
