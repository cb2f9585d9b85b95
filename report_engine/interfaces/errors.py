"""Error taxonomy for report assembly.

Fatal errors (configuration, rendering) are raised. Non-fatal ones
(schema issues, per-image decode failures) are collected on result objects
so the caller can surface them next to a still-successful render.
"""

from typing import Any


class ReportEngineError(Exception):
    """Base class for all report engine errors."""

    kind = "report_engine_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class ConfigLoadError(ReportEngineError):
    """A schema, template or image configuration could not be loaded.

    Operator error: never retried, always reported with the resource name.
    """

    kind = "config_load_error"

    def __init__(self, resource: str, message: str) -> None:
        super().__init__(f"{resource}: {message}")
        self.resource = resource

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "resource": self.resource}


class SchemaParseError(ReportEngineError):
    """A schema definition (or one node of it) could not be classified.

    Raised only when the whole definition is unusable; individual bad nodes
    are recorded on the parsed model instead.
    """

    kind = "schema_parse_error"

    def __init__(self, message: str, path: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.path = path

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "path": ".".join(self.path)}


class MergeError(ReportEngineError):
    """The schema tree itself is unresolvable (cyclic or foreign nodes)."""

    kind = "merge_error"

    def __init__(self, message: str, path: tuple[str, ...] = ()) -> None:
        super().__init__(message)
        self.path = path


class ImageDecodeError(ReportEngineError):
    """One image slot could not be decoded; the slot is left unsubstituted."""

    kind = "image_decode_error"

    def __init__(self, placeholder: str, message: str) -> None:
        super().__init__(message)
        self.placeholder = placeholder

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "placeholder": self.placeholder}


class RenderError(ReportEngineError):
    """Rendering failed in the image or the text phase.

    Always carries the offending placeholder, or the document engine's own
    explanation, so the user knows what to fix in the template.
    """

    kind = "render_error"

    def __init__(
        self,
        stage: str,
        message: str,
        placeholder: str | None = None,
        images_replaced_count: int = 0,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.placeholder = placeholder
        self.images_replaced_count = images_replaced_count

    def __str__(self) -> str:
        where = f" [{self.placeholder}]" if self.placeholder else ""
        return f"{self.stage} phase{where}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "stage": self.stage,
            "placeholder": self.placeholder,
            "images_replaced_count": self.images_replaced_count,
        }
