"""Abstract base classes and value objects shared across strategies."""

from report_engine.interfaces.errors import (
    ConfigLoadError,
    ImageDecodeError,
    MergeError,
    RenderError,
    ReportEngineError,
    SchemaParseError,
)
from report_engine.interfaces.storage import BaseDocumentStore
from report_engine.interfaces.template import (
    BaseTemplateRenderer,
    ImagePayload,
    ImagePhaseResult,
    RenderResult,
    TextMap,
)

__all__ = [
    "BaseDocumentStore",
    "BaseTemplateRenderer",
    "ImagePayload",
    "ImagePhaseResult",
    "RenderResult",
    "TextMap",
    "ReportEngineError",
    "ConfigLoadError",
    "SchemaParseError",
    "MergeError",
    "ImageDecodeError",
    "RenderError",
]
