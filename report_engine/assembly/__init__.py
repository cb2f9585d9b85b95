"""Report assembly: schema, validation, merge, mapping and the flow."""

from report_engine.assembly.flow import (
    AssemblyRequest,
    AssemblyResult,
    FlowState,
    ReportAssemblyFlow,
)
from report_engine.assembly.mapper import ImageSlot, PlaceholderMapper, normalize_text
from report_engine.assembly.merger import DataMerger, merge_sources, merge_with_draft
from report_engine.assembly.schema import (
    LeafNode,
    ObjectNode,
    RepeatedNode,
    SchemaModel,
    UnknownNode,
    ValueKind,
)
from report_engine.assembly.validator import (
    FieldStatus,
    SchemaValidator,
    ValidationResult,
    ValidationWarning,
)

__all__ = [
    "AssemblyRequest",
    "AssemblyResult",
    "FlowState",
    "ReportAssemblyFlow",
    "ImageSlot",
    "PlaceholderMapper",
    "normalize_text",
    "DataMerger",
    "merge_sources",
    "merge_with_draft",
    "LeafNode",
    "ObjectNode",
    "RepeatedNode",
    "SchemaModel",
    "UnknownNode",
    "ValueKind",
    "FieldStatus",
    "SchemaValidator",
    "ValidationResult",
    "ValidationWarning",
]
