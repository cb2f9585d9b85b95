"""API request and response schemas.

Pydantic v2 models for API serialization/deserialization.
"""

from typing import Any

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# Report Generation Schemas
# =============================================================================


class GenerateReportRequest(BaseModel):
    """Request schema for generating a report from a template."""

    template_name: str | None = Field(
        default=None,
        description="File name of a stored template, e.g. 'residential.docx'",
    )
    template_data_uri: str | None = Field(
        default=None,
        description="Template as a base64 data URI; overrides template_name",
    )
    data_sources: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Data trees ordered by priority, highest first",
    )
    draft_id: str | None = Field(
        default=None,
        description="Saved draft whose data outranks every data source",
    )
    images: dict[str, str] = Field(
        default_factory=dict,
        description="Image placeholder -> base64 data URI",
    )

    @model_validator(mode="after")
    def require_template(self) -> "GenerateReportRequest":
        """Either a stored template name or inline template data is required."""
        if not self.template_name and not self.template_data_uri:
            raise ValueError("template_name or template_data_uri is required")
        return self


class GenerateReportResponse(BaseModel):
    """Response for a generated report."""

    generated_docx_data_uri: str = Field(description="Rendered document as a base64 data URI")
    replacements_count: int = Field(ge=0, description="Non-empty fields plus substituted images")
    images_replaced_count: int = Field(ge=0, description="Image slots substituted")
    warnings: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Schema issues, validation warnings and image decode errors",
    )


# =============================================================================
# Draft Merge Schemas
# =============================================================================


class MergeRequest(BaseModel):
    """Request schema for merging extracted data into a saved draft."""

    draft_id: str = Field(min_length=1, description="ID of the draft to merge into")
    extracted: dict[str, Any] = Field(description="Freshly extracted data, lower priority than the draft")


class MergeResponse(BaseModel):
    """Draft form data with merged ``data``; nothing is persisted."""

    draft_id: str
    form_data: dict[str, Any]


# =============================================================================
# Configuration Schemas
# =============================================================================


class SchemaLeaf(BaseModel):
    """One leaf field of the configured schema."""

    path: list[str]
    label: str
    placeholder: str
    token: str = Field(description="Token name as written in templates")
    kind: str


class TemplateListResponse(BaseModel):
    """Stored templates available for generation."""

    templates: list[str]


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(description="Error message")
    error_code: str | None = Field(default=None, description="Application-specific error code")
    extra: dict[str, Any] | None = Field(default=None, description="Additional error context")
