"""Report generation API routes.

Handles report generation from stored or inline templates, merging
extracted data into saved drafts, and read-only views of configuration.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool

from report_engine.api.deps import get_component_factory, get_flow, get_store
from report_engine.api.schemas import (
    GenerateReportRequest,
    GenerateReportResponse,
    MergeRequest,
    MergeResponse,
    SchemaLeaf,
    TemplateListResponse,
)
from report_engine.assembly.flow import (
    AssemblyRequest,
    ReportAssemblyFlow,
    load_draft,
    load_schema,
)
from report_engine.assembly.schema import token_name
from report_engine.assembly.merger import merge_with_draft
from report_engine.core.factory import ComponentFactory
from report_engine.interfaces.errors import ConfigLoadError, RenderError
from report_engine.interfaces.storage import BaseDocumentStore
from report_engine.strategies.template_engine import encode_data_uri

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.post(
    "/generate",
    response_model=GenerateReportResponse,
    status_code=status.HTTP_200_OK,
)
async def generate_report(
    request: GenerateReportRequest,
    flow: ReportAssemblyFlow = Depends(get_flow),
) -> GenerateReportResponse:
    """Fill a template with merged data and images.

    Data sources are merged by priority (saved draft first, then the
    request's data sources in order, then stored defaults) before
    rendering. Validation and image problems come back as warnings next
    to a successful result.

    Args:
        request: Template reference, data sources, draft and images.
        flow: A fresh assembly flow.

    Returns:
        GenerateReportResponse with the document as a data URI.

    Raises:
        HTTPException: 404 if configuration is missing, 422 if the
            template cannot be rendered.
    """
    assembly_request = AssemblyRequest(
        data_sources=list(request.data_sources),
        template_name=request.template_name,
        template_data=request.template_data_uri,
        draft_id=request.draft_id,
        images=dict(request.images),
    )

    try:
        result = await run_in_threadpool(flow.run, assembly_request)
    except ConfigLoadError as e:
        logger.warning(f"Report configuration missing: {e}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.to_dict(),
        ) from e
    except RenderError as e:
        logger.warning(f"Report rendering failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.to_dict(),
        ) from e

    return GenerateReportResponse(
        generated_docx_data_uri=encode_data_uri(result.document_bytes),
        replacements_count=result.replacements_count,
        images_replaced_count=result.images_replaced_count,
        warnings=result.warnings,
    )


@router.post("/merge", response_model=MergeResponse)
async def merge_draft(
    request: MergeRequest,
    store: BaseDocumentStore = Depends(get_store),
    factory: ComponentFactory = Depends(get_component_factory),
) -> MergeResponse:
    """Merge freshly extracted data into a saved draft.

    The draft's non-empty values win; its other form properties are
    carried over. The result is returned, not saved.

    Raises:
        HTTPException: 404 if the schema or the draft is missing.
    """
    settings = factory.settings
    try:
        model = load_schema(
            store,
            settings.schema_document,
            settings.extracted_token_prefix,
            settings.template_token_prefix,
        )
        draft = load_draft(store, settings.drafts_document, request.draft_id)
    except ConfigLoadError as e:
        logger.warning(f"Draft merge failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.to_dict(),
        ) from e

    form_data = merge_with_draft(draft.get("formData"), request.extracted, model)
    logger.info(f"Merged extracted data into draft {request.draft_id}")
    return MergeResponse(draft_id=request.draft_id, form_data=form_data)


@router.get("/schema/leaves", response_model=list[SchemaLeaf])
async def list_schema_leaves(
    store: BaseDocumentStore = Depends(get_store),
    factory: ComponentFactory = Depends(get_component_factory),
) -> list[SchemaLeaf]:
    """List every leaf field of the configured schema with its template token."""
    settings = factory.settings
    try:
        model = load_schema(
            store,
            settings.schema_document,
            settings.extracted_token_prefix,
            settings.template_token_prefix,
        )
    except ConfigLoadError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=e.to_dict(),
        ) from e

    return [
        SchemaLeaf(
            path=list(path),
            label=leaf.label,
            placeholder=leaf.placeholder,
            token=token_name(
                leaf.placeholder,
                settings.extracted_token_prefix,
                settings.template_token_prefix,
            ),
            kind=leaf.kind.value,
        )
        for path, leaf in model.traverse_leaves()
    ]


@router.get("/templates", response_model=TemplateListResponse)
async def list_templates(
    store: BaseDocumentStore = Depends(get_store),
    factory: ComponentFactory = Depends(get_component_factory),
) -> TemplateListResponse:
    """List stored .docx templates."""
    names = store.list_names(factory.settings.templates_prefix)
    return TemplateListResponse(templates=[name for name in names if name.endswith(".docx")])
