"""Report assembly flow.

Orchestrates one report request end to end:

    IDLE -> LOADING_INPUTS -> VALIDATING -> MERGING -> MAPPING -> RENDERING -> DONE

with FAILED reachable from any state. Configuration is read from the
document store exactly once per run and reused from memory afterwards.
A flow instance tracks the state of a single run; build a new one per
request and share only the store and renderer.
"""

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any

import structlog

from report_engine.assembly.mapper import PlaceholderMapper, parse_image_slots
from report_engine.assembly.merger import DataMerger
from report_engine.assembly.schema import SchemaModel
from report_engine.assembly.validator import SchemaValidator
from report_engine.core.config import Settings, get_settings
from report_engine.interfaces.errors import ConfigLoadError, RenderError, SchemaParseError
from report_engine.interfaces.storage import BaseDocumentStore
from report_engine.interfaces.template import BaseTemplateRenderer

logger = structlog.get_logger(__name__)


class FlowState(str, enum.Enum):
    """Lifecycle states of one assembly run."""

    IDLE = "idle"
    LOADING_INPUTS = "loading_inputs"
    VALIDATING = "validating"
    MERGING = "merging"
    MAPPING = "mapping"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class AssemblyRequest:
    """Inputs for one report.

    Attributes:
        data_sources: Data trees ordered by priority, highest first.
        template_name: File name of a stored template.
        template_data: Template as raw bytes or a base64 data URI; takes
            precedence over template_name.
        draft_id: Saved draft whose data outranks every data source.
        images: Image token -> base64 data URI (or raw bytes).
    """

    data_sources: list[Any] = field(default_factory=list)
    template_name: str | None = None
    template_data: bytes | str | None = None
    draft_id: str | None = None
    images: dict[str, str | bytes] = field(default_factory=dict)


@dataclass(frozen=True)
class AssemblyResult:
    """Rendered document, counters and every non-fatal finding."""

    document_bytes: bytes
    replacements_count: int
    images_replaced_count: int
    warnings: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class _Inputs:
    model: SchemaModel
    template: bytes | str
    image_options: list[Any]
    defaults: dict[str, Any] | None
    draft_data: dict[str, Any] | None


def find_draft(drafts: Any, draft_id: str) -> dict[str, Any] | None:
    """Return the draft record with the given id from a drafts array."""
    if not isinstance(drafts, list):
        return None
    for draft in drafts:
        if isinstance(draft, dict) and str(draft.get("draftId")) == str(draft_id):
            return draft
    return None


def load_schema(
    store: BaseDocumentStore,
    key: str,
    extracted_prefix: str = "extracted_",
    template_prefix: str = "Replace_",
) -> SchemaModel:
    """Read and parse the schema definition.

    The prefixes must match the ones used for mapping, so that leaves
    colliding on one template token are caught at parse time.

    Raises:
        ConfigLoadError: If the document is missing or not a JSON object.
    """
    try:
        return SchemaModel.parse(_read_json(store, key), extracted_prefix, template_prefix)
    except SchemaParseError as e:
        raise ConfigLoadError(key, e.message) from e


def load_draft(store: BaseDocumentStore, drafts_key: str, draft_id: str) -> dict[str, Any]:
    """Read the drafts document and return one draft.

    Raises:
        ConfigLoadError: If the drafts document or the draft is missing.
    """
    drafts = _read_json(store, drafts_key)
    draft = find_draft(drafts, draft_id)
    if draft is None:
        raise ConfigLoadError(f"draft {draft_id}", "no saved draft with this id")
    return draft


class ReportAssemblyFlow:
    """Runs load -> validate -> merge -> map -> render for one request.

    Example:
        ```python
        flow = ReportAssemblyFlow(store, DocxTemplateRenderer())
        result = flow.run(AssemblyRequest(data_sources=[extracted], template_name="report.docx"))
        ```
    """

    def __init__(
        self,
        store: BaseDocumentStore,
        renderer: BaseTemplateRenderer,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._renderer = renderer
        self._settings = settings or get_settings()
        self._state = FlowState.IDLE
        self._history: list[FlowState] = [FlowState.IDLE]
        self._log = logger.bind(run_id=uuid.uuid4().hex[:12])

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def history(self) -> list[FlowState]:
        """Every state entered so far, in order."""
        return list(self._history)

    def run(self, request: AssemblyRequest) -> AssemblyResult:
        """Assemble one report.

        Args:
            request: Data sources, template reference, draft and images.

        Returns:
            AssemblyResult with the rendered document and warnings.

        Raises:
            ConfigLoadError: If the schema, template, image options or
                requested draft cannot be loaded.
            RenderError: If rendering fails; carries the image count
                reached before the failure.
            RuntimeError: If the flow instance was already used.
        """
        if self._state != FlowState.IDLE:
            raise RuntimeError(f"Flow already ran (state={self._state.value}); create a new one")

        try:
            self._enter(FlowState.LOADING_INPUTS)
            inputs = self._load_inputs(request)
            warnings: list[dict[str, Any]] = [issue.to_dict() for issue in inputs.model.issues]

            self._enter(FlowState.VALIDATING)
            warnings.extend(self._validate(inputs.model, request.data_sources))

            self._enter(FlowState.MERGING)
            sources = [inputs.draft_data, *request.data_sources, inputs.defaults]
            merged = DataMerger(inputs.model).merge(sources)

            self._enter(FlowState.MAPPING)
            mapper = PlaceholderMapper(
                self._settings.extracted_token_prefix,
                self._settings.template_token_prefix,
            )
            text_map = mapper.map_text(merged, inputs.model)
            images = mapper.map_images(inputs.image_options, request.images)

            self._enter(FlowState.RENDERING)
            rendered = self._renderer.render(inputs.template, text_map, images)
        except RenderError as e:
            self._log.error(
                "render_failed",
                stage=e.stage,
                placeholder=e.placeholder,
                images_replaced_count=e.images_replaced_count,
                error=e.message,
            )
            self._enter(FlowState.FAILED)
            raise
        except Exception as e:
            self._log.error("flow_failed", state=self._state.value, error=str(e))
            self._enter(FlowState.FAILED)
            raise

        warnings.extend(err.to_dict() for err in rendered.image_errors)
        self._enter(FlowState.DONE)
        self._log.info(
            "report_assembled",
            replacements_count=rendered.replacements_count,
            images_replaced_count=rendered.images_replaced_count,
            warnings=len(warnings),
        )
        return AssemblyResult(
            document_bytes=rendered.document_bytes,
            replacements_count=rendered.replacements_count,
            images_replaced_count=rendered.images_replaced_count,
            warnings=warnings,
        )

    def _enter(self, state: FlowState) -> None:
        self._log.info("flow_transition", from_state=self._state.value, to_state=state.value)
        self._state = state
        self._history.append(state)

    def _load_inputs(self, request: AssemblyRequest) -> _Inputs:
        settings = self._settings

        model = load_schema(
            self._store,
            settings.schema_document,
            settings.extracted_token_prefix,
            settings.template_token_prefix,
        )

        template = self._load_template(request)

        # Image sizes only matter when images were supplied
        image_options: list[Any] = []
        if request.images:
            raw_options = _read_json(self._store, settings.image_options_document)
            try:
                image_options = parse_image_slots(raw_options)
            except ValueError as e:
                raise ConfigLoadError(settings.image_options_document, str(e)) from e

        defaults = None
        if self._store.exists(settings.defaults_document):
            defaults = _read_json(self._store, settings.defaults_document)

        draft_data = None
        if request.draft_id:
            draft = load_draft(self._store, settings.drafts_document, request.draft_id)
            form_data = draft.get("formData")
            draft_data = form_data.get("data") if isinstance(form_data, dict) else None

        self._log.info(
            "inputs_loaded",
            leaves=model.leaf_count,
            image_slots=len(image_options),
            has_defaults=defaults is not None,
            has_draft=draft_data is not None,
        )
        return _Inputs(
            model=model,
            template=template,
            image_options=image_options,
            defaults=defaults if isinstance(defaults, dict) else None,
            draft_data=draft_data if isinstance(draft_data, dict) else None,
        )

    def _load_template(self, request: AssemblyRequest) -> bytes | str:
        if request.template_data:
            return request.template_data
        if not request.template_name:
            raise ConfigLoadError("template", "no template name or template data given")

        name = request.template_name
        if "." not in name.rsplit("/", 1)[-1]:
            name = f"{name}.docx"
        key = f"{self._settings.templates_prefix}/{name}"
        try:
            return self._store.read_bytes(key)
        except (FileNotFoundError, ValueError) as e:
            raise ConfigLoadError(key, str(e)) from e

    def _validate(self, model: SchemaModel, data_sources: list[Any]) -> list[dict[str, Any]]:
        validator = SchemaValidator.build(model)
        warnings: list[dict[str, Any]] = []
        for idx, source in enumerate(data_sources):
            result = validator.check(source)
            warnings.extend({**w.to_dict(), "source": idx} for w in result.warnings)
        if warnings:
            self._log.warning("validation_warnings", count=len(warnings))
        return warnings


def _read_json(store: BaseDocumentStore, key: str) -> Any:
    try:
        return store.read_json(key)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigLoadError(key, str(e)) from e
