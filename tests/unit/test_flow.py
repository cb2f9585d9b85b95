"""Unit tests for the report assembly flow and the component factory."""

import io

import pytest
from docx import Document

from report_engine.assembly.flow import AssemblyRequest, FlowState, ReportAssemblyFlow, find_draft
from report_engine.core.factory import ComponentFactory
from report_engine.interfaces.errors import ConfigLoadError, RenderError
from report_engine.strategies.template_engine import DocxTemplateRenderer, encode_data_uri


def _body_text(data: bytes) -> list[str]:
    doc = Document(io.BytesIO(data))
    return [p.text for p in doc.paragraphs if p.text]


@pytest.fixture
def template(docx_factory):
    return docx_factory(
        "Address: [Replace_Address]",
        "Owner: [Replace_Owner]",
        "Land: [Replace_LandArea]",
        "Value: [Replace_MarketValue]",
        "{%Image_Front}",
        table=[["[#comparableSales][address]", "[price][/comparableSales]"]],
    )


@pytest.fixture
def configured_store(store, settings, schema_definition, template):
    """Store holding a schema, a template, defaults and image sizes."""
    store.write_json(settings.schema_document, schema_definition)
    store.write_bytes(f"{settings.templates_prefix}/report.docx", template)
    store.write_json(settings.defaults_document, {"Property Details": {"Owner": "Unknown owner"}})
    store.write_json(
        settings.image_options_document,
        [{"placeholder": "{%Image_Front}", "cardName": "Front", "width": 120, "height": 80}],
    )
    return store


@pytest.fixture
def make_flow(configured_store, settings):
    def build():
        return ReportAssemblyFlow(configured_store, DocxTemplateRenderer(), settings)

    return build


@pytest.fixture
def extracted():
    return {
        "Property Details": {"Address": "1 Main St", "Owner": "N/A", "Land Area": "about an acre"},
        "Valuation": {"Market Value": "850,000"},
        "comparableSales": [{"address": "2 High St", "price": 410000}],
    }


# =============================================================================
# Happy Path Tests
# =============================================================================


class TestReportAssemblyFlow:
    """Test suite for ReportAssemblyFlow.run."""

    def test_assembles_report(self, make_flow, extracted, image_factory, to_data_uri):
        """Test a full run: merge with defaults, render text, loops and images."""
        flow = make_flow()
        request = AssemblyRequest(
            data_sources=[extracted],
            template_name="report.docx",
            images={"{%Image_Front}": to_data_uri(image_factory())},
        )

        result = flow.run(request)

        assert _body_text(result.document_bytes) == [
            "Address: 1 Main St",
            "Owner: Unknown owner",
            "Land: about an acre",
            "Value: 850,000",
        ]
        # 4 filled leaves + 1 non-empty loop + 1 image
        assert result.replacements_count == 6
        assert result.images_replaced_count == 1
        assert flow.state == FlowState.DONE
        assert flow.history == [
            FlowState.IDLE,
            FlowState.LOADING_INPUTS,
            FlowState.VALIDATING,
            FlowState.MERGING,
            FlowState.MAPPING,
            FlowState.RENDERING,
            FlowState.DONE,
        ]

    def test_validation_warnings_do_not_stop_the_run(self, make_flow, extracted):
        """Test that invalid fields come back as warnings next to a result."""
        result = make_flow().run(AssemblyRequest(data_sources=[extracted], template_name="report"))

        warnings = [w for w in result.warnings if w["kind"] == "validation_warning"]
        assert warnings == [{
            "kind": "validation_warning",
            "path": "Property Details.Land Area",
            "status": "invalid",
            "message": warnings[0]["message"],
            "source": 0,
        }]
        assert result.document_bytes

    def test_draft_outranks_data_sources(self, make_flow, configured_store, settings, extracted):
        """Test that a saved draft's values win over extracted data."""
        configured_store.write_json(settings.drafts_document, [
            {"draftId": "d-1", "formData": {"data": {"Property Details": {"Owner": "Draft Owner"}}}},
        ])

        result = make_flow().run(
            AssemblyRequest(data_sources=[extracted], template_name="report.docx", draft_id="d-1")
        )

        assert "Owner: Draft Owner" in _body_text(result.document_bytes)

    def test_image_options_only_needed_with_images(self, make_flow, configured_store, settings, extracted):
        """Test that a run without images does not read the image configuration."""
        (configured_store.root / settings.image_options_document).unlink()

        result = make_flow().run(AssemblyRequest(data_sources=[extracted], template_name="report.docx"))

        assert result.images_replaced_count == 0

    def test_inline_template(self, make_flow, extracted, template):
        """Test that template data passed in the request overrides the store."""
        result = make_flow().run(
            AssemblyRequest(
                data_sources=[extracted],
                template_name="does-not-exist.docx",
                template_data=encode_data_uri(template),
            )
        )

        assert "Address: 1 Main St" in _body_text(result.document_bytes)

    def test_image_decode_errors_are_warnings(self, make_flow, extracted, to_data_uri):
        """Test that an undecodable image is reported but the report still renders."""
        result = make_flow().run(
            AssemblyRequest(
                data_sources=[extracted],
                template_name="report.docx",
                images={"{%Image_Front}": to_data_uri(b"not an image")},
            )
        )

        errors = [w for w in result.warnings if w["kind"] == "image_decode_error"]
        assert [e["placeholder"] for e in errors] == ["Image_Front"]
        assert result.images_replaced_count == 0

    def test_flow_runs_once(self, make_flow, extracted):
        """Test that a flow instance cannot be reused."""
        flow = make_flow()
        flow.run(AssemblyRequest(data_sources=[extracted], template_name="report.docx"))

        with pytest.raises(RuntimeError):
            flow.run(AssemblyRequest(data_sources=[extracted], template_name="report.docx"))


# =============================================================================
# Failure Tests
# =============================================================================


class TestFlowFailures:
    """Test suite for fatal failures."""

    def test_missing_schema(self, store, settings, template):
        """Test that a missing schema is a configuration error naming the document."""
        store.write_bytes("templates/report.docx", template)
        flow = ReportAssemblyFlow(store, DocxTemplateRenderer(), settings)

        with pytest.raises(ConfigLoadError) as exc_info:
            flow.run(AssemblyRequest(template_name="report.docx"))

        assert exc_info.value.resource == settings.schema_document
        assert flow.state == FlowState.FAILED

    def test_missing_template(self, make_flow):
        """Test that a missing template is a configuration error naming its key."""
        with pytest.raises(ConfigLoadError) as exc_info:
            make_flow().run(AssemblyRequest(template_name="missing.docx"))

        assert exc_info.value.resource == "templates/missing.docx"

    def test_missing_draft(self, make_flow, configured_store, settings):
        """Test that an unknown draft id is a configuration error."""
        configured_store.write_json(settings.drafts_document, [{"draftId": "d-1", "formData": {}}])

        with pytest.raises(ConfigLoadError, match="d-404"):
            make_flow().run(AssemblyRequest(template_name="report.docx", draft_id="d-404"))

    def test_missing_image_options(self, make_flow, configured_store, settings, image_factory, to_data_uri):
        """Test that images without an image configuration fail loading."""
        (configured_store.root / settings.image_options_document).unlink()

        with pytest.raises(ConfigLoadError) as exc_info:
            make_flow().run(
                AssemblyRequest(
                    template_name="report.docx",
                    images={"{%Image_Front}": to_data_uri(image_factory())},
                )
            )

        assert exc_info.value.resource == settings.image_options_document

    def test_render_error_fails_the_flow(self, make_flow, configured_store, settings, docx_factory):
        """Test that a template/schema mismatch fails with the token name."""
        configured_store.write_bytes("templates/drift.docx", docx_factory("[Replace_Renamed]"))
        flow = make_flow()

        with pytest.raises(RenderError) as exc_info:
            flow.run(AssemblyRequest(template_name="drift.docx"))

        assert exc_info.value.placeholder == "Replace_Renamed"
        assert flow.state == FlowState.FAILED
        assert flow.history[-2] == FlowState.RENDERING


class TestFindDraft:
    """Test suite for draft lookup."""

    def test_find_draft(self):
        drafts = [{"draftId": "a"}, {"draftId": 7}, "junk"]

        assert find_draft(drafts, "7") == {"draftId": 7}
        assert find_draft(drafts, "b") is None
        assert find_draft({"draftId": "a"}, "a") is None


# =============================================================================
# Factory Tests
# =============================================================================


class TestComponentFactory:
    """Test suite for ComponentFactory."""

    def test_builds_configured_components(self, settings):
        """Test that the default settings select the local store and DOCX renderer."""
        factory = ComponentFactory(settings)

        assert isinstance(factory.get_renderer(), DocxTemplateRenderer)
        assert factory.get_document_store().root == settings.storage_root.resolve()
        assert factory.get_renderer() is factory.get_renderer()

    def test_new_flow_per_call(self, settings):
        """Test that flows are never shared between requests."""
        factory = ComponentFactory(settings)

        first, second = factory.get_flow(), factory.get_flow()

        assert first is not second
        assert first.state == FlowState.IDLE

    def test_unknown_strategy(self, settings):
        """Test that unknown strategy names are rejected."""
        factory = ComponentFactory(settings)

        with pytest.raises(ValueError, match="Unknown renderer type"):
            factory.get_renderer("pdf")
        with pytest.raises(ValueError, match="Unknown storage type"):
            factory.get_document_store("s3")
