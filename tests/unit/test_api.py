"""Unit tests for the report API routes."""

import base64
import io

import pytest
from docx import Document
from fastapi.testclient import TestClient

from report_engine.main import create_app


@pytest.fixture
def client(settings, store, schema_definition, docx_factory):
    store.write_json(settings.schema_document, schema_definition)
    store.write_bytes(
        "templates/report.docx",
        docx_factory("Address: [Replace_Address]", "Owner: [Replace_Owner]", "{%Image_Front}"),
    )
    store.write_bytes("templates/notes.txt", b"not a template")
    store.write_json(settings.drafts_document, [
        {
            "draftId": "d-1",
            "formData": {
                "data": {"Property Details": {"Owner": "Draft Owner", "Address": ""}},
                "selectedCommentary": ["flood"],
            },
        },
    ])
    store.write_json(
        settings.image_options_document,
        [{"placeholder": "{%Image_Front}", "cardName": "Front", "width": 100, "height": 50}],
    )

    with TestClient(create_app(settings)) as test_client:
        yield test_client


def _decode_docx(data_uri: str):
    header, _, payload = data_uri.partition(",")
    assert header.endswith(";base64")
    return Document(io.BytesIO(base64.b64decode(payload)))


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# =============================================================================
# Generate Tests
# =============================================================================


class TestGenerateReport:
    """Test suite for POST /reports/generate."""

    def test_generate(self, client, image_factory, to_data_uri):
        """Test that a stored template renders with data, draft and image."""
        response = client.post("/reports/generate", json={
            "template_name": "report.docx",
            "draft_id": "d-1",
            "data_sources": [{"Property Details": {"Address": "1 Main St", "Owner": "PDF Owner"}}],
            "images": {"{%Image_Front}": to_data_uri(image_factory())},
        })

        assert response.status_code == 200
        body = response.json()
        doc = _decode_docx(body["generated_docx_data_uri"])
        texts = [p.text for p in doc.paragraphs if p.text]
        assert texts == ["Address: 1 Main St", "Owner: Draft Owner"]
        assert body["replacements_count"] == 3
        assert body["images_replaced_count"] == 1

    def test_missing_template(self, client):
        """Test that an unknown template name is a 404 naming the resource."""
        response = client.post("/reports/generate", json={"template_name": "nope.docx"})

        assert response.status_code == 404
        assert response.json()["detail"]["resource"] == "templates/nope.docx"

    def test_unknown_token(self, client, docx_factory, to_data_uri):
        """Test that a token missing from the schema is a 422 naming the token."""
        template = to_data_uri(
            docx_factory("[Replace_Nowhere]"),
            mime="application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        )

        response = client.post("/reports/generate", json={"template_data_uri": template})

        assert response.status_code == 422
        detail = response.json()["detail"]
        assert detail["placeholder"] == "Replace_Nowhere"
        assert detail["stage"] == "text"

    def test_template_required(self, client):
        """Test that a request without any template is rejected."""
        response = client.post("/reports/generate", json={"data_sources": []})

        assert response.status_code == 422
        assert response.json()["detail"] == "Validation error"


# =============================================================================
# Merge Tests
# =============================================================================


class TestMergeDraft:
    """Test suite for POST /reports/merge."""

    def test_merge(self, client, settings, store):
        """Test that draft values win and other form properties are kept."""
        response = client.post("/reports/merge", json={
            "draft_id": "d-1",
            "extracted": {"Property Details": {"Address": "1 Main St", "Owner": "PDF Owner"}},
        })

        assert response.status_code == 200
        form_data = response.json()["form_data"]
        assert form_data["selectedCommentary"] == ["flood"]
        assert form_data["data"]["Property Details"]["Owner"] == "Draft Owner"
        assert form_data["data"]["Property Details"]["Address"] == "1 Main St"
        # Merge results are returned, never saved
        saved = store.read_json(settings.drafts_document)
        assert saved[0]["formData"]["data"]["Property Details"]["Address"] == ""

    def test_missing_draft(self, client):
        response = client.post("/reports/merge", json={"draft_id": "d-404", "extracted": {}})

        assert response.status_code == 404
        assert response.json()["detail"]["resource"] == "draft d-404"


# =============================================================================
# Configuration View Tests
# =============================================================================


class TestConfigurationViews:
    """Test suite for the read-only configuration routes."""

    def test_schema_leaves(self, client):
        """Test that leaves are listed in schema order with their template tokens."""
        response = client.get("/reports/schema/leaves")

        assert response.status_code == 200
        leaves = response.json()
        assert [leaf["token"] for leaf in leaves] == [
            "Replace_Address",
            "Replace_Owner",
            "Replace_LandArea",
            "Replace_MarketValue",
        ]
        assert leaves[0]["path"] == ["Property Details", "Address"]
        assert leaves[3]["kind"] == "number"

    def test_templates(self, client):
        """Test that only .docx files are offered as templates."""
        response = client.get("/reports/templates")

        assert response.status_code == 200
        assert response.json() == {"templates": ["report.docx"]}
