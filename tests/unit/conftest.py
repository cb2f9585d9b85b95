"""Shared fixtures: in-memory DOCX templates, images and a scratch store."""

import base64
import io

import pytest
from docx import Document
from PIL import Image

from report_engine.core.config import Settings
from report_engine.strategies.storage import LocalDocumentStore


def _save(doc) -> bytes:
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def docx_factory():
    """Build a .docx from paragraphs, optional table rows and header/footer text.

    A paragraph may be a string or a list of strings, one per run.
    """

    def build(*paragraphs, table=None, header=None, footer=None) -> bytes:
        doc = Document()
        for para in paragraphs:
            runs = [para] if isinstance(para, str) else para
            p = doc.add_paragraph()
            for text in runs:
                p.add_run(text)
        if table:
            t = doc.add_table(rows=len(table), cols=len(table[0]))
            for r, row in enumerate(table):
                for c, text in enumerate(row):
                    t.cell(r, c).text = text
        if header is not None:
            doc.sections[0].header.paragraphs[0].text = header
        if footer is not None:
            doc.sections[0].footer.paragraphs[0].text = footer
        return _save(doc)

    return build


@pytest.fixture
def image_factory():
    """Encode a solid-colour image in the given format."""

    def build(width: int = 40, height: int = 20, fmt: str = "PNG", color: str = "red") -> bytes:
        buf = io.BytesIO()
        Image.new("RGB", (width, height), color).save(buf, format=fmt)
        return buf.getvalue()

    return build


@pytest.fixture
def to_data_uri():
    def encode(data: bytes, mime: str = "image/png") -> str:
        return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"

    return encode


@pytest.fixture
def read_docx():
    def read(data: bytes):
        return Document(io.BytesIO(data))

    return read


@pytest.fixture
def settings(tmp_path):
    return Settings(storage_root=tmp_path / "storage")


@pytest.fixture
def store(settings):
    return LocalDocumentStore(settings.storage_root)


@pytest.fixture
def schema_definition():
    """A small valuation schema: two sections, one repeated section."""
    return {
        "Property Details": {
            "Address": {"label": "Address", "placeholder": "[extracted_Address]"},
            "Owner": "[extracted_Owner]",
            "Land Area": {
                "label": "Land Area",
                "placeholder": "[extracted_LandArea]",
                "validation": {"type": "number"},
            },
        },
        "Valuation": {
            "Market Value": {
                "label": "Market Value",
                "placeholder": "[Replace_MarketValue]",
                "type": "number",
                "validation": {"required": True},
            },
        },
        "comparableSales": [
            {"address": "", "price": {"label": "Price", "type": "number"}},
        ],
    }
