"""Template engine strategies.

Implements two-pass (images, then text) rendering of Word templates.
"""

from report_engine.strategies.template_engine.archive import (
    DOCX_MIME,
    decode_container,
    encode_data_uri,
)
from report_engine.strategies.template_engine.renderer import DocxTemplateRenderer

__all__ = [
    "DOCX_MIME",
    "DocxTemplateRenderer",
    "decode_container",
    "encode_data_uri",
]
