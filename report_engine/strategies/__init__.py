"""Concrete strategy implementations."""

from report_engine.strategies.storage import (
    LocalDocumentStore,
)
from report_engine.strategies.template_engine import (
    DocxTemplateRenderer,
)

__all__ = [
    "LocalDocumentStore",
    "DocxTemplateRenderer",
]
