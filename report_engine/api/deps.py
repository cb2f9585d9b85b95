"""FastAPI dependencies for dependency injection.

Provides reusable dependencies for routes including:
- The component factory bound to the app's settings
- The document store
- A fresh assembly flow per request
"""

import logging

from fastapi import Depends, Request

from report_engine.assembly.flow import ReportAssemblyFlow
from report_engine.core.factory import ComponentFactory
from report_engine.interfaces.storage import BaseDocumentStore

logger = logging.getLogger(__name__)


def get_component_factory(request: Request) -> ComponentFactory:
    """Dependency returning the factory created with the app.

    Args:
        request: The incoming request.

    Returns:
        The app-wide ComponentFactory.
    """
    return request.app.state.factory


def get_store(
    factory: ComponentFactory = Depends(get_component_factory),
) -> BaseDocumentStore:
    """Dependency for the configured document store."""
    return factory.get_document_store()


def get_flow(
    factory: ComponentFactory = Depends(get_component_factory),
) -> ReportAssemblyFlow:
    """Dependency building one assembly flow for this request."""
    return factory.get_flow()
