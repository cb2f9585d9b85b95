"""FastAPI routers and dependencies."""

from report_engine.api.deps import (
    get_component_factory,
    get_flow,
    get_store,
)
from report_engine.api.reports import router as reports_router

__all__ = [
    "get_component_factory",
    "get_flow",
    "get_store",
    "reports_router",
]
