"""Core configuration components.

The component factory lives in ``report_engine.core.factory``; it builds
assembly flows, so it is not imported here to keep ``core.config`` free of
assembly imports.
"""

from report_engine.core.config import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
