"""Document store strategies."""

from report_engine.strategies.storage.local import LocalDocumentStore

__all__ = [
    "LocalDocumentStore",
]
