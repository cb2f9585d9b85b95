"""Document store interface.

Configuration documents, drafts and templates live in an external
key/blob store that is only ever read or written as whole documents.
"""

import json
from abc import ABC, abstractmethod
from typing import Any


class BaseDocumentStore(ABC):
    """Abstract base class for whole-document stores.

    Implementations must not cache: every read returns the stored
    document as it is now. Callers read once per request and reuse the
    in-memory copy.
    """

    @abstractmethod
    def read_bytes(self, key: str) -> bytes:
        """Read a binary document.

        Raises:
            FileNotFoundError: If no document is stored under key.
        """

    @abstractmethod
    def write_bytes(self, key: str, data: bytes) -> None:
        """Replace the binary document stored under key."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        """Return True if a document is stored under key."""

    @abstractmethod
    def list_names(self, prefix: str) -> list[str]:
        """List document names directly under prefix, sorted."""

    def read_json(self, key: str) -> Any:
        """Read and decode a JSON document.

        Raises:
            FileNotFoundError: If no document is stored under key.
            ValueError: If the document is not valid JSON.
        """
        return json.loads(self.read_bytes(key).decode("utf-8"))

    def write_json(self, key: str, obj: Any) -> None:
        """Encode obj as indented JSON and store it under key."""
        self.write_bytes(key, json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8"))
