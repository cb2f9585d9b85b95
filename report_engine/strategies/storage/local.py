"""Filesystem-backed document store.

Stores each document as one file under a root directory. Keys are
relative POSIX paths; every write replaces the whole file.
"""

import logging
from pathlib import Path, PurePosixPath

from report_engine.interfaces.storage import BaseDocumentStore

logger = logging.getLogger(__name__)


class LocalDocumentStore(BaseDocumentStore):
    """Document store rooted at a local directory.

    Example:
        ```python
        store = LocalDocumentStore(Path("./storage"))
        schema = store.read_json("config/json-structure.json")
        ```
    """

    def __init__(self, root: Path) -> None:
        """Initialize the store.

        Args:
            root: Directory holding all documents. Created if missing.
        """
        self._root = Path(root).resolve()
        self._root.mkdir(parents=True, exist_ok=True)
        logger.info(f"LocalDocumentStore initialized: root={self._root}")

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, key: str) -> Path:
        """Map a key onto a path inside the root.

        Raises:
            ValueError: If the key is empty, absolute or escapes the root.
        """
        pure = PurePosixPath(key)
        if not key or pure.is_absolute() or ".." in pure.parts:
            raise ValueError(f"Invalid document key: {key!r}")
        return self._root.joinpath(*pure.parts)

    def read_bytes(self, key: str) -> bytes:
        path = self._resolve(key)
        if not path.is_file():
            raise FileNotFoundError(f"Document not found: {key}")
        return path.read_bytes()

    def write_bytes(self, key: str, data: bytes) -> None:
        path = self._resolve(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        # Replace atomically so readers never observe a half-written document
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
        logger.debug(f"Wrote document {key} ({len(data)} bytes)")

    def exists(self, key: str) -> bool:
        return self._resolve(key).is_file()

    def list_names(self, prefix: str) -> list[str]:
        directory = self._resolve(prefix) if prefix else self._root
        if not directory.is_dir():
            return []
        return sorted(p.name for p in directory.iterdir() if p.is_file())
