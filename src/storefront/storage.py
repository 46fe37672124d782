"""Locked JSON document storage shared by the storefront stores."""

import fcntl
import json
import os
import re
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from .errors import InvalidSchemaVersionError, ValidationError

SCHEMA_VERSION = 1

KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@-]{0,127}$")

# Local data directory within the storefront project
# Can be overridden via STOREFRONT_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DATA_DIR = Path(os.environ.get("STOREFRONT_DATA_DIR", _default_data_dir))


class JsonDocumentStore:
    """
    A directory of JSON documents with exclusive read-modify-write.

    Each document is rewritten whole via temp-file-then-rename, and every
    mutation runs inside ``transaction()``, which holds an flock on a
    per-document lock file. A crash mid-transaction leaves the previous
    document intact.
    """

    def __init__(
        self,
        subdir: str,
        empty: Callable[[], dict[str, Any]],
        data_dir: Path | None = None,
    ):
        """
        Args:
            subdir: Directory under the data dir holding this store's documents.
            empty: Factory for a document that doesn't exist yet.
            data_dir: Override base data directory (for testing).
        """
        self._base_dir = Path(data_dir) if data_dir else DATA_DIR
        self.store_dir = self._base_dir / subdir
        self._empty = empty

    def _ensure_dir(self) -> None:
        """Ensure store directory exists."""
        self.store_dir.mkdir(parents=True, exist_ok=True)

    def _document_path(self, key: str) -> Path:
        if not KEY_RE.match(key):
            raise ValidationError("customer_id", f"unusable storage key '{key}'")
        return self.store_dir / f"{key}.json"

    @contextmanager
    def _lock(self, key: str) -> Iterator[None]:
        """Acquire exclusive lock on a document for read-modify-write operations."""
        self._document_path(key)
        self._ensure_dir()
        lock_path = self.store_dir / f".{key}.lock"
        with open(lock_path, "w") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load_data(self, key: str) -> dict[str, Any]:
        """Load a document from disk."""
        path = self._document_path(key)
        if not path.exists():
            return {"schema_version": SCHEMA_VERSION, **self._empty()}

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        version = data.get("schema_version", 0)
        if version != SCHEMA_VERSION:
            raise InvalidSchemaVersionError(version, SCHEMA_VERSION)
        return data

    def _save_data(self, key: str, data: dict[str, Any]) -> None:
        """Save a document to disk atomically."""
        self._ensure_dir()

        fd, temp_path = tempfile.mkstemp(
            dir=self.store_dir, prefix=f".{key}_", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.write("\n")
            os.replace(temp_path, self._document_path(key))
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def read(self, key: str) -> dict[str, Any]:
        """Read a document without locking (a consistent snapshot, never torn)."""
        return self._load_data(key)

    @contextmanager
    def transaction(self, key: str) -> Iterator[dict[str, Any]]:
        """
        Lock, load, yield the document for mutation, then save it.

        Nothing is written if the block raises.
        """
        with self._lock(key):
            data = self._load_data(key)
            yield data
            self._save_data(key, data)
