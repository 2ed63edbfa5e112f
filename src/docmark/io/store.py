"""
File-backed document storage: one Markdown file per document.

`DocumentStore` keeps parsed documents in memory by path, serializes
load/save per path, and skips writes whose text would not change.
"""

import logging
import os
import tempfile
import threading
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

import xxhash

from docmark.config import ParserConfig, resolve_config
from docmark.io.ids import generate_id
from docmark.markdown.document import create_empty_document, parse_document, serialize_document
from docmark.schemas import Document

PathLike = Union[str, Path]


def load_raw(path: PathLike) -> str:
    with open(path, encoding="utf-8", newline="") as f:
        return f.read()


def save_raw(path: PathLike, text: str) -> None:
    """Write `text` atomically: to a temporary file next to `path`, then rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as tmp:
            tmp.write(text)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def fingerprint(text: str) -> str:
    return xxhash.xxh64(text.encode("utf-8")).hexdigest()


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def sync_document(document: Document, now: Optional[str] = None) -> Document:
    """Bump `version` and stamp `updatedAt` before a save."""
    metadata = document.metadata
    metadata.version = (metadata.version or 0) + 1
    metadata.updated_at = now or utc_now()
    return document


class DocumentStore:
    """
    Cache of parsed documents keyed by resolved file path.

    >>> store = DocumentStore()  # doctest: +SKIP
    >>> doc = store.create("notes/today.md", title="Today")  # doctest: +SKIP
    >>> doc.chapters[0].paragraphs[0].text = "Remember the milk."  # doctest: +SKIP
    >>> store.save("notes/today.md")  # doctest: +SKIP
    """

    def __init__(
        self,
        config: Optional[ParserConfig] = None,
        id_factory: Callable[[str], str] = generate_id,
    ) -> None:
        self.config = resolve_config(config)
        self.id_factory = id_factory
        self.documents: dict[Path, Document] = {}
        self.fingerprints: dict[Path, str] = {}
        self._locks: dict[Path, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @staticmethod
    def resolve_path(path: PathLike) -> Path:
        if not str(path):
            raise ValueError("A document path is required")
        return Path(path).expanduser().resolve()

    def _lock(self, path: Path) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(path, threading.Lock())

    def load(self, path: PathLike) -> Document:
        """Read and parse `path`, replacing any cached copy."""
        resolved = self.resolve_path(path)
        with self._lock(resolved):
            text = load_raw(resolved)
            document = parse_document(text, self.config)
            if not document.metadata.title:
                document.metadata.title = resolved.stem
            self.documents[resolved] = document
            self.fingerprints[resolved] = fingerprint(text)
        logging.info(f"Loaded {resolved} ({len(document.chapters)} chapters)")
        return document

    def get(self, path: PathLike) -> Document:
        resolved = self.resolve_path(path)
        cached = self.documents.get(resolved)
        if cached is not None:
            return cached
        return self.load(resolved)

    def save(self, path: PathLike) -> bool:
        """
        Write the cached document for `path` back to disk.

        Returns False when the serialized text is unchanged and nothing was
        written; otherwise `version` and `updatedAt` are bumped first.
        """
        resolved = self.resolve_path(path)
        document = self.get(resolved)
        with self._lock(resolved):
            text = serialize_document(document, self.config, self.id_factory)
            if self.fingerprints.get(resolved) == fingerprint(text) and resolved.exists():
                logging.info(f"Skipped {resolved}: unchanged")
                return False
            sync_document(document)
            text = serialize_document(document, self.config, self.id_factory)
            save_raw(resolved, text)
            self.fingerprints[resolved] = fingerprint(text)
        logging.info(f"Saved {resolved} (version {document.metadata.version})")
        return True

    def create(self, path: PathLike, title: Optional[str] = None) -> Document:
        """Create, cache and write a new empty document at `path`."""
        resolved = self.resolve_path(path)
        document = create_empty_document(title or resolved.stem, self.id_factory)
        self.documents[resolved] = document
        self.fingerprints.pop(resolved, None)
        self.save(resolved)
        return document

    def remove(self, path: PathLike) -> None:
        """Forget the cached document; the file itself is left alone."""
        resolved = self.resolve_path(path)
        self.documents.pop(resolved, None)
        self.fingerprints.pop(resolved, None)
