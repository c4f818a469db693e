"""Document store collaborator for agent records and schedule entries."""

from __future__ import annotations

import copy
import json
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

import structlog

from core.ids import new_document_id

logger = structlog.get_logger()

Document = dict[str, Any]
Filter = Callable[[Document], bool]


def _matches(doc: Document, where: Filter | None) -> bool:
    return where is None or bool(where(doc))


def _set_path(doc: Document, dotted: str, value: Any) -> None:
    """Set ``a.b.c`` inside nested dicts, creating levels as needed."""
    keys = dotted.split(".")
    target = doc
    for key in keys[:-1]:
        nested = target.get(key)
        if not isinstance(nested, dict):
            nested = {}
            target[key] = nested
        target = nested
    target[keys[-1]] = value


class DocumentStore(ABC):
    """Abstract collection of JSON-like documents keyed by ``id``.

    Filters are predicates over a document. Documents handed out are copies,
    so callers never mutate stored state in place.
    """

    @abstractmethod
    def insert_one(self, doc: Document) -> str:
        """Insert a document, assigning an id if it has none. Returns the id."""

    @abstractmethod
    def get(self, doc_id: str) -> Document | None:
        """Get one document by id."""

    @abstractmethod
    def find(self, where: Filter | None = None) -> list[Document]:
        """All documents matching the filter, in insertion order."""

    @abstractmethod
    def count(self, where: Filter | None = None) -> int:
        """Number of documents matching the filter."""

    @abstractmethod
    def delete_many(self, where: Filter) -> int:
        """Delete matching documents in one step. Returns the number deleted."""

    @abstractmethod
    def update_one(self, doc_id: str, patch: Document) -> bool:
        """Apply a patch of (dotted) keys to one document. False if absent."""

    @abstractmethod
    def replace_one(self, doc_id: str, doc: Document) -> bool:
        """Replace one document wholesale. False if absent."""

    @abstractmethod
    def update_where(self, doc_id: str, expected: Filter, patch: Document) -> bool:
        """Compare-and-set: patch only if the stored document still matches."""


class MemoryDocumentStore(DocumentStore):
    """In-process document store.

    Every operation holds one lock, so a filter passed to ``delete_many`` is
    evaluated against the state at deletion time, not a stale read.
    """

    def __init__(self, docs: Iterable[Document] | None = None) -> None:
        self._docs: dict[str, Document] = {}
        self._lock = threading.RLock()
        for doc in docs or []:
            self.insert_one(doc)

    def _persist(self) -> None:
        """Hook for durable subclasses; called after every write."""

    def insert_one(self, doc: Document) -> str:
        with self._lock:
            stored = copy.deepcopy(doc)
            doc_id = str(stored.get("id") or new_document_id())
            if doc_id in self._docs:
                raise KeyError(f"Duplicate document id: {doc_id}")
            stored["id"] = doc_id
            self._docs[doc_id] = stored
            self._persist()
            return doc_id

    def get(self, doc_id: str) -> Document | None:
        with self._lock:
            doc = self._docs.get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find(self, where: Filter | None = None) -> list[Document]:
        with self._lock:
            return [
                copy.deepcopy(doc) for doc in self._docs.values() if _matches(doc, where)
            ]

    def count(self, where: Filter | None = None) -> int:
        with self._lock:
            return sum(1 for doc in self._docs.values() if _matches(doc, where))

    def delete_many(self, where: Filter) -> int:
        with self._lock:
            doomed = [doc_id for doc_id, doc in self._docs.items() if where(doc)]
            for doc_id in doomed:
                del self._docs[doc_id]
            if doomed:
                self._persist()
            return len(doomed)

    def update_one(self, doc_id: str, patch: Document) -> bool:
        with self._lock:
            doc = self._docs.get(doc_id)
            if doc is None:
                return False
            for key, value in patch.items():
                if key == "id":
                    continue
                _set_path(doc, key, copy.deepcopy(value))
            self._persist()
            return True

    def update_where(self, doc_id: str, expected: Filter, patch: Document) -> bool:
        with self._lock:
            doc = self._docs.get(doc_id)
            if doc is None or not expected(doc):
                return False
            return self.update_one(doc_id, patch)

    def replace_one(self, doc_id: str, doc: Document) -> bool:
        with self._lock:
            if doc_id not in self._docs:
                return False
            stored = copy.deepcopy(doc)
            stored["id"] = doc_id
            self._docs[doc_id] = stored
            self._persist()
            return True


class FileDocumentStore(MemoryDocumentStore):
    """Document store persisted to a single JSON file.

    Structure:
        base_dir/
            {collection}.json   (list of documents)
    """

    def __init__(self, base_dir: str | Path, collection: str) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.path = self.base_dir / f"{collection}.json"
        self._loading = True
        super().__init__(self._read())
        self._loading = False

    def _read(self) -> list[Document]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        logger.debug("Loaded document collection", path=str(self.path), count=len(data))
        return data

    def _persist(self) -> None:
        if self._loading:
            return
        tmp = self.path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(list(self._docs.values()), f, indent=2, default=str)
        tmp.replace(self.path)
