"""Storage collaborators: document collections for agents and schedules."""

from storage.documents import (
    Document,
    DocumentStore,
    FileDocumentStore,
    Filter,
    MemoryDocumentStore,
)

__all__ = [
    "Document",
    "DocumentStore",
    "FileDocumentStore",
    "Filter",
    "MemoryDocumentStore",
]
