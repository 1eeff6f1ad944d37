"""In-process document store (memory backend and tests)."""

from fieldservice.infrastructure.memory.document_store import InMemoryDocumentStore

__all__ = ["InMemoryDocumentStore"]
