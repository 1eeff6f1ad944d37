"""Firestore integration (REST API + google-auth)."""

from fieldservice.infrastructure.firebase.client import (
    close_firebase,
    get_firestore_client,
    init_firebase,
)
from fieldservice.infrastructure.firebase.document_store import FirestoreDocumentStore

__all__ = [
    "FirestoreDocumentStore",
    "close_firebase",
    "get_firestore_client",
    "init_firebase",
]
