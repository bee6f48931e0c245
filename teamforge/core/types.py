"""Core data types for the teamforge application."""

from typing import Any, TypedDict


class _FirestoreDocumentBase(TypedDict):
    id: str
    createdAt: Any


class FirestoreDocument(_FirestoreDocumentBase, total=False):
    """Generic Firestore document structure."""

    updatedAt: Any


class BulkResult(TypedDict):
    """Per-item outcome report for a bulk admin operation."""

    succeeded: int
    failed: int
    errors: dict[str, str]
