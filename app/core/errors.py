"""
Custom exception hierarchy for the LearnSync core.

Rule: every error has a machine-readable `code` string so callers
can branch on it without parsing English messages.
"""
from __future__ import annotations

from typing import Any


class LearnSyncError(Exception):
    """Base class for all application-level errors."""
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class RecordNotFoundError(LearnSyncError):
    code = "RECORD_NOT_FOUND"

    def __init__(self, collection: str, record_id: str):
        super().__init__(
            message=f"Record {record_id!r} not found in collection {collection!r}.",
            details={"collection": collection, "id": record_id},
        )


class CorruptCollectionError(LearnSyncError):
    """Persisted payload could not be decoded. Recovered inside RecordStore.get."""
    code = "CORRUPT_COLLECTION"

    def __init__(self, collection: str, reason: str):
        super().__init__(
            message=f"Collection {collection!r} holds an unreadable payload: {reason}",
            details={"collection": collection, "reason": reason},
        )


class StorageWriteError(LearnSyncError):
    code = "STORAGE_WRITE_FAILED"

    def __init__(self, collection: str, operation: str):
        super().__init__(
            message=f"Could not persist collection {collection!r} during {operation}.",
            details={"collection": collection, "operation": operation},
        )


class InvalidImportError(LearnSyncError):
    code = "INVALID_IMPORT"

    def __init__(self, collection: str, reason: str):
        super().__init__(
            message=f"Import into {collection!r} rejected: {reason}",
            details={"collection": collection, "reason": reason},
        )
