"""
Tests for error handling: the custom exception classes, their codes and
structured payloads, and how the store surfaces them.
"""
import pytest
from app.core.errors import (
    LearnSyncError,
    RecordNotFoundError,
    CorruptCollectionError,
    StorageWriteError,
    InvalidImportError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_record_not_found_error(self):
        err = RecordNotFoundError(collection="tasks", record_id="abc123")
        assert err.code == "RECORD_NOT_FOUND"
        assert "abc123" in err.message
        assert "tasks" in err.message
        d = err.to_dict()
        assert d["code"] == "RECORD_NOT_FOUND"
        assert d["details"] == {"collection": "tasks", "id": "abc123"}

    def test_corrupt_collection_error(self):
        err = CorruptCollectionError(collection="progress", reason="invalid JSON")
        assert err.code == "CORRUPT_COLLECTION"
        assert err.details["reason"] == "invalid JSON"

    def test_storage_write_error(self):
        err = StorageWriteError(collection="users", operation="update")
        assert err.code == "STORAGE_WRITE_FAILED"
        assert err.details == {"collection": "users", "operation": "update"}

    def test_invalid_import_error(self):
        err = InvalidImportError(collection="tasks", reason="payload must be an array")
        assert err.code == "INVALID_IMPORT"
        assert "array" in err.message

    def test_all_derive_from_base(self):
        for cls in (RecordNotFoundError, CorruptCollectionError,
                    StorageWriteError, InvalidImportError):
            assert issubclass(cls, LearnSyncError)

    def test_to_dict_without_details(self):
        err = LearnSyncError("boom")
        d = err.to_dict()
        assert d == {"code": "INTERNAL_ERROR", "message": "boom"}
        # details should not be in dict when empty
        assert "details" not in d

    def test_str_is_message(self):
        err = RecordNotFoundError(collection="tasks", record_id="x")
        assert str(err) == err.message


# ---------------------------------------------------------------------------
# Store-level behaviour
# ---------------------------------------------------------------------------

class TestStoreErrors:
    def test_update_unknown_id_code(self, store):
        with pytest.raises(LearnSyncError) as exc_info:
            store.update("tasks", "nope", {"title": "x"})
        assert exc_info.value.to_dict()["code"] == "RECORD_NOT_FOUND"

    def test_delete_unknown_id_code(self, store):
        with pytest.raises(RecordNotFoundError) as exc_info:
            store.delete("tasks", "nope")
        assert exc_info.value.details["id"] == "nope"

    def test_corrupt_payload_never_propagates(self, store, session_factory):
        from app.models.collection import StoredCollection

        with session_factory() as db:
            db.add(StoredCollection(name="ls_tasks", payload="[{", record_count=0, revision=1))
            db.commit()
        assert store.get("tasks") == []
