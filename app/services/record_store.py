"""
Record store: generic CRUD / query engine over named collections.

Each collection is one `collections` row whose payload is a JSON array of
free-form record objects, kept in insertion order. The store owns only
`id`, `createdAt` and `updatedAt`; every other field belongs to the caller.

Persistence contract
--------------------
Every mutation is read whole collection -> mutate in memory -> rewrite whole
collection, committed once. Mutations on the same collection are serialized
by a per-collection lock held across that cycle. Reads take no lock and see
the last committed payload. Separate RecordStore instances (or processes)
pointing at the same database are NOT coordinated: last writer wins.

Failure handling
----------------
- Unreadable payload on read  -> logged, caller's default returned.
- Database error on read      -> logged, caller's default returned.
- Unknown id on update/delete -> RecordNotFoundError, nothing written.
- Database error on write     -> rolled back, StorageWriteError raised.
  No automatic retry.

Public API
----------
get, set, add, get_by_id, find, find_one, update, delete, delete_many, search
clear, keys, collection_stats, export_data, import_data, validate_data,
backfill_field
create_store(database_url) -> RecordStore
"""
from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.core.errors import (
    CorruptCollectionError,
    InvalidImportError,
    RecordNotFoundError,
    StorageWriteError,
)
from app.core.timestamps import format_timestamp, parse_timestamp, utc_now
from app.db.base import init_db, make_engine, make_session_factory
from app.models.collection import StoredCollection
from app.schemas.record import RecordEnvelope

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Predicate = Callable[[Record], bool]

# Keys that never change once assigned
_IMMUTABLE_FIELDS = ("id", "createdAt")


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class CollectionStats:
    total: int
    storage_size: int            # characters in the serialized payload
    last_updated: Optional[str]  # latest updatedAt / createdAt seen


@dataclass
class ValidationIssue:
    index: int
    id: Optional[str]
    field: str
    message: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, rem = divmod(n, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """Millisecond clock in base 36 followed by 12 random hex chars."""
    return _base36(time.time_ns() // 1_000_000) + uuid.uuid4().hex[:12]


def _encode(records: list[Record]) -> str:
    return json.dumps(records, ensure_ascii=False, default=str)


def _as_stored(record: Record) -> Record:
    """The record exactly as it reads back after a write (non-JSON values stringified)."""
    return json.loads(json.dumps(record, ensure_ascii=False, default=str))


def _decode(name: str, payload: Optional[str]) -> list[Record]:
    if payload is None:
        return []
    try:
        data = json.loads(payload)
    except (ValueError, TypeError) as exc:
        raise CorruptCollectionError(name, f"invalid JSON ({exc})") from exc
    if not isinstance(data, list):
        raise CorruptCollectionError(name, f"expected array, got {type(data).__name__}")
    if not all(isinstance(item, dict) for item in data):
        raise CorruptCollectionError(name, "array contains non-object items")
    return data


class _CollectionView:
    """In-memory working copy of a collection with an id -> position index."""

    def __init__(self, records: list[Record]):
        self.records = records
        self.index: dict[str, int] = {}
        for pos, record in enumerate(records):
            rid = record.get("id")
            if isinstance(rid, str):
                self.index.setdefault(rid, pos)

    def position(self, record_id: str) -> Optional[int]:
        return self.index.get(record_id)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class RecordStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        prefix: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._session_factory = session_factory
        self.prefix = settings.STORE_KEY_PREFIX if prefix is None else prefix
        self._clock = clock or utc_now
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # -- plumbing -----------------------------------------------------------

    def _key(self, collection: str) -> str:
        return self.prefix + collection

    def _lock(self, collection: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(collection)
            if lock is None:
                lock = self._locks[collection] = threading.RLock()
            return lock

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def _row(self, db: Session, collection: str) -> Optional[StoredCollection]:
        return (
            db.query(StoredCollection)
            .filter(StoredCollection.name == self._key(collection))
            .first()
        )

    def _load(self, db: Session, collection: str) -> list[Record]:
        """Decode the stored payload. Raises CorruptCollectionError."""
        row = self._row(db, collection)
        return _decode(collection, row.payload if row is not None else None)

    def _load_for_write(self, db: Session, collection: str) -> _CollectionView:
        try:
            records = self._load(db, collection)
        except CorruptCollectionError as exc:
            logger.warning("%s; rewriting from empty", exc.message)
            records = []
        return _CollectionView(records)

    def _write(self, db: Session, collection: str, records: list[Record], operation: str) -> None:
        """Full rewrite of one collection, committed once."""
        try:
            row = self._row(db, collection)
            if row is None:
                row = StoredCollection(name=self._key(collection), revision=0)
                db.add(row)
            row.payload = _encode(records)
            row.record_count = len(records)
            row.revision = (row.revision or 0) + 1
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("write failed: collection=%s operation=%s", collection, operation)
            raise StorageWriteError(collection, operation) from exc

    def _new_id(self, view: _CollectionView) -> str:
        record_id = generate_id()
        while record_id in view.index:
            record_id = generate_id()
        return record_id

    # -- reads --------------------------------------------------------------

    def get(self, collection: str, default: Optional[list[Record]] = None) -> list[Record]:
        """
        Full contents of a collection, or `default` ([] when omitted) if it has
        never been written, its payload cannot be decoded, or the database
        cannot be read. Never raises.
        """
        fallback = [] if default is None else default
        try:
            with self._session_factory() as db:
                row = self._row(db, collection)
                if row is None:
                    return fallback
                return _decode(collection, row.payload)
        except CorruptCollectionError as exc:
            logger.warning("%s; returning default", exc.message)
            return fallback
        except SQLAlchemyError:
            logger.exception("read failed: collection=%s; returning default", collection)
            return fallback

    def get_by_id(self, collection: str, record_id: str) -> Optional[Record]:
        return self.find_one(collection, lambda r: r.get("id") == record_id)

    def find(self, collection: str, predicate: Predicate) -> list[Record]:
        return [r for r in self.get(collection) if predicate(r)]

    def find_one(self, collection: str, predicate: Predicate) -> Optional[Record]:
        for record in self.get(collection):
            if predicate(record):
                return record
        return None

    def search(
        self,
        collection: str,
        term: str,
        fields: Optional[Iterable[str]] = None,
    ) -> list[Record]:
        """
        Case-insensitive substring match over string-valued fields: the listed
        ones, or all of them when `fields` is empty. A blank term returns the
        whole collection.
        """
        records = self.get(collection)
        if not term or not term.strip():
            return records

        needle = term.lower()
        if isinstance(fields, str):
            fields = [fields]
        names = list(fields) if fields else None

        def _matches(record: Record) -> bool:
            values = (record.get(f) for f in names) if names else record.values()
            return any(isinstance(v, str) and needle in v.lower() for v in values)

        return [r for r in records if _matches(r)]

    def keys(self) -> list[str]:
        """Names of every collection under this store's prefix."""
        with self._session_factory() as db:
            names = [
                name for (name,) in db.query(StoredCollection.name)
                .filter(StoredCollection.name.startswith(self.prefix, autoescape=True))
                .order_by(StoredCollection.name)
                .all()
            ]
        return [n[len(self.prefix):] for n in names]

    def collection_stats(self, collection: str) -> CollectionStats:
        records = self.get(collection)
        stamps = [
            parse_timestamp(r.get("updatedAt")) or parse_timestamp(r.get("createdAt"))
            for r in records
        ]
        stamps = [s for s in stamps if s is not None]
        return CollectionStats(
            total=len(records),
            storage_size=len(_encode(records)),
            last_updated=format_timestamp(max(stamps)) if stamps else None,
        )

    def export_data(self, collection: str) -> str:
        return json.dumps(self.get(collection), ensure_ascii=False, indent=2, default=str)

    def validate_data(self, collection: str, required: Iterable[str]) -> list[ValidationIssue]:
        """Report records whose required fields are missing or None."""
        required = list(required)
        issues: list[ValidationIssue] = []
        for index, record in enumerate(self.get(collection)):
            for field_name in required:
                if record.get(field_name) is None:
                    issues.append(ValidationIssue(
                        index=index,
                        id=record.get("id"),
                        field=field_name,
                        message=f"missing required field: {field_name}",
                    ))
        return issues

    # -- writes -------------------------------------------------------------

    def set(self, collection: str, records: Iterable[Mapping[str, Any]]) -> None:
        """Replace the entire collection in a single write."""
        data = [dict(r) for r in records]
        with self._lock(collection), self._session_factory() as db:
            self._write(db, collection, data, "set")

    def add(self, collection: str, fields: Mapping[str, Any]) -> Record:
        """Append a new record with a generated id and createdAt; returns it."""
        with self._lock(collection), self._session_factory() as db:
            view = self._load_for_write(db, collection)
            record = _as_stored({**fields, "id": self._new_id(view), "createdAt": self._now()})
            view.records.append(record)
            self._write(db, collection, view.records, "add")
        return dict(record)

    def update(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> Record:
        """
        Merge `fields` into the record and stamp updatedAt. id and createdAt
        are never overwritten. Raises RecordNotFoundError.
        """
        changes = {k: v for k, v in fields.items() if k not in _IMMUTABLE_FIELDS}
        if len(changes) != len(fields):
            logger.debug("update %s/%s: ignored immutable fields", collection, record_id)

        with self._lock(collection), self._session_factory() as db:
            view = self._load_for_write(db, collection)
            pos = view.position(record_id)
            if pos is None:
                raise RecordNotFoundError(collection, record_id)
            merged = _as_stored({**view.records[pos], **changes, "updatedAt": self._now()})
            view.records[pos] = merged
            self._write(db, collection, view.records, "update")
        return dict(merged)

    def delete(self, collection: str, record_id: str) -> bool:
        """Remove one record. Raises RecordNotFoundError."""
        with self._lock(collection), self._session_factory() as db:
            view = self._load_for_write(db, collection)
            pos = view.position(record_id)
            if pos is None:
                raise RecordNotFoundError(collection, record_id)
            del view.records[pos]
            self._write(db, collection, view.records, "delete")
        return True

    def delete_many(self, collection: str, predicate: Predicate) -> int:
        """Remove every matching record; returns how many were removed."""
        with self._lock(collection), self._session_factory() as db:
            view = self._load_for_write(db, collection)
            kept = [r for r in view.records if not predicate(r)]
            removed = len(view.records) - len(kept)
            if removed:
                self._write(db, collection, kept, "delete_many")
        return removed

    def clear(self, collection: str) -> bool:
        """Drop the collection entirely. False if it was never written."""
        with self._lock(collection), self._session_factory() as db:
            row = self._row(db, collection)
            if row is None:
                return False
            try:
                db.delete(row)
                db.commit()
            except SQLAlchemyError as exc:
                db.rollback()
                logger.exception("clear failed: collection=%s", collection)
                raise StorageWriteError(collection, "clear") from exc
        return True

    def import_data(self, collection: str, json_data: str, merge: bool = False) -> int:
        """
        Load a JSON array of objects, replacing the collection (or appending
        when `merge`). Items without an id get a generated one. Returns the
        number of imported items.
        """
        try:
            data = json.loads(json_data)
        except (ValueError, TypeError) as exc:
            raise InvalidImportError(collection, f"invalid JSON ({exc})") from exc
        if not isinstance(data, list):
            raise InvalidImportError(collection, "payload must be an array")
        if not all(isinstance(item, dict) for item in data):
            raise InvalidImportError(collection, "every item must be an object")

        with self._lock(collection), self._session_factory() as db:
            view = self._load_for_write(db, collection) if merge else _CollectionView([])
            now = self._now()
            for item in data:
                envelope = RecordEnvelope.from_record(item)
                if envelope.id is None:
                    envelope.id = self._new_id(view)
                if envelope.created_at is None:
                    envelope.created_at = now
                view.index.setdefault(envelope.id, len(view.records))
                view.records.append(envelope.to_record())
            self._write(db, collection, view.records, "import")
        return len(data)

    def backfill_field(self, collection: str, field_name: str, default: Any) -> int:
        """
        Best-effort migration: give `field_name` the value `default` on every
        record that lacks it. Writes only when something changed.
        """
        with self._lock(collection), self._session_factory() as db:
            view = self._load_for_write(db, collection)
            changed = 0
            for record in view.records:
                if field_name not in record:
                    record[field_name] = default
                    changed += 1
            if changed:
                self._write(db, collection, view.records, "backfill")
                logger.info("backfilled %s.%s on %d records", collection, field_name, changed)
        return changed


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_store(
    database_url: Optional[str] = None,
    prefix: Optional[str] = None,
) -> RecordStore:
    """Build an engine for `database_url` (settings default), create tables, return a store."""
    engine = make_engine(database_url)
    init_db(engine)
    return RecordStore(make_session_factory(engine), prefix=prefix)
