"""
Concurrent writers on one RecordStore.

Mutations on a collection are serialized by a per-collection lock, so
parallel adds / updates must not lose each other's writes. Uses a file-backed
SQLite database so every thread gets its own connection.
"""
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.services.record_store import create_store

THREADS = 8
PER_THREAD = 15


@pytest.fixture()
def file_store(tmp_path):
    return create_store(f"sqlite:///{tmp_path / 'concurrent.db'}", prefix="cc_")


class TestConcurrentWriters:
    def test_parallel_adds_keep_every_record(self, file_store):
        def _worker(n: int) -> list[str]:
            return [file_store.add("progress", {"worker": n, "i": i})["id"] for i in range(PER_THREAD)]

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            ids = [rid for batch in pool.map(_worker, range(THREADS)) for rid in batch]

        records = file_store.get("progress")
        assert len(records) == THREADS * PER_THREAD
        assert len({r["id"] for r in records}) == THREADS * PER_THREAD
        assert sorted(ids) == sorted(r["id"] for r in records)

    def test_parallel_updates_all_applied(self, file_store):
        created = [file_store.add("tasks", {"n": i, "hits": 0}) for i in range(THREADS)]

        def _worker(record: dict) -> None:
            for _ in range(PER_THREAD):
                current = file_store.get_by_id("tasks", record["id"])
                file_store.update("tasks", record["id"], {"hits": current["hits"] + 1})

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            list(pool.map(_worker, created))

        assert [r["hits"] for r in file_store.get("tasks")] == [PER_THREAD] * THREADS

    def test_different_collections_do_not_interfere(self, file_store):
        names = [f"c{n}" for n in range(THREADS)]

        def _worker(name: str) -> None:
            for i in range(PER_THREAD):
                file_store.add(name, {"i": i})

        with ThreadPoolExecutor(max_workers=THREADS) as pool:
            list(pool.map(_worker, names))

        for name in names:
            assert [r["i"] for r in file_store.get(name)] == list(range(PER_THREAD))
