"""
Concurrent writers on one database file.

Each thread opens its own connection, so the storage engine's writer lock
(``BEGIN IMMEDIATE``) is what serializes them; shared entities racing on the
same natural key must still be inserted exactly once.
"""

import threading

from icglr_spine.core.schema_loader import apply_ddl
from icglr_spine.core.sqlite_conn import SqliteConnection
from icglr_spine.mapping.mapper import Mapper

WRITERS = 8


class TestConcurrentWriters:
    def test_shared_entities_are_inserted_once(self, tmp_path, model, mine_site, rows):
        path = str(tmp_path / "icglr.db")
        setup = SqliteConnection(path, wal=True)
        apply_ddl(setup, model.ddl())
        setup.close()

        barrier = threading.Barrier(WRITERS)
        errors: list[Exception] = []

        def write(index: int) -> None:
            conn = SqliteConnection(path, wal=True, timeout=30.0)
            try:
                mapper = Mapper(conn, model)
                barrier.wait()
                mapper.upsert("mine_sites", mine_site(f"CD-SK-{index:04d}"))
            except Exception as exc:
                errors.append(exc)
            finally:
                conn.close()

        threads = [threading.Thread(target=write, args=(i,)) for i in range(WRITERS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        check = SqliteConnection(path)
        try:
            assert rows(check, "mine_sites") == WRITERS
            # Bukavu (owner) and Kamituga (location)
            assert rows(check, "addresses") == 2
            assert rows(check, "business_entities") == 1
            assert rows(check, "mine_site_locations") == 1
            assert rows(check, "mine_site_mineral") == 2 * WRITERS
        finally:
            check.close()

    def test_one_connection_shared_by_threads(self, conn, model, mine_site, rows):
        mapper = Mapper(conn, model)
        threads = [
            threading.Thread(target=mapper.upsert, args=("mine_sites", mine_site(f"CD-SK-{i:04d}")))
            for i in range(WRITERS)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert rows(conn, "mine_sites") == WRITERS
        assert rows(conn, "addresses") == 2
