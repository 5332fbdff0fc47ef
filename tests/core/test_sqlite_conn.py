"""
Tests for the SQLite connection adapter and connection factory.
"""

import pytest

from icglr_spine.core.connection import _parse_url, create_connection
from icglr_spine.core.errors import InvalidConfigError, TransactionError
from icglr_spine.core.sqlite_conn import SqliteConnection


@pytest.fixture()
def db():
    conn = SqliteConnection(":memory:")
    conn.execute("CREATE TABLE parent (id INTEGER PRIMARY KEY)")
    conn.execute("CREATE TABLE child (id INTEGER PRIMARY KEY, parent_id INTEGER NOT NULL REFERENCES parent(id))")
    yield conn
    conn.close()


def _count(conn, table):
    conn.execute(f"SELECT COUNT(*) FROM {table}")
    return conn.fetchone()[0]


class TestTransaction:
    def test_commit(self, db):
        with db.transaction():
            db.execute("INSERT INTO parent (id) VALUES (1)")
        assert _count(db, "parent") == 1
        assert db.in_transaction is False

    def test_exception_rolls_back_everything(self, db):
        with pytest.raises(RuntimeError):
            with db.transaction():
                db.execute("INSERT INTO parent (id) VALUES (1)")
                db.execute("INSERT INTO child (id, parent_id) VALUES (1, 1)")
                raise RuntimeError("abort")
        assert _count(db, "parent") == 0
        assert _count(db, "child") == 0

    def test_sqlite_error_becomes_transaction_error(self, db):
        with pytest.raises(TransactionError) as exc_info:
            with db.transaction():
                db.execute("INSERT INTO parent (id) VALUES (1)")
                db.execute("INSERT INTO parent (id) VALUES (1)")
        assert exc_info.value.cause is not None
        assert _count(db, "parent") == 0

    def test_foreign_keys_are_enforced(self, db):
        with pytest.raises(TransactionError):
            with db.transaction():
                db.execute("INSERT INTO child (id, parent_id) VALUES (1, 99)")

    def test_nested_blocks_join_the_outer_one(self, db):
        with pytest.raises(RuntimeError):
            with db.transaction():
                with db.transaction():
                    db.execute("INSERT INTO parent (id) VALUES (1)")
                assert db.in_transaction
                raise RuntimeError("abort")
        assert _count(db, "parent") == 0


class TestParseUrl:
    @pytest.mark.parametrize("url", [None, "", "memory", ":memory:", "sqlite://", "sqlite:///:memory:"])
    def test_memory(self, url):
        assert _parse_url(url) == ("memory", ":memory:")

    def test_sqlite_url(self):
        assert _parse_url("sqlite:///data/icglr.db") == ("file", "data/icglr.db")

    def test_bare_path(self):
        assert _parse_url("icglr.db") == ("file", "icglr.db")

    def test_other_schemes_are_rejected(self):
        with pytest.raises(InvalidConfigError):
            _parse_url("postgresql://localhost/icglr")


class TestCreateConnection:
    def test_memory(self):
        conn, info = create_connection("memory")
        assert info.persistent is False
        conn.close()

    def test_file_database_persists(self, tmp_path):
        path = tmp_path / "nested" / "icglr.db"
        conn, info = create_connection(str(path))
        assert info.persistent is True
        assert info.resolved_path == str(path.resolve())
        with conn.transaction():
            conn.execute("CREATE TABLE t (x INTEGER)")
            conn.execute("INSERT INTO t VALUES (1)")
        conn.close()

        reopened, _ = create_connection(f"sqlite:///{path}")
        assert _count(reopened, "t") == 1
        reopened.close()

    def test_relative_path_uses_data_dir(self, tmp_path):
        conn, info = create_connection("icglr.db", data_dir=tmp_path)
        assert info.resolved_path == str((tmp_path / "icglr.db").resolve())
        conn.close()
