"""
Tests for DDL application, statement splitting and natural-key lookups.
"""

import pytest

from icglr_spine.core.dialect import SQLiteDialect
from icglr_spine.core.idempotency import IdempotencyHelper, LogicalKey
from icglr_spine.core.schema_loader import apply_ddl, get_table_list, split_sql
from icglr_spine.core.sqlite_conn import SqliteConnection

SCRIPT = """\
-- header comment
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS geo (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    latitude REAL NOT NULL,
    longitude REAL NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_geo ON geo (latitude, longitude);
"""


@pytest.fixture()
def db():
    conn = SqliteConnection(":memory:")
    yield conn
    conn.close()


class TestSplitSql:
    def test_statements_and_comments(self):
        statements = split_sql(SCRIPT)
        assert len(statements) == 3
        assert statements[0] == "PRAGMA foreign_keys = ON;"
        assert statements[1].startswith("CREATE TABLE IF NOT EXISTS geo")
        assert statements[1].endswith(");")

    def test_trailing_statement_without_semicolon(self):
        assert split_sql("SELECT 1;\nSELECT 2") == ["SELECT 1;", "SELECT 2"]


class TestApplyDdl:
    def test_creates_tables(self, db):
        assert apply_ddl(db, SCRIPT) == 3
        assert get_table_list(db) == ["geo"]

    def test_applying_twice_is_a_no_op(self, db):
        apply_ddl(db, SCRIPT)
        apply_ddl(db, SCRIPT)
        assert get_table_list(db) == ["geo"]


class TestLogicalKey:
    def test_where_clause_is_null_safe(self):
        key = LogicalKey(country="CD", subnational_division_l1=None)
        assert key.where_clause() == "country IS ? AND subnational_division_l1 IS ?"
        assert key.where_clause(null_safe=False) == "country = ? AND subnational_division_l1 = ?"
        assert key.values() == ("CD", None)

    def test_equality(self):
        assert LogicalKey(a=1, b=2) == LogicalKey(a=1, b=2)
        assert LogicalKey(a=1) != LogicalKey(a=2)
        assert len({LogicalKey(a=1), LogicalKey(a=1)}) == 1


class TestIdempotencyHelper:
    def test_get_or_insert(self, db):
        apply_ddl(db, SCRIPT)
        helper = IdempotencyHelper(db)
        dialect = SQLiteDialect()
        key = LogicalKey(latitude=-2.5, longitude=28.86)

        def insert():
            return db.execute(dialect.insert("geo", ["latitude", "longitude"]), key.values()).lastrowid

        with db.transaction():
            first, inserted = helper.get_or_insert("geo", key, "id", insert)
        with db.transaction():
            second, inserted_again = helper.get_or_insert("geo", key, "id", insert)

        assert inserted is True
        assert inserted_again is False
        assert first == second

    def test_find_missing(self, db):
        apply_ddl(db, SCRIPT)
        assert IdempotencyHelper(db).find("geo", LogicalKey(latitude=0.0, longitude=0.0), "id") is None


class TestDialect:
    def test_statements(self):
        d = SQLiteDialect()
        assert d.insert("t", ["a", "b"]) == "INSERT INTO t (a, b) VALUES (?, ?)"
        assert d.insert_or_ignore("t", ["a"]) == "INSERT OR IGNORE INTO t (a) VALUES (?)"
        assert d.update("t", ["a"], ["id"]) == "UPDATE t SET a = ? WHERE id = ?"
        assert d.delete("t", ["x", "y"]) == "DELETE FROM t WHERE x = ? AND y = ?"
        assert d.select("t", ["a"], "a = ?", ("rowid",)) == "SELECT a FROM t WHERE a = ? ORDER BY rowid"
