"""Tests for the SQLite gateway."""

import logging

import pytest

import minirecord
from minirecord import Base, Database, DatabaseConfig, DatabaseError, Mapped, QueryResult, create_engine


class Ledger(Base):
    entry: Mapped[str | None]
    amount: Mapped[int | None]


def test_open_and_close():
    db = Database()
    assert not db.is_open
    assert db.open() is db
    assert db.is_open
    assert repr(db) == "<Database sqlite::memory: open>"
    db.close()
    db.close()
    assert not db.is_open


def test_accepts_url_string(tmp_path):
    path = tmp_path / "gateway.db"
    with Database(f"sqlite:///{path}") as db:
        assert db.config.path == str(path)
        assert db.execute("SELECT 1").scalar() == 1
    assert not db.is_open
    assert path.exists()


def test_execute_returns_rows(database):
    database.execute("CREATE TABLE pairs (a INTEGER, b TEXT)")
    database.execute("INSERT INTO pairs VALUES (?, ?)", [1, "one"])
    database.execute("INSERT INTO pairs VALUES (?, ?)", (2, "two"))

    result = database.execute("SELECT a, b FROM pairs ORDER BY a")
    assert isinstance(result, QueryResult)
    assert result.columns == ["a", "b"]
    assert result.rows == [(1, "one"), (2, "two")]
    assert len(result) == 2
    assert result.first() == {"a": 1, "b": "one"}
    assert result.all()[1] == {"a": 2, "b": "two"}
    assert list(result) == result.all()
    assert result.scalar() == 1
    assert not result.is_empty()


def test_empty_result(database):
    result = database.execute("SELECT 1 WHERE 0")
    assert result.is_empty()
    assert result.first() is None
    assert result.scalar() is None


def test_last_insert_id(database):
    database.execute("CREATE TABLE things (id INTEGER PRIMARY KEY, name TEXT)")
    result = database.execute("INSERT INTO things (name) VALUES (?)", ["a"])
    assert result.lastrowid == 1
    assert database.last_insert_id() == 1


def test_sql_errors_are_wrapped(database):
    with pytest.raises(DatabaseError, match=r"\[SQL: SELECT \* FROM nowhere\]"):
        database.execute("SELECT * FROM nowhere")


def test_execute_on_closed_database():
    with pytest.raises(DatabaseError, match="not open"):
        Database().execute("SELECT 1")


def test_open_failure(tmp_path):
    db = Database(DatabaseConfig(path=str(tmp_path / "missing" / "dir" / "x.db")))
    with pytest.raises(DatabaseError, match="Could not open"):
        db.open()


def test_bind_and_create_tables(database):
    database.bind(Ledger).create_tables(Ledger)
    assert Ledger.__database__ is database
    Ledger.create(entry="coffee", amount=3)
    assert Ledger.count() == 1


def test_create_tables_if_not_exists(database):
    database.create_tables(Ledger)
    with pytest.raises(DatabaseError, match="already exists"):
        database.create_tables(Ledger)
    database.create_tables(Ledger, if_not_exists=True)


def test_statements_are_logged(database, caplog):
    with caplog.at_level(logging.DEBUG, logger="minirecord.database"):
        database.execute("SELECT ?", [5])
    assert "SELECT ? [5]" in caplog.text


def test_echo_logs_at_info(caplog):
    with Database(DatabaseConfig(echo=True)) as db:
        with caplog.at_level(logging.INFO, logger="minirecord.database"):
            db.execute("SELECT 1")
    assert any(
        record.levelno == logging.INFO and record.getMessage() == "SELECT 1 []"
        for record in caplog.records
    )


def test_create_engine():
    db = create_engine("sqlite::memory:", echo=True)
    try:
        assert db.is_open
        assert db.config.echo is True
    finally:
        db.close()


def test_version():
    assert minirecord.__version__ == "0.1.0"
