"""Pytest configuration and fixtures."""

import os

import pytest

from minirecord import Database, DatabaseConfig


@pytest.fixture
def database():
    """Create an in-memory SQLite database."""
    db = Database(DatabaseConfig()).open()
    yield db
    db.close()


@pytest.fixture
def file_database(tmp_path):
    """Create a SQLite database file in a temporary directory.

    Set MINIRECORD_TEST_DATABASE to use a specific file instead.
    """
    path = os.environ.get("MINIRECORD_TEST_DATABASE") or str(tmp_path / "test.db")
    db = Database(DatabaseConfig(path=path)).open()
    yield db
    db.close()


class StatementSpy:
    """Records every statement sent through Database.execute."""

    def __init__(self, db: Database) -> None:
        self.statements: list[tuple[str, list]] = []
        self._execute = db.execute

    def __call__(self, sql, params=None):
        self.statements.append((sql, list(params or [])))
        return self._execute(sql, params)

    @property
    def selects(self) -> list[str]:
        return [sql for sql, _ in self.statements if sql.startswith("SELECT")]

    def reset(self) -> None:
        self.statements.clear()


@pytest.fixture
def spy(monkeypatch):
    """Factory that starts counting statements on a database."""

    def attach(db: Database) -> StatementSpy:
        recorder = StatementSpy(db)
        monkeypatch.setattr(db, "execute", recorder)
        return recorder

    return attach
