import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session

from ghtrends.core import IngestionStore
from ghtrends.db.engine import make_engine


@pytest.fixture()
def db_engine(tmp_path):
    """Fresh on-disk SQLite database per test."""
    eng = make_engine(f"sqlite:///{tmp_path / 'trends.db'}")
    yield eng
    eng.dispose()


@pytest.fixture()
def store(db_engine):
    with IngestionStore(db_engine) as s:
        yield s


@pytest.fixture()
def read_session(db_engine):
    with Session(db_engine) as s:
        yield s


@pytest.fixture()
def insert_log(db_engine):
    """INSERT statements issued through *db_engine* after the fixture is set up."""
    statements: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith("INSERT"):
            statements.append(statement)

    event.listen(db_engine, "before_cursor_execute", _record)
    yield statements
    event.remove(db_engine, "before_cursor_execute", _record)
