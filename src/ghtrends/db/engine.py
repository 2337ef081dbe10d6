from functools import lru_cache

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine

from ghtrends.config import get_settings


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def make_engine(url: str, **kwargs) -> Engine:
    """Build an engine for *url*; SQLite connections get foreign keys switched on."""
    eng = create_engine(url, pool_pre_ping=True, future=True, **kwargs)
    if eng.dialect.name == "sqlite":
        event.listen(eng, "connect", _enable_sqlite_foreign_keys)
    return eng


@lru_cache()
def engine() -> Engine:
    """Return the singleton SQLAlchemy engine."""
    return make_engine(get_settings().db_url)
