"""Create the trending-snapshot tables one by one.

Each table is attempted independently: a table that already exists counts as
success, any other failure is logged and the remaining tables are still tried.
"""
import logging

from sqlalchemy import Table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.schema import CreateTable

from .models import ALL_TABLES

logger = logging.getLogger(__name__)

# SQLSTATE codes for "table already exists": PostgreSQL, Derby
_TABLE_EXISTS_SQLSTATES = {"42P07", "X0Y32"}
# MySQL / MariaDB ER_TABLE_EXISTS_ERROR
_MYSQL_TABLE_EXISTS = 1050


def is_table_exists_error(exc: SQLAlchemyError) -> bool:
    """True if *exc* is the engine's way of saying the table is already there."""
    if not isinstance(exc, DBAPIError):
        return False
    orig = exc.orig
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate in _TABLE_EXISTS_SQLSTATES:
        return True
    args = getattr(orig, "args", ())
    if args and args[0] == _MYSQL_TABLE_EXISTS:
        return True
    return "already exists" in str(orig).lower()


def _create_table(conn: Connection, table: Table) -> bool:
    ddl = str(CreateTable(table).compile(dialect=conn.dialect)).strip()
    try:
        conn.execute(CreateTable(table))
        conn.commit()
    except SQLAlchemyError as e:
        conn.rollback()
        if is_table_exists_error(e):
            logger.info(f"Table already exists: {table.name}")
            logger.debug(f"Skipped DDL:\n{ddl}")
            return True
        logger.error(f"Error creating table {table.name}:\n{ddl}", exc_info=True)
        return False
    logger.info(f"Created table {table.name}")
    return True


def ensure_schema(conn: Connection | None) -> list[str]:
    """Create every missing table and return the names of those that could not be created."""
    if conn is None:
        logger.error("No database connection; schema not created")
        return [t.name for t in ALL_TABLES]
    return [t.name for t in ALL_TABLES if not _create_table(conn, t)]
