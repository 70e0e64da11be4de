"""Helpers for recognising schema drift in database errors."""

from __future__ import annotations

from sqlalchemy import Table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateTable

from .exceptions import TableMissing

_MISSING_TABLE_SQLSTATES = {"42P01"}


def is_missing_table_error(exc: SQLAlchemyError, table_name: str) -> bool:
    """Return ``True`` if ``exc`` indicates that ``table_name`` is missing."""

    orig = getattr(exc, "orig", None)
    if orig is None:
        return False

    sqlstate = getattr(orig, "sqlstate", None)
    if sqlstate in _MISSING_TABLE_SQLSTATES:
        return True

    message = str(orig).lower()
    if table_name.lower() not in message:
        return False

    return "no such table" in message or "does not exist" in message


def create_table_sql(table: Table) -> str:
    """Render the ``CREATE TABLE`` statement an operator needs to run."""

    return str(CreateTable(table)).strip() + ";"


def missing_table_problem(exc: SQLAlchemyError, table: Table) -> TableMissing | None:
    """Translate a missing-table error into a problem carrying the fix-up SQL.

    Returns ``None`` when ``exc`` is some other database failure so the caller
    can re-raise it unchanged.
    """

    if not is_missing_table_error(exc, table.name):
        return None
    return TableMissing(table.name, create_table_sql(table))
