"""
Lazy database connections with uniform result shapes, for PostgreSQL and SQLite.

All query operations can be called either as:
- Module functions: db.fetch_all(cn, sql, values)
- Connection methods: cn.fetch_all(sql, values)

The module functions are facades over the Connection methods.
"""
__version__ = '0.1.0'

from typing import Any

from sqldb.binder import ParamType
from sqldb.connection import Connection, connect
from sqldb.exceptions import ConnectionFailure, DatabaseError, ExecutionError
from sqldb.exceptions import PrepareError, QueryError, TypeConversionError
from sqldb.exceptions import UnbindableValueError
from sqldb.options import DatabaseOptions
from sqldb.profiler import BaseProfiler, ProfileEntry, Profiler
from sqldb.shapes import GroupStyle, NoResult
from sqldb.stream import RowStream


def execute(cn: Connection, sql: str) -> int:
    """Execute a statement without bound values and return affected row count.
    """
    return cn.execute(sql)


def fetch_affected(cn: Connection, sql: str, values: Any = None) -> int:
    """Execute a statement and return affected row count.
    """
    return cn.fetch_affected(sql, values)


delete = fetch_affected
insert = fetch_affected
update = fetch_affected


def fetch_all(cn: Connection, sql: str, values: Any = None,
              transform: Any = None) -> list[Any]:
    """Execute a query and return all rows as dictionaries.
    """
    return cn.fetch_all(sql, values, transform)


def fetch_one(cn: Connection, sql: str, values: Any = None,
              transform: Any = None) -> Any:
    """Execute a query and return the first row, or NoResult.
    """
    return cn.fetch_one(sql, values, transform)


def fetch_assoc(cn: Connection, sql: str, values: Any = None,
                transform: Any = None) -> dict[Any, Any]:
    """Execute a query and return rows keyed on their first column.
    """
    return cn.fetch_assoc(sql, values, transform)


def fetch_pairs(cn: Connection, sql: str, values: Any = None,
                transform: Any = None) -> dict[Any, Any]:
    """Execute a query and return first column to second column pairs.
    """
    return cn.fetch_pairs(sql, values, transform)


def fetch_col(cn: Connection, sql: str, values: Any = None,
              transform: Any = None) -> list[Any]:
    """Execute a query and return the first column as a list.
    """
    return cn.fetch_col(sql, values, transform)


def fetch_value(cn: Connection, sql: str, values: Any = None,
                transform: Any = None) -> Any:
    """Execute a query and return a single scalar value, or NoResult.
    """
    return cn.fetch_value(sql, values, transform)


def fetch_group(cn: Connection, sql: str, values: Any = None,
                style: GroupStyle = GroupStyle.COLUMN,
                transform: Any = None) -> dict[Any, list[Any]]:
    """Execute a query and return rows grouped on their first column.
    """
    return cn.fetch_group(sql, values, style, transform)


def fetch_object(cn: Connection, sql: str, values: Any = None,
                 factory: Any = None) -> Any:
    """Execute a query and return the first row as a record, or NoResult.
    """
    if factory is None:
        return cn.fetch_object(sql, values)
    return cn.fetch_object(sql, values, factory)


def fetch_objects(cn: Connection, sql: str, values: Any = None,
                  factory: Any = None) -> list[Any]:
    """Execute a query and return all rows as records.
    """
    if factory is None:
        return cn.fetch_objects(sql, values)
    return cn.fetch_objects(sql, values, factory)


def yield_all(cn: Connection, sql: str, values: Any = None,
              transform: Any = None) -> RowStream:
    """Execute a query and lazily yield rows as dictionaries.
    """
    return cn.yield_all(sql, values, transform)


def quote(cn: Connection, value: Any, type_hint: ParamType | None = None) -> str:
    """Quote a value or a sequence of values for use in SQL text.
    """
    return cn.quote(value, type_hint)


def last_insert_id(cn: Connection, name: str | None = None) -> int:
    """Return the last inserted autoincrement value.
    """
    return cn.last_insert_id(name)


__all__ = [
    # Connection
    'connect',
    'Connection',
    'DatabaseOptions',
    'RowStream',
    # Profiling
    'BaseProfiler',
    'Profiler',
    'ProfileEntry',
    # Shapes
    'NoResult',
    'GroupStyle',
    'ParamType',
    # Operations
    'execute',
    'fetch_affected',
    'delete',
    'insert',
    'update',
    'fetch_all',
    'fetch_one',
    'fetch_assoc',
    'fetch_pairs',
    'fetch_col',
    'fetch_value',
    'fetch_group',
    'fetch_object',
    'fetch_objects',
    'yield_all',
    'quote',
    'last_insert_id',
    # Exceptions
    'DatabaseError',
    'ConnectionFailure',
    'QueryError',
    'PrepareError',
    'ExecutionError',
    'TypeConversionError',
    'UnbindableValueError',
]
