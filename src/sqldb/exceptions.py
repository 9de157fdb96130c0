"""
Database-specific exception classes.
"""
from typing import Any

__all__ = [
    'DatabaseError',
    'ConnectionFailure',
    'QueryError',
    'PrepareError',
    'ExecutionError',
    'TypeConversionError',
    'UnbindableValueError',
    'driver_error_code',
]


def driver_error_code(exc: BaseException) -> Any:
    """Extract the driver error code from a (possibly wrapped) DBAPI error.

    SQLAlchemy wraps DBAPI exceptions and keeps the original on `orig`.
    PostgreSQL drivers expose the SQLSTATE, sqlite3 exposes an error name.
    """
    orig = getattr(exc, 'orig', None) or exc
    for attr in ('sqlstate', 'pgcode', 'sqlite_errorname', 'errno'):
        code = getattr(orig, attr, None)
        if code is not None:
            return code
    return None


class DatabaseError(Exception):
    """Base class for all sqldb errors.
    """


class ConnectionFailure(DatabaseError):
    """Error establishing the database connection.
    """


class QueryError(DatabaseError):
    """Error in statement preparation or execution.

    Keeps the driver error code and message along with the statement text.
    """

    def __init__(self, message: str, code: Any = None,
                 statement: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.statement = statement

    def __str__(self) -> str:
        if self.code is None:
            return self.message
        return f'[{self.code}] {self.message}'


class PrepareError(QueryError):
    """The driver refused to prepare the statement.
    """


class ExecutionError(QueryError):
    """The driver failed to execute the statement.
    """


class TypeConversionError(DatabaseError):
    """Error converting types between Python and database.
    """


class UnbindableValueError(TypeConversionError):
    """A composite value was supplied where a scalar bind value is required.
    """

    def __init__(self, key: Any, type_name: str) -> None:
        super().__init__(f"Cannot bind value of type '{type_name}' to placeholder '{key}'")
        self.key = key
        self.type_name = type_name
