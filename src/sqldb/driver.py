"""
Driver capability consumed by the connection facade.

`Driver` is the abstract capability: prepare, bind, execute, fetch,
quote, transactions and attributes on a single open connection.
`SqlAlchemyDriver` implements it on top of a SQLAlchemy 2.x Connection,
using `text()` clauses with typed bind parameters.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Self

import sqlalchemy as sa
from sqldb.binder import BoundParameter, ParamType, classify_value
from sqldb.exceptions import ExecutionError, PrepareError, driver_error_code
from sqldb.sql import escape_literal_colons, normalize_key, placeholder_names
from sqldb.sql import standardize_placeholders
from sqldb.strategy import get_strategy

__all__ = [
    'RowShape',
    'Statement',
    'Driver',
    'SqlAlchemyDriver',
]

logger = logging.getLogger(__name__)

_SA_TYPES: dict[ParamType, Any] = {
    ParamType.INTEGER: sa.Integer(),
    ParamType.BOOLEAN: sa.Boolean(),
    ParamType.NULL: sa.types.NullType(),
    ParamType.TEXT: None,
}


class RowShape(Enum):
    """How fetch_next() returns a row."""
    MAPPING = 'mapping'    # {column name: value}
    TUPLE = 'tuple'        # (value, value, ...)


class Statement:
    """A prepared statement, its bound parameters and, once executed, its result.
    """

    def __init__(self, sql: str, placeholders: tuple[str, ...] = (),
                 options: dict[str, Any] | None = None, clause: Any = None) -> None:
        self.sql = sql
        self.placeholders = placeholders
        self.options = options or {}
        self.clause = clause
        self.params: dict[str, BoundParameter] = {}
        self.result: Any = None
        self.columns: list[str] = []
        self.row_count = -1
        self.released = False

    def __repr__(self) -> str:
        return f'<Statement {self.sql[:60]!r} params={list(self.params)}>'

    @property
    def bound_values(self) -> dict[str, Any]:
        """Bound values by placeholder name."""
        return {key: param.value for key, param in self.params.items()}


class Driver(ABC):
    """Single-connection database driver capability.
    """

    @abstractmethod
    def prepare(self, sql: str, options: dict[str, Any] | None = None) -> Statement:
        """Prepare a statement. Raises PrepareError."""

    @abstractmethod
    def bind_typed(self, statement: Statement, key: Any, value: Any,
                   param_type: ParamType) -> bool:
        """Bind a value to a placeholder with an explicit type."""

    @abstractmethod
    def execute(self, statement: Statement) -> bool:
        """Execute a prepared statement. Raises ExecutionError."""

    @abstractmethod
    def fetch_next(self, statement: Statement,
                   shape: RowShape = RowShape.MAPPING) -> dict[str, Any] | tuple | None:
        """Return the next row, or None once the result is exhausted."""

    @abstractmethod
    def row_count(self, statement: Statement) -> int:
        """Rows affected by the last execution of the statement."""

    @abstractmethod
    def release(self, statement: Statement) -> None:
        """Release the statement's cursor. Safe to call more than once."""

    @abstractmethod
    def quote(self, value: Any, type_hint: ParamType | None = None) -> str:
        """Quote a scalar as an SQL literal."""

    @abstractmethod
    def last_insert_id(self, name: str | None = None) -> int:
        """Last inserted autoincrement value."""

    @abstractmethod
    def begin(self) -> bool:
        """Begin a transaction."""

    @abstractmethod
    def commit(self) -> bool:
        """Commit the active transaction."""

    @abstractmethod
    def rollback(self) -> bool:
        """Roll back the active transaction."""

    @abstractmethod
    def in_transaction(self) -> bool:
        """Is an explicit transaction active?"""

    @abstractmethod
    def get_attribute(self, name: str) -> Any:
        """Read a connection attribute."""

    @abstractmethod
    def set_attribute(self, name: str, value: Any) -> bool:
        """Set a connection attribute."""

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""


class SqlAlchemyDriver(Driver):
    """Driver over a SQLAlchemy Connection.

    Outside of an explicit transaction the driver autocommits: statements that
    return no rows are committed right after execution, row-returning
    statements when they are released.
    """

    def __init__(self, connection: sa.engine.Connection) -> None:
        self.connection = connection
        self._transaction: sa.engine.Transaction | None = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def dialect(self) -> str:
        """Return the dialect name ('postgresql' or 'sqlite')."""
        return self.connection.dialect.name

    def prepare(self, sql: str, options: dict[str, Any] | None = None) -> Statement:
        try:
            standardized = standardize_placeholders(sql)
            clause = sa.text(escape_literal_colons(standardized))
        except PrepareError:
            raise
        except sa.exc.ArgumentError as err:
            raise PrepareError(str(err), statement=sql) from err
        return Statement(standardized, placeholder_names(standardized), options, clause)

    def bind_typed(self, statement: Statement, key: Any, value: Any,
                   param_type: ParamType) -> bool:
        name = normalize_key(key)
        statement.params[name] = BoundParameter(name, value, param_type)
        return True

    def execute(self, statement: Statement) -> bool:
        if statement.result is not None:
            self.release(statement)

        params = []
        for name, param in statement.params.items():
            if name not in statement.placeholders:
                logger.debug(f'Skipping value for {name!r}: no such placeholder')
                continue
            params.append(sa.bindparam(name, param.value, type_=_SA_TYPES[param.type]))
        clause = statement.clause.bindparams(*params) if params else statement.clause

        try:
            result = self.connection.execute(clause, execution_options=statement.options)
        except sa.exc.DBAPIError as err:
            logger.error(f'Error with statement:\nSQL:\n{statement.sql}\nvalues: {statement.bound_values}')
            self._autorollback()
            raise ExecutionError(str(err.orig), code=driver_error_code(err),
                                 statement=statement.sql) from err
        except sa.exc.StatementError as err:
            self._autorollback()
            raise ExecutionError(str(err.orig or err), statement=statement.sql) from err

        statement.result = result
        statement.released = False
        statement.row_count = result.rowcount
        statement.columns = list(result.keys()) if result.returns_rows else []

        if not result.returns_rows:
            self._autocommit()
        return True

    def fetch_next(self, statement: Statement,
                   shape: RowShape = RowShape.MAPPING) -> dict[str, Any] | tuple | None:
        result = statement.result
        if result is None or statement.released or not result.returns_rows:
            return None
        try:
            row = result.fetchone()
        except sa.exc.DBAPIError as err:
            raise ExecutionError(str(err.orig), code=driver_error_code(err),
                                 statement=statement.sql) from err
        if row is None:
            return None
        if shape is RowShape.TUPLE:
            return tuple(row)
        return dict(zip(statement.columns, row))

    def row_count(self, statement: Statement) -> int:
        return statement.row_count

    def release(self, statement: Statement) -> None:
        if statement.released:
            return
        statement.released = True
        if statement.result is not None:
            statement.result.close()
        self._autocommit()

    def _autocommit(self) -> None:
        """Commit the implicit transaction unless an explicit one is active."""
        if self._transaction is not None or self.connection.closed:
            return
        if self.connection.in_transaction():
            try:
                self.connection.commit()
            except sa.exc.DBAPIError as err:
                raise ExecutionError(str(err.orig), code=driver_error_code(err)) from err

    def _autorollback(self) -> None:
        """Discard the implicit transaction after a failed statement."""
        if self._transaction is not None or self.connection.closed:
            return
        if self.connection.in_transaction():
            self.connection.rollback()

    def quote(self, value: Any, type_hint: ParamType | None = None) -> str:
        if type_hint is None:
            type_hint = classify_value(None, value)
        if value is None or type_hint is ParamType.NULL:
            return 'NULL'
        if isinstance(value, bytes | bytearray) and type_hint is ParamType.TEXT:
            return get_strategy(self.dialect).quote_binary(bytes(value))
        if type_hint is ParamType.TEXT:
            type_, value = sa.String(), value if isinstance(value, str) else str(value)
        else:
            type_ = _SA_TYPES[type_hint]
        compiled = sa.literal(value, type_).compile(
            dialect=self.connection.dialect,
            compile_kwargs={'literal_binds': True},
        )
        return str(compiled)

    def last_insert_id(self, name: str | None = None) -> int:
        strategy = get_strategy(self.dialect)
        try:
            value = strategy.last_insert_id(self.connection, name)
        except sa.exc.DBAPIError as err:
            self._autorollback()
            raise ExecutionError(str(err.orig), code=driver_error_code(err)) from err
        self._autocommit()
        return value

    def begin(self) -> bool:
        if self._transaction is not None:
            raise ExecutionError('There is already an active transaction')
        if self.connection.in_transaction():
            self.connection.commit()
        self._transaction = self.connection.begin()
        return True

    def commit(self) -> bool:
        transaction = self._end_transaction()
        try:
            transaction.commit()
        except sa.exc.DBAPIError as err:
            raise ExecutionError(str(err.orig), code=driver_error_code(err)) from err
        return True

    def rollback(self) -> bool:
        transaction = self._end_transaction()
        try:
            transaction.rollback()
        except sa.exc.DBAPIError as err:
            raise ExecutionError(str(err.orig), code=driver_error_code(err)) from err
        return True

    def _end_transaction(self) -> sa.engine.Transaction:
        if self._transaction is None or not self._transaction.is_active:
            self._transaction = None
            raise ExecutionError('There is no active transaction')
        transaction, self._transaction = self._transaction, None
        return transaction

    def in_transaction(self) -> bool:
        return self._transaction is not None and self._transaction.is_active

    def get_attribute(self, name: str) -> Any:
        return self.connection.get_execution_options().get(name)

    def set_attribute(self, name: str, value: Any) -> bool:
        try:
            self.connection.execution_options(**{name: value})
        except (sa.exc.ArgumentError, sa.exc.InvalidRequestError) as err:
            logger.warning(f'Could not set attribute {name}={value!r}: {err}')
            return False
        return True

    def close(self) -> None:
        if not self.connection.closed:
            self.connection.close()
