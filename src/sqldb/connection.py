"""
Lazy database connection facade.

This module provides:
1. The `connect()` function for creating a lazy `Connection`
2. The `Connection` class: connects on first use, binds values, shapes
   results and profiles every driver call
3. Engine creation and management through a thread-safe registry

The Connection is the primary database client, providing methods like:
- perform(sql, values) - Prepare, bind and execute a statement
- fetch_all(sql, values) - All rows as dictionaries
- fetch_one(sql, values) - The first row, or NoResult
- fetch_assoc / fetch_pairs / fetch_col / fetch_group / fetch_value
- yield_all(sql, values) - Rows one at a time without materializing them
"""
import atexit
import logging
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import fields, replace
from functools import partial
from types import SimpleNamespace
from typing import Any, Self

import sqlalchemy as sa
from more_itertools import first
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool
from sqldb.binder import ParamType, bind_value, quote_value
from sqldb.driver import Driver, RowShape, SqlAlchemyDriver, Statement
from sqldb.exceptions import ConnectionFailure, driver_error_code
from sqldb.options import DatabaseOptions
from sqldb.profiler import BaseProfiler
from sqldb.shapes import GroupStyle, NoResult, assoc_item, column_item
from sqldb.shapes import group_rows, make_object, pair_item
from sqldb.sql import expand_sequence_values, normalize_values
from sqldb.sql import standardize_placeholders
from sqldb.strategy import get_strategy
from sqldb.stream import RowStream

from libb import load_options

__all__ = [
    'Connection',
    'connect',
    'open_driver',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

Values = Mapping[Any, Any] | list | tuple | None
Transform = Callable[[Any], Any] | None

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.

    A DSN wins over the individual fields; explicit credentials still
    override the ones embedded in the DSN.
    """
    if options.dsn:
        url = sa.make_url(options.dsn)
        if options.username:
            url = url.set(username=options.username)
        if options.password:
            url = url.set(password=options.password)
        return url

    strategy = get_strategy(options.drivername)
    return strategy.build_connection_url(options, url_creator)


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine,
                           **kwargs: Any) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.

    Engines never pool; each Connection holds exactly one DBAPI connection.
    """
    url = create_url_from_options(options)
    key = url.render_as_string(hide_password=False)

    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {options.drivername}')
            return _engine_registry[key]

        strategy = get_strategy(options.drivername)
        engine_kwargs: dict[str, Any] = {'echo': False, 'poolclass': NullPool}
        engine_kwargs.update(strategy.get_engine_kwargs(options))
        if options.connect_args:
            connect_args = dict(engine_kwargs.get('connect_args', {}))
            connect_args.update(options.connect_args)
            engine_kwargs['connect_args'] = connect_args
        engine_kwargs.update(kwargs)

        engine = engine_factory(url, **engine_kwargs)

        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {options.drivername}')

        return engine


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


def open_driver(options: DatabaseOptions) -> Driver:
    """Open a physical connection and wrap it in a driver.

    Raises ConnectionFailure; the attempt is not retried.
    """
    engine = get_engine_for_options(options)
    try:
        sa_connection = engine.connect()
    except sa.exc.SQLAlchemyError as err:
        logger.error(f'Could not connect to {options.drivername}: {err}')
        code = driver_error_code(err)
        raise ConnectionFailure(f'Could not connect to {options.drivername} (code {code}): {err}') from err
    return SqlAlchemyDriver(sa_connection)


class Connection:
    """Lazily connecting database facade.

    Nothing touches the database until the first operation that needs it.
    Connection attributes set before that are kept and applied right after
    connecting. Every driver call is timed and handed to the profiler, if
    one is set.

    Not safe for concurrent use without external locking.

    Engines never pool, so `disconnect()` drops the physical connection.
    With an SQLite `:memory:` database the next operation reconnects to a
    new, empty database.
    """

    def __init__(self, options: DatabaseOptions,
                 profiler: BaseProfiler | None = None,
                 driver_factory: Callable[[DatabaseOptions], Driver] = open_driver) -> None:
        self.options = options
        self._profiler = profiler
        self._driver_factory = driver_factory
        self._driver: Driver | None = None
        self._attributes: dict[str, Any] = dict(options.attributes)
        self.calls = 0
        self.time = 0.0

    def __repr__(self) -> str:
        state = 'connected' if self.is_connected else 'not connected'
        return f'<Connection {self.options.drivername} {state}>'

    def __enter__(self) -> Self:
        """Support for context manager protocol
        """
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        """Disconnect when exiting the context manager
        """
        self.disconnect()

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @contextmanager
    def _profiling(self, function: str, statement: str | None = None,
                   values: Any = None) -> Iterator[None]:
        """Time the enclosed driver call and record it.

        Nothing is recorded when the call raises.
        """
        start = time.perf_counter()
        yield
        elapsed = time.perf_counter() - start
        self.addcall(elapsed)
        logger.debug(f'{function} time: {elapsed:.4f}s')
        if self._profiler is None:
            return
        try:
            self._profiler.add_profile(elapsed, f'{type(self).__name__}.{function}',
                                       statement, values if values is not None else {})
        except Exception as err:
            logger.warning(f'Profiler failed to record {function}: {err}')

    @property
    def dsn(self) -> str:
        """Connection URL with the password masked."""
        return create_url_from_options(self.options).render_as_string(hide_password=True)

    @property
    def is_connected(self) -> bool:
        return self._driver is not None

    @property
    def driver(self) -> Driver:
        """The underlying driver; connects first."""
        self.connect()
        return self._driver

    @property
    def profiler(self) -> BaseProfiler | None:
        return self._profiler

    @profiler.setter
    def profiler(self, profiler: BaseProfiler | None) -> None:
        self._profiler = profiler

    def connect(self) -> None:
        """Connect and apply the pending attributes; no-op when connected.
        """
        if self._driver is not None:
            return

        with self._profiling('connect'):
            driver = self._driver_factory(self.options)
        self._driver = driver
        logger.debug(f'Connected to {self.options.drivername}')

        for name, value in list(self._attributes.items()):
            self.set_attribute(name, value)

    def disconnect(self) -> None:
        """Drop the connection; the next operation reconnects.
        """
        if self._driver is None:
            return
        driver, self._driver = self._driver, None
        driver.close()
        logger.debug(f'Connection closed: {self.calls} calls in {self.time:.2f}s (avg: {self.time/max(1, self.calls):.3f}s per call)')

    def get_attribute(self, name: str) -> Any:
        """Read a connection attribute (SQLAlchemy execution option)."""
        self.connect()
        return self._driver.get_attribute(name)

    def set_attribute(self, name: str, value: Any) -> bool:
        """Set a connection attribute.

        Before connecting the value is kept for later and the call always
        succeeds; once connected it is applied straight away and the driver's
        result is returned.
        """
        if self._driver is None:
            self._attributes[name] = value
            return True
        applied = self._driver.set_attribute(name, value)
        if applied:
            self._attributes[name] = value
        return applied

    def begin_transaction(self) -> bool:
        """Begin a transaction and turn off autocommit."""
        self.connect()
        with self._profiling('begin_transaction'):
            return self._driver.begin()

    def commit(self) -> bool:
        """Commit the transaction and restore autocommit."""
        self.connect()
        with self._profiling('commit'):
            return self._driver.commit()

    def rollback(self) -> bool:
        """Roll back the transaction and restore autocommit."""
        self.connect()
        with self._profiling('rollback'):
            return self._driver.rollback()

    def in_transaction(self) -> bool:
        """Is a transaction currently active?"""
        self.connect()
        with self._profiling('in_transaction'):
            return self._driver.in_transaction()

    def last_insert_id(self, name: str | None = None) -> int:
        """Last inserted autoincrement value.

        Args:
            name: Sequence name, PostgreSQL only (`<table>_<column>_seq`)
        """
        self.connect()
        with self._profiling('last_insert_id'):
            return self._driver.last_insert_id(name)

    def quote(self, value: Any, type_hint: ParamType | None = None) -> str:
        """Quote a value for use in SQL text.

        A sequence becomes a comma separated list of quoted values.
        """
        self.connect()
        return quote_value(self._driver.quote, value, type_hint)

    def prepare(self, sql: str, options: dict[str, Any] | None = None) -> Statement:
        """Prepare a statement for execution.

        Args:
            sql: SQL statement
            options: Execution options set on the statement
        """
        self.connect()
        with self._profiling('prepare', sql, options or {}):
            return self._driver.prepare(sql, options)

    def prepare_with_values(self, sql: str, values: Values = None) -> Statement:
        """Prepare a statement and bind values to it.

        Sequence values have their placeholder replaced by a quoted, comma
        separated list (for `IN (...)`) instead of being bound, so a list
        value is accepted here rather than rejected as unbindable. A list
        whose key has no placeholder is still rejected. Every other value
        is bound by type, whether or not its placeholder appears in the
        statement.
        """
        values = normalize_values(values)
        if not values:
            return self.prepare(sql)

        self.connect()
        sql = standardize_placeholders(sql)
        sql, values = expand_sequence_values(
            sql, values, lambda key, value: quote_value(self._driver.quote, value, key=key))

        statement = self.prepare(sql)
        try:
            for key, value in values.items():
                bind_value(self._driver, statement, key, value)
        except BaseException:
            self._driver.release(statement)
            raise
        return statement

    def perform(self, sql: str, values: Values = None) -> Statement:
        """Prepare, bind and execute a statement.

        The caller owns the returned statement and releases it with
        `self.driver.release()`, or uses one of the fetch/yield methods.
        """
        statement = self.prepare_with_values(sql, values)
        logger.debug(f'SQL:\n{sql}\nvalues: {values}')
        try:
            with self._profiling('perform', sql, values):
                self._driver.execute(statement)
        except BaseException:
            self._driver.release(statement)
            raise
        return statement

    def query(self, sql: str) -> Statement:
        """Execute a statement without bound values and return it."""
        self.connect()
        statement = self._driver.prepare(sql)
        try:
            with self._profiling('query', sql):
                self._driver.execute(statement)
        except BaseException:
            self._driver.release(statement)
            raise
        return statement

    def execute(self, sql: str) -> int:
        """Execute a statement without bound values; return affected rows."""
        self.connect()
        statement = self._driver.prepare(sql)
        try:
            with self._profiling('execute', sql):
                self._driver.execute(statement)
            return self._driver.row_count(statement)
        finally:
            self._driver.release(statement)

    def _stream(self, sql: str, values: Values, shape: RowShape,
                transform: Callable[[Any], Any] | None) -> RowStream:
        statement = self.perform(sql, values)
        return RowStream(self._driver, statement, shape, transform)

    def yield_all(self, sql: str, values: Values = None,
                  transform: Transform = None) -> RowStream:
        """Lazily yield rows as dictionaries."""
        return self._stream(sql, values, RowShape.MAPPING, transform)

    def yield_assoc(self, sql: str, values: Values = None,
                    transform: Transform = None) -> RowStream:
        """Lazily yield (first column, row) tuples."""
        return self._stream(sql, values, RowShape.MAPPING,
                            partial(assoc_item, transform=transform))

    def yield_column(self, sql: str, values: Values = None,
                     transform: Transform = None) -> RowStream:
        """Lazily yield the first column of each row."""
        return self._stream(sql, values, RowShape.TUPLE,
                            partial(column_item, transform=transform))

    def yield_pairs(self, sql: str, values: Values = None,
                    transform: Transform = None) -> RowStream:
        """Lazily yield (first column, second column) tuples."""
        return self._stream(sql, values, RowShape.TUPLE,
                            partial(pair_item, transform=transform))

    def yield_objects(self, sql: str, values: Values = None,
                      factory: Callable[..., Any] = SimpleNamespace) -> RowStream:
        """Lazily yield records built by factory from each row."""
        return self._stream(sql, values, RowShape.MAPPING,
                            partial(make_object, factory=factory))

    def fetch_affected(self, sql: str, values: Values = None) -> int:
        """Execute a statement and return the number of affected rows."""
        statement = self.perform(sql, values)
        try:
            return self._driver.row_count(statement)
        finally:
            self._driver.release(statement)

    def fetch_all(self, sql: str, values: Values = None,
                  transform: Transform = None) -> list[Any]:
        """Fetch all rows as dictionaries, optionally transformed."""
        with self.yield_all(sql, values, transform) as rows:
            return list(rows)

    def fetch_one(self, sql: str, values: Values = None,
                  transform: Transform = None) -> Any:
        """Fetch the first row as a dictionary, or NoResult."""
        with self.yield_all(sql, values, transform) as rows:
            return first(rows, NoResult)

    def fetch_assoc(self, sql: str, values: Values = None,
                    transform: Transform = None) -> dict[Any, Any]:
        """Fetch rows keyed on their first column.

        N.b.: If multiple rows have the same first column value, the last
        row with that value overrides earlier rows.
        """
        with self.yield_assoc(sql, values, transform) as items:
            return dict(items)

    def fetch_pairs(self, sql: str, values: Values = None,
                    transform: Transform = None) -> dict[Any, Any]:
        """Fetch first column to second column pairs.

        The transform gets the raw row tuple and may rewrite the key.
        """
        with self.yield_pairs(sql, values, transform) as items:
            return dict(items)

    def fetch_col(self, sql: str, values: Values = None,
                  transform: Transform = None) -> list[Any]:
        """Fetch the first column of every row."""
        with self.yield_column(sql, values, transform) as column:
            return list(column)

    def fetch_value(self, sql: str, values: Values = None,
                    transform: Transform = None) -> Any:
        """Fetch the first column of the first row, or NoResult."""
        with self.yield_column(sql, values, transform) as column:
            return first(column, NoResult)

    def fetch_group(self, sql: str, values: Values = None,
                    style: GroupStyle = GroupStyle.COLUMN,
                    transform: Transform = None) -> dict[Any, list[Any]]:
        """Fetch rows grouped on their first column.

        Args:
            style: GroupStyle.COLUMN collects the second column,
                GroupStyle.NAMED all remaining columns as dictionaries
        """
        with self.yield_all(sql, values) as rows:
            return group_rows(rows, style, transform)

    def fetch_object(self, sql: str, values: Values = None,
                     factory: Callable[..., Any] = SimpleNamespace) -> Any:
        """Fetch the first row as a record, or NoResult.

        A class factory is called with the columns as keyword arguments,
        any other callable with the row dictionary.
        """
        with self.yield_objects(sql, values, factory) as objects:
            return first(objects, NoResult)

    def fetch_objects(self, sql: str, values: Values = None,
                      factory: Callable[..., Any] = SimpleNamespace) -> list[Any]:
        """Fetch all rows as records built by factory."""
        with self.yield_objects(sql, values, factory) as objects:
            return list(objects)


def connect(options: DatabaseOptions | dict[str, Any] | str | None = None,
            config: Any | None = None, profiler: BaseProfiler | None = None,
            **kw: Any) -> Connection:
    """Create a lazy database connection.

    Args:
        options: Can be:
                - DatabaseOptions object
                - SQLAlchemy URL string
                - Name of a setting in config
                - Dictionary of options
                - Options specified as keyword arguments
        config: Configuration object (for loading from config files)
        profiler: Optional profiler fed with every driver call
        **kw: Additional keyword arguments to override options

    Returns
        Connection that connects on first use
    """
    if isinstance(options, DatabaseOptions):
        known = {field.name for field in fields(options)}
        overrides = {k: v for k, v in kw.items() if k in known}
        if overrides:
            options = replace(options, **overrides)
    elif isinstance(options, str) and '://' in options:
        options = DatabaseOptions(dsn=options, **kw)
    else:
        options_func = load_options(cls=DatabaseOptions)(lambda o, c: o)
        options = options_func(options, config, **kw)

    return Connection(options, profiler=profiler)
