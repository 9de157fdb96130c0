"""
SQLite-specific strategy implementation.
"""
import logging
import sqlite3
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqldb.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqldb.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        if options.dsn:
            return
        if not options.database:
            raise ValueError('SQLite requires a database path (or :memory:)')

    def build_connection_url(self, options: 'DatabaseOptions',
                             url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
        """Build the SQLAlchemy connection URL for SQLite."""
        return url_creator(drivername='sqlite', database=options.database)

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite."""
        connect_args: dict[str, Any] = {
            'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES
        }
        if options.timeout:
            connect_args['timeout'] = options.timeout
        return {'connect_args': connect_args}

    def last_insert_id(self, connection: sa.engine.Connection,
                       name: str | None = None) -> int:
        """SQLite has no sequences, the name is ignored."""
        if name:
            logger.debug(f'Ignoring sequence name {name!r} for SQLite')
        return int(connection.exec_driver_sql('SELECT last_insert_rowid()').scalar() or 0)

    def quote_binary(self, value: bytes) -> str:
        """Blob literal, X'hex'."""
        return f"X'{value.hex()}'"
