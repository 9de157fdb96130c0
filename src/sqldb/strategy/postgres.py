"""
PostgreSQL-specific strategy implementation.
"""
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqldb.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from sqldb.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        if options.dsn:
            return
        if not options.hostname or not options.database:
            raise ValueError('PostgreSQL requires hostname and database')

    def build_connection_url(self, options: 'DatabaseOptions',
                             url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
        """Build the SQLAlchemy connection URL for PostgreSQL."""
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)
        if options.appname:
            query['application_name'] = options.appname

        return url_creator(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port or None,
            database=options.database,
            query=query
        )

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        return {}

    def last_insert_id(self, connection: sa.engine.Connection,
                       name: str | None = None) -> int:
        """Use currval() for a named sequence, lastval() otherwise.

        Both are session-local, so only inserts made on this connection count.
        """
        if name:
            value = connection.execute(sa.text('SELECT currval(:name)'), {'name': name}).scalar()
        else:
            value = connection.exec_driver_sql('SELECT lastval()').scalar()
        return int(value)

    def quote_binary(self, value: bytes) -> str:
        """bytea literal in hex format."""
        return f"'\\x{value.hex()}'::bytea"
