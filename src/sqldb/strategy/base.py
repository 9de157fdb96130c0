"""
Base strategy interface for dialect-specific operations.

The strategy pattern keeps the few behaviours that differ between database
backends (connection URL, engine arguments, last insert id) out of the
driver and the connection facade.
"""
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa

if TYPE_CHECKING:
    from sqldb.options import DatabaseOptions

# dialect name -> strategy class, filled by @register_strategy
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str) -> Callable[[type['DatabaseStrategy']], type['DatabaseStrategy']]:
    """Class decorator adding a strategy to the registry under `dialect`.

    A later registration for the same dialect replaces the earlier one.
    """
    def register(strategy_cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = strategy_cls
        return strategy_cls
    return register


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """Return the dialect identifier."""

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Raise ValueError when options are incomplete for this dialect.
        """

    @abstractmethod
    def build_connection_url(self, options: 'DatabaseOptions',
                             url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
        """Build the SQLAlchemy connection URL.

        Args:
            options: Connection options
            url_creator: Factory for the URL object
        """

    def get_engine_kwargs(self, options: 'DatabaseOptions') -> dict[str, Any]:
        """Return extra SQLAlchemy create_engine kwargs."""
        return {}

    @abstractmethod
    def last_insert_id(self, connection: sa.engine.Connection,
                       name: str | None = None) -> int:
        """Return the last inserted autoincrement value.

        Args:
            connection: Live SQLAlchemy connection
            name: Sequence name, where the dialect needs one
        """

    @abstractmethod
    def quote_binary(self, value: bytes) -> str:
        """Return a binary literal for direct use in SQL text."""
