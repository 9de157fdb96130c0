"""
Dialect strategies.

Each supported backend registers a `DatabaseStrategy` subclass under its
SQLAlchemy dialect name. Importing this package registers the built-in
`sqlite` and `postgresql` strategies.
"""
from functools import cache

from sqldb.strategy.base import _STRATEGY_REGISTRY, DatabaseStrategy
from sqldb.strategy.base import register_strategy
from sqldb.strategy.postgres import PostgresStrategy
from sqldb.strategy.sqlite import SQLiteStrategy

__all__ = [
    'DatabaseStrategy',
    'PostgresStrategy',
    'SQLiteStrategy',
    'register_strategy',
    'get_strategy',
    'get_strategy_class',
    'get_available_dialects',
    'is_supported_dialect',
]


def get_strategy_class(dialect: str) -> type[DatabaseStrategy]:
    """Registered strategy class for a dialect; ValueError when unknown."""
    try:
        return _STRATEGY_REGISTRY[dialect]
    except KeyError:
        raise ValueError(f'Unsupported dialect: {dialect}. Available: {get_available_dialects()}') from None


@cache
def get_strategy(dialect: str) -> DatabaseStrategy:
    """Shared strategy instance for a dialect."""
    return get_strategy_class(dialect)()


def get_available_dialects() -> list[str]:
    return sorted(_STRATEGY_REGISTRY)


def is_supported_dialect(dialect: str) -> bool:
    return dialect in _STRATEGY_REGISTRY
