from dataclasses import dataclass, field
from typing import Any

import sqlalchemy as sa
from sqldb.strategy import get_available_dialects, get_strategy_class
from sqldb.strategy import is_supported_dialect

from libb import ConfigOptions, scriptname

__all__ = [
    'DatabaseOptions',
    'default_attributes',
]


def default_attributes(appname: str) -> dict[str, Any]:
    """Connection attributes applied unless the caller sets them."""
    return {
        'logging_token': appname,
    }


@dataclass
class DatabaseOptions(ConfigOptions):
    """Options

    supported driver names: `postgresql`, `sqlite`

    - dsn: SQLAlchemy URL; wins over the individual connection fields
    - attributes: connection attributes (SQLAlchemy execution options)
      applied right after connecting
    - connect_args: passed through to the DBAPI connect()
    """
    drivername: str = 'postgresql'
    dsn: str = None
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    attributes: dict[str, Any] = field(default_factory=dict)
    connect_args: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.dsn:
            self.drivername = sa.make_url(self.dsn).get_backend_name()
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)
        attributes = default_attributes(self.appname)
        attributes.update({k: v for k, v in (self.attributes or {}).items() if v is not None})
        self.attributes = attributes

