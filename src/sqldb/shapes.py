"""
Result shaping.

Per-row functions shared by the eager `fetch_*` and lazy `yield_*`
operations, plus grouping, which needs the whole result.
"""
import logging
from collections.abc import Callable, Iterable, Mapping
from enum import Enum
from typing import Any, Final

from sqldb.exceptions import QueryError

__all__ = [
    'NoResult',
    'NoResultType',
    'GroupStyle',
    'first_value',
    'assoc_item',
    'pair_item',
    'column_item',
    'make_object',
    'group_rows',
]

logger = logging.getLogger(__name__)

Transform = Callable[[Any], Any] | None


class NoResultType(Enum):
    """Sentinel for single-row shapes over an empty result."""
    NO_RESULT = 0

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return 'NoResult'


NoResult: Final = NoResultType.NO_RESULT


class GroupStyle(Enum):
    """What fetch_group() collects for each row of a group."""
    COLUMN = 'column'    # the second column only
    NAMED = 'named'      # a mapping of all columns after the first


def first_value(row: Mapping[str, Any] | tuple) -> Any:
    """First column of a mapping or tuple row."""
    if isinstance(row, Mapping):
        return next(iter(row.values()))
    return row[0]


def assoc_item(row: dict[str, Any], transform: Transform = None) -> tuple[Any, Any]:
    """(first column, row) item.

    The key always comes from the raw row, the transform only changes the
    stored value.
    """
    key = first_value(row)
    return key, transform(row) if transform else row


def pair_item(row: tuple, transform: Transform = None) -> tuple[Any, Any]:
    """(first column, second column) item.

    The transform receives the raw tuple row first, so it may rewrite the key.
    """
    if transform:
        row = transform(row)
    return row[0], row[1]


def column_item(row: tuple, transform: Transform = None) -> Any:
    """First column of a tuple row."""
    value = row[0]
    return transform(value) if transform else value


def make_object(row: dict[str, Any], factory: Callable[..., Any]) -> Any:
    """Build a record from a row.

    A class is constructed with the columns as keyword arguments, so its
    constructor and validation run on the column values. Any other callable
    receives the row mapping.
    """
    if isinstance(factory, type):
        return factory(**row)
    return factory(row)


def group_rows(rows: Iterable[dict[str, Any]], style: GroupStyle = GroupStyle.COLUMN,
               transform: Transform = None) -> dict[Any, list[Any]]:
    """Group rows on their first column.

    Parameters
        rows: Mapping rows
        style: GroupStyle.COLUMN collects the second column,
            GroupStyle.NAMED collects the remaining columns as a mapping
        transform: Applied to each collected value

    Returns
        Dictionary of first column value to the list of collected values,
        in row order
    """
    groups: dict[Any, list[Any]] = {}
    for row in rows:
        items = list(row.items())
        if len(items) < 2:
            raise QueryError(f'fetch_group needs at least two columns, got {len(items)}')
        key = items[0][1]
        if style is GroupStyle.COLUMN:
            value = items[1][1]
        else:
            value = dict(items[1:])
        groups.setdefault(key, []).append(transform(value) if transform else value)
    logger.debug(f'Grouped rows into {len(groups)} groups')
    return groups
