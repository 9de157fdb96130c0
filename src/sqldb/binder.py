"""
Value classification and binding.

Every value handed to a prepared statement is classified first:

    int   -> INTEGER
    bool  -> BOOLEAN
    None  -> NULL
    other scalars (str, float, Decimal, dates, ...) -> TEXT (untyped bind)

Composite values (dicts, objects, sequences) cannot be bound. Sequences of
scalars can instead be quoted into a comma separated literal for `IN (...)`
lists, see `quote_value()`.
"""
import datetime
import decimal
import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from sqldb.exceptions import UnbindableValueError

from libb import issequence

__all__ = [
    'ParamType',
    'BoundParameter',
    'SCALAR_TYPES',
    'is_scalar',
    'is_sequence',
    'classify_value',
    'bind_value',
    'quote_value',
]

logger = logging.getLogger(__name__)

SCALAR_TYPES = (
    str,
    bytes,
    int,
    float,
    decimal.Decimal,
    datetime.date,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    )


class ParamType(Enum):
    """Inferred bind type of a value."""
    INTEGER = 'integer'
    BOOLEAN = 'boolean'
    NULL = 'null'
    TEXT = 'text'


@dataclass(slots=True, frozen=True)
class BoundParameter:
    """A value bound to a statement placeholder."""
    key: str
    value: Any
    type: ParamType


def is_scalar(value: Any) -> bool:
    """Check whether a value can be bound directly.

    >>> is_scalar(1), is_scalar('a'), is_scalar(None), is_scalar([1])
    (True, True, True, False)
    """
    return value is None or isinstance(value, (bool, *SCALAR_TYPES))


def is_sequence(value: Any) -> bool:
    """Check whether a value should be expanded into a literal list.

    Strings and bytes are scalars, not sequences. Mappings count as sequences
    of their values.

    >>> is_sequence([1, 2]), is_sequence((1,)), is_sequence('ab'), is_sequence({'a': 1})
    (True, True, False, True)
    """
    if isinstance(value, str | bytes | bytearray):
        return False
    return issequence(value) or isinstance(value, Mapping | set | frozenset)


def classify_value(key: Any, value: Any) -> ParamType:
    """Return the bind type for a value or raise UnbindableValueError.

    bool is checked before int since bool is an int subclass.
    """
    if isinstance(value, bool):
        return ParamType.BOOLEAN
    if isinstance(value, int):
        return ParamType.INTEGER
    if value is None:
        return ParamType.NULL
    if not is_scalar(value):
        raise UnbindableValueError(key, type(value).__name__)
    return ParamType.TEXT


def bind_value(driver: Any, statement: Any, key: Any, value: Any) -> None:
    """Classify a value and bind it to the statement with the matching type.
    """
    param_type = classify_value(key, value)
    driver.bind_typed(statement, key, value, param_type)


def quote_value(quote: Callable[[Any, ParamType | None], str], value: Any,
                type_hint: ParamType | None = None, key: Any = None) -> str:
    """Quote a value for direct use in SQL text.

    A sequence is quoted element by element and joined with ', ', ready to
    be placed inside `IN (...)`. Mapping keys are ignored, only the values
    are quoted.

    Parameters
        quote: Driver-level quoting function for a single scalar
        value: The value or sequence of values to quote
        type_hint: Type to quote with; inferred per value when None
        key: Placeholder name, used in error messages only

    Returns
        The quoted literal
    """
    if not is_sequence(value):
        return quote(value, type_hint)

    if isinstance(value, Mapping):
        value = list(value.values())

    quoted = []
    for item in value:
        if not is_scalar(item):
            raise UnbindableValueError(key, type(item).__name__)
        quoted.append(quote(item, type_hint))
    return ', '.join(quoted)
