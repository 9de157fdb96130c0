"""
Placeholder processing for SQL templates.

Two placeholder styles are recognised:

- positional: `?`
- named: `:name`

Placeholders inside string literals and PostgreSQL `::` casts are left
alone. Positional placeholders are rewritten to numbered named placeholders
(`:1`, `:2`, ...) so both styles bind the same way downstream.

Main entry points:
- `standardize_placeholders()` - rewrite `?` to `:1`, `:2`, ...
- `placeholder_names()` - names referenced by a template
- `normalize_values()` - coerce the value map into `{name: value}`
- `expand_sequence_values()` - substitute quoted lists for sequence values
"""
import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any

from sqldb.binder import is_sequence
from sqldb.exceptions import PrepareError

__all__ = [
    'TokenType',
    'Token',
    'tokenize_sql',
    'standardize_placeholders',
    'escape_literal_colons',
    'placeholder_names',
    'normalize_key',
    'normalize_values',
    'expand_sequence_values',
]

logger = logging.getLogger(__name__)


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    CAST = auto()               # ::
    POSITIONAL_PH = auto()      # ?
    NAMED_PH = auto()           # :name


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int
    name: str | None = None


_TOKENIZE = re.compile(r"""
    (?P<string>'(?:[^']|'')*'|"(?:[^"]|"")*")
    |(?P<cast>::)
    |(?P<named>(?<![:\w\\]):(?P<pname>\w+)(?![:\w]))
    |(?P<qmark>\?)
""", re.VERBOSE)

_LITERAL_COLON = re.compile(r'(?<![:\\]):(?=\w)')


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        if match.group('string'):
            tokens.append(Token(TokenType.STRING_LITERAL, match.group(0), start, end))
        elif match.group('cast'):
            tokens.append(Token(TokenType.CAST, match.group(0), start, end))
        elif match.group('named'):
            tokens.append(Token(TokenType.NAMED_PH, match.group(0), start, end,
                                name=match.group('pname')))
        else:
            tokens.append(Token(TokenType.POSITIONAL_PH, match.group(0), start, end))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def standardize_placeholders(sql: str) -> str:
    """Rewrite positional `?` placeholders to numbered named placeholders.

    Numbering is 1-based, matching the keys used for positional values.

    >>> standardize_placeholders('select * from t where a = ? and b = ?')
    'select * from t where a = :1 and b = :2'
    >>> standardize_placeholders("select '?' from t where a = ?")
    "select '?' from t where a = :1"
    """
    tokens = tokenize_sql(sql)
    kinds = {t.type for t in tokens}
    if TokenType.POSITIONAL_PH not in kinds:
        return sql
    if TokenType.NAMED_PH in kinds:
        raise PrepareError('Cannot mix positional (?) and named (:name) placeholders', statement=sql)

    parts = []
    position = 0
    for token in tokens:
        if token.type == TokenType.POSITIONAL_PH:
            position += 1
            parts.append(f':{position}')
        else:
            parts.append(token.text)
    return ''.join(parts)


def escape_literal_colons(sql: str) -> str:
    """Backslash-escape `:word` sequences inside string literals.

    SQLAlchemy text() would otherwise read them as bind parameters.

    >>> escape_literal_colons("select ':x', a::int from t where b = :b")
    "select '\\\\:x', a::int from t where b = :b"
    """
    parts = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.STRING_LITERAL:
            parts.append(_LITERAL_COLON.sub(r'\\:', token.text))
        else:
            parts.append(token.text)
    return ''.join(parts)


def placeholder_names(sql: str) -> tuple[str, ...]:
    """Return the placeholder names referenced by a template, in order.

    Positional placeholders are reported by their 1-based position.

    >>> placeholder_names('select * from t where a = :a and b = :b and c = :a')
    ('a', 'b')
    >>> placeholder_names('select x::int from t where a = ?')
    ('1',)
    """
    names = [t.name for t in tokenize_sql(standardize_placeholders(sql))
             if t.type == TokenType.NAMED_PH]
    return tuple(dict.fromkeys(names))


def normalize_key(key: Any) -> str:
    """Placeholder key as used in SQL text.

    >>> normalize_key(':name'), normalize_key(1)
    ('name', '1')
    """
    return str(key).lstrip(':')


def normalize_values(values: Mapping[Any, Any] | list | tuple | None) -> dict[str, Any]:
    """Coerce the placeholder value map into `{name: value}`.

    A list or tuple supplies 1-based positional values.

    >>> normalize_values(['a', 'b'])
    {'1': 'a', '2': 'b'}
    >>> normalize_values({':id': 3, 2: 'x'})
    {'id': 3, '2': 'x'}
    """
    if not values:
        return {}
    if isinstance(values, Mapping):
        return {normalize_key(key): value for key, value in values.items()}
    return {str(position): value for position, value in enumerate(values, start=1)}


def expand_sequence_values(sql: str, values: dict[str, Any],
                           quote: Callable[[str, Any], str]) -> tuple[str, dict[str, Any]]:
    """Replace placeholders holding sequences with quoted literal lists.

    The quoted list is written straight into the SQL text, so the key is no
    longer bound. Keys without a matching placeholder are left in place for
    the binder. An empty sequence expands to NULL so `IN (NULL)` stays valid.

    Parameters
        sql: SQL with standardized placeholders
        values: Normalized placeholder values
        quote: Called as quote(key, value), returns the literal list

    Returns
        Tuple of (processed_sql, remaining_values)
    """
    sequence_keys = {key for key, value in values.items() if is_sequence(value)}
    if not sequence_keys:
        return sql, values

    parts = []
    expanded = set()
    for token in tokenize_sql(sql):
        if token.type == TokenType.NAMED_PH and token.name in sequence_keys:
            value = values[token.name]
            parts.append(quote(token.name, value) if len(value) else 'NULL')
            expanded.add(token.name)
        else:
            parts.append(token.text)

    if expanded:
        logger.debug(f'Expanded sequence values for placeholders: {sorted(expanded)}')

    remaining = {key: value for key, value in values.items() if key not in expanded}
    return ''.join(parts), remaining


if __name__ == '__main__':
    __import__('doctest').testmod(optionflags=4 | 8 | 32)
