"""Tests for the dialect strategy registry."""
import pytest
from sqldb.strategy import PostgresStrategy, SQLiteStrategy, get_available_dialects
from sqldb.strategy import get_strategy, get_strategy_class, is_supported_dialect


def test_registered_dialects():
    assert set(get_available_dialects()) == {'postgresql', 'sqlite'}
    assert is_supported_dialect('sqlite')
    assert not is_supported_dialect('mssql')


def test_strategy_instances_cached():
    assert get_strategy('sqlite') is get_strategy('sqlite')
    assert isinstance(get_strategy('postgresql'), PostgresStrategy)
    assert get_strategy('sqlite').dialect_name == 'sqlite'


def test_strategy_class():
    assert get_strategy_class('sqlite') is SQLiteStrategy


def test_unknown_dialect():
    with pytest.raises(ValueError, match='Unsupported dialect'):
        get_strategy('oracle')


def test_sqlite_engine_kwargs_include_timeout(mocker):
    options = mocker.Mock(timeout=5)

    connect_args = get_strategy('sqlite').get_engine_kwargs(options)['connect_args']

    assert connect_args['timeout'] == 5
    assert 'detect_types' in connect_args


@pytest.mark.parametrize(('dialect', 'expected'), [
    ('sqlite', "X'61620027'"),
    ('postgresql', "'\\x61620027'::bytea"),
], ids=['sqlite', 'postgresql'])
def test_quote_binary_keeps_every_byte(dialect, expected):
    assert get_strategy(dialect).quote_binary(b"ab\x00'") == expected
