"""
Integration tests for result shapes and value binding with SQLite.
"""
from dataclasses import dataclass

import sqldb as db
import pytest


@dataclass
class Player:
    id: int
    name: str
    value: int
    team: str


class TestFetchShapes:
    """Test every fetch shape against a real database."""

    def test_fetch_all(self, sqlite_conn):
        rows = db.fetch_all(sqlite_conn, 'SELECT name, value FROM test_table ORDER BY id')

        assert rows == [
            {'name': 'Alice', 'value': 10},
            {'name': 'Bob', 'value': 20},
            {'name': 'Charlie', 'value': 30},
        ]

    def test_fetch_one(self, sqlite_conn):
        row = db.fetch_one(sqlite_conn, 'SELECT name FROM test_table WHERE value = :value',
                           {'value': 20})

        assert row == {'name': 'Bob'}

    def test_fetch_one_empty(self, sqlite_conn):
        row = db.fetch_one(sqlite_conn, 'SELECT name FROM test_table WHERE value = ?', [99])

        assert row is db.NoResult

    def test_fetch_value(self, sqlite_conn):
        assert db.fetch_value(sqlite_conn, 'SELECT count(*) FROM test_table') == 3
        assert db.fetch_value(sqlite_conn, 'SELECT id FROM test_table WHERE 0') is db.NoResult

    def test_fetch_value_null_is_not_sentinel(self, sqlite_conn):
        assert db.fetch_value(sqlite_conn, 'SELECT team FROM test_table WHERE 0 UNION ALL SELECT NULL') is None

    def test_fetch_assoc(self, sqlite_conn):
        result = db.fetch_assoc(sqlite_conn, 'SELECT name, value FROM test_table')

        assert result['Alice'] == {'name': 'Alice', 'value': 10}
        assert len(result) == 3

    def test_fetch_assoc_last_write_wins(self, sqlite_conn):
        result = db.fetch_assoc(sqlite_conn, 'SELECT team, name FROM test_table ORDER BY id')

        assert result == {
            'red': {'team': 'red', 'name': 'Charlie'},
            'blue': {'team': 'blue', 'name': 'Bob'},
        }

    def test_fetch_pairs(self, sqlite_conn):
        result = db.fetch_pairs(sqlite_conn, 'SELECT name, value FROM test_table')

        assert result == {'Alice': 10, 'Bob': 20, 'Charlie': 30}

    def test_fetch_pairs_swapped(self, sqlite_conn):
        result = db.fetch_pairs(sqlite_conn, 'SELECT name, value FROM test_table',
                                transform=lambda row: (row[1], row[0]))

        assert result == {10: 'Alice', 20: 'Bob', 30: 'Charlie'}

    def test_fetch_col(self, sqlite_conn):
        names = db.fetch_col(sqlite_conn, 'SELECT name FROM test_table ORDER BY id',
                             transform=str.upper)

        assert names == ['ALICE', 'BOB', 'CHARLIE']

    def test_fetch_group(self, sqlite_conn):
        result = db.fetch_group(sqlite_conn, 'SELECT team, name FROM test_table ORDER BY id')

        assert result == {'red': ['Alice', 'Charlie'], 'blue': ['Bob']}

    def test_fetch_group_named(self, sqlite_conn):
        result = db.fetch_group(sqlite_conn, 'SELECT team, name, value FROM test_table ORDER BY id',
                                style=db.GroupStyle.NAMED)

        assert result['blue'] == [{'name': 'Bob', 'value': 20}]

    def test_fetch_objects(self, sqlite_conn):
        players = db.fetch_objects(sqlite_conn, 'SELECT id, name, value, team FROM test_table ORDER BY id',
                                   factory=Player)

        assert players[0] == Player(1, 'Alice', 10, 'red')
        assert all(isinstance(p, Player) for p in players)

    def test_fetch_object_default_record(self, sqlite_conn):
        obj = db.fetch_object(sqlite_conn, 'SELECT name, value FROM test_table WHERE id = 2')

        assert (obj.name, obj.value) == ('Bob', 20)

    def test_duplicate_column_names_last_wins(self, sqlite_conn):
        row = db.fetch_one(sqlite_conn, 'SELECT 1 AS a, 2 AS a')

        assert row == {'a': 2}


class TestYieldShapes:
    """Test lazy sequences against a real cursor."""

    def test_yield_all(self, sqlite_conn):
        with db.yield_all(sqlite_conn, 'SELECT name FROM test_table ORDER BY id') as rows:
            assert next(rows) == {'name': 'Alice'}
            assert [r['name'] for r in rows] == ['Bob', 'Charlie']

    def test_partial_consumption_then_next_query(self, sqlite_conn):
        rows = sqlite_conn.yield_column('SELECT name FROM test_table ORDER BY id')
        assert next(rows) == 'Alice'
        rows.close()

        assert rows.statement.released
        assert db.fetch_value(sqlite_conn, 'SELECT count(*) FROM test_table') == 3

    def test_yield_pairs(self, sqlite_conn):
        pairs = sqlite_conn.yield_pairs('SELECT id, name FROM test_table ORDER BY id')

        assert list(pairs) == [(1, 'Alice'), (2, 'Bob'), (3, 'Charlie')]

    def test_yield_assoc(self, sqlite_conn):
        items = sqlite_conn.yield_assoc('SELECT id, name FROM test_table ORDER BY id',
                                        transform=lambda row: row['name'])

        assert list(items) == [(1, 'Alice'), (2, 'Bob'), (3, 'Charlie')]

    def test_yield_objects(self, sqlite_conn):
        players = sqlite_conn.yield_objects('SELECT id, name, value, team FROM test_table ORDER BY id',
                                            factory=Player)

        assert next(players).name == 'Alice'
        players.close()


class TestBinding:
    """Test value binding end to end."""

    def test_named_and_positional(self, sqlite_conn):
        named = db.fetch_col(sqlite_conn, 'SELECT name FROM test_table WHERE value > :low AND value < :high',
                             {'low': 15, 'high': 35})
        positional = db.fetch_col(sqlite_conn, 'SELECT name FROM test_table WHERE value > ? AND value < ?',
                                  [15, 35])

        assert named == positional == ['Bob', 'Charlie']

    def test_leading_colon_keys(self, sqlite_conn):
        name = db.fetch_value(sqlite_conn, 'SELECT name FROM test_table WHERE id = :id', {':id': 1})

        assert name == 'Alice'

    def test_unreferenced_scalar_ignored(self, sqlite_conn):
        name = db.fetch_value(sqlite_conn, 'SELECT name FROM test_table WHERE id = :id',
                              {'id': 1, 'unused': 'x'})

        assert name == 'Alice'

    def test_unreferenced_composite_fails(self, sqlite_conn):
        with pytest.raises(db.UnbindableValueError):
            db.fetch_value(sqlite_conn, 'SELECT name FROM test_table WHERE id = :id',
                           {'id': 1, 'unused': object()})

    def test_in_clause_expansion(self, sqlite_conn):
        names = db.fetch_col(sqlite_conn, 'SELECT name FROM test_table WHERE name IN (:names) ORDER BY id',
                             {'names': ['Alice', "O'Brien", 'Charlie']})

        assert names == ['Alice', 'Charlie']

    def test_in_clause_positional(self, sqlite_conn):
        names = db.fetch_col(sqlite_conn, 'SELECT name FROM test_table WHERE value > ? AND id IN (?) ORDER BY id',
                             [15, (1, 2, 3)])

        assert names == ['Bob', 'Charlie']

    def test_empty_in_clause(self, sqlite_conn):
        names = db.fetch_col(sqlite_conn, 'SELECT name FROM test_table WHERE id IN (:ids)', {'ids': []})

        assert names == []

    def test_null_and_boolean(self, sqlite_conn):
        db.fetch_affected(sqlite_conn, 'INSERT INTO test_table (name, value, team) VALUES (:name, :value, :team)',
                          {'name': 'Dora', 'value': True, 'team': None})

        row = db.fetch_one(sqlite_conn, 'SELECT value, team FROM test_table WHERE name = ?', ['Dora'])

        assert row == {'value': 1, 'team': None}

    def test_colon_inside_literal(self, sqlite_conn):
        value = db.fetch_value(sqlite_conn, "SELECT ':not_a_param' || name FROM test_table WHERE id = :id",
                               {'id': 1})

        assert value == ':not_a_paramAlice'

    def test_quote(self, sqlite_conn):
        assert db.quote(sqlite_conn, "O'Brien") == "'O''Brien'"
        assert db.quote(sqlite_conn, [1, 2]) == '1, 2'
        assert db.quote(sqlite_conn, None) == 'NULL'

    def test_quote_bytes_round_trip(self, sqlite_conn):
        literal = db.quote(sqlite_conn, b"ab\x00'")

        assert literal == "X'61620027'"
        assert db.fetch_value(sqlite_conn, f'SELECT {literal}') == b"ab\x00'"


class TestStatements:
    """Test affected rows, errors and raw statements."""

    def test_fetch_affected(self, sqlite_conn):
        count = db.update(sqlite_conn, 'UPDATE test_table SET value = value + 1 WHERE team = :team',
                          {'team': 'red'})

        assert count == 2

    def test_execute(self, sqlite_conn):
        assert db.execute(sqlite_conn, 'DELETE FROM test_table') == 3

    def test_last_insert_id(self, sqlite_conn):
        db.insert(sqlite_conn, 'INSERT INTO test_table (name, value) VALUES (?, ?)', ['Eve', 50])

        assert db.last_insert_id(sqlite_conn) == 4

    def test_execution_error_carries_code(self, sqlite_conn):
        with pytest.raises(db.ExecutionError) as exc_info:
            db.insert(sqlite_conn, 'INSERT INTO test_table (name, value) VALUES (?, ?)', ['Alice', 1])

        assert exc_info.value.code is not None
        assert 'UNIQUE' in str(exc_info.value)

        # the connection stays usable after the failure
        assert db.fetch_value(sqlite_conn, 'SELECT count(*) FROM test_table') == 3

    def test_bad_sql(self, sqlite_conn):
        with pytest.raises(db.QueryError):
            db.fetch_all(sqlite_conn, 'SELECT * FROM no_such_table')

    def test_mixed_placeholders(self, sqlite_conn):
        with pytest.raises(db.PrepareError):
            db.fetch_all(sqlite_conn, 'SELECT * FROM test_table WHERE id = ? AND name = :name',
                         {'1': 1, 'name': 'x'})

    def test_query_returns_statement(self, sqlite_conn):
        statement = sqlite_conn.query('SELECT count(*) AS n FROM test_table')
        try:
            assert sqlite_conn.driver.fetch_next(statement) == {'n': 3}
        finally:
            sqlite_conn.driver.release(statement)

    def test_attributes(self, sqlite_conn):
        assert sqlite_conn.set_attribute('logging_token', 'integration') is True

        assert sqlite_conn.get_attribute('logging_token') == 'integration'
