import sqldb as db
import pytest


@pytest.fixture
def sqlite_conn():
    """Create an in-memory SQLite database for testing"""
    conn = db.connect({
        'drivername': 'sqlite',
        'database': ':memory:'
    })

    # Create test schema
    create_table = """
    CREATE TABLE test_table (
        id INTEGER PRIMARY KEY,
        name TEXT NOT NULL UNIQUE,
        value INTEGER NOT NULL,
        team TEXT
    )
    """
    db.execute(conn, create_table)

    # Insert test data
    insert_data = """
    INSERT INTO test_table (name, value, team) VALUES
    ('Alice', 10, 'red'),
    ('Bob', 20, 'blue'),
    ('Charlie', 30, 'red')
    """
    db.execute(conn, insert_data)

    yield conn
    conn.disconnect()
