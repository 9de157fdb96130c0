import pytest
from sqldb.connection import dispose_all_engines


@pytest.fixture(autouse=True)
def clear_engines():
    """Dispose registered engines after each test to ensure test isolation."""
    yield
    dispose_all_engines()


pytest_plugins = [
    'tests.fixtures.mocks',
    'tests.fixtures.sqlite',
]
