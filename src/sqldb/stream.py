"""
Lazy row sequences.

A `RowStream` pulls one row from the driver per `next()` call, shapes it
and hands it on. The statement is released as soon as the stream is
exhausted, closed, left via `with`, or garbage collected, so abandoning a
stream part way through never leaves a cursor open.
"""
import logging
from collections.abc import Callable, Iterator
from typing import Any, Generic, Self, TypeVar

from sqldb.driver import Driver, RowShape, Statement

__all__ = ['RowStream']

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RowStream(Iterator, Generic[T]):
    """Forward-only, single-pass iterator over an executed statement.

    Examples
        with cn.yield_all('select * from users') as rows:
            for row in rows:
                ...
    """

    def __init__(self, driver: Driver, statement: Statement,
                 shape: RowShape = RowShape.MAPPING,
                 transform: Callable[[Any], T] | None = None) -> None:
        self._closed = False
        self._driver = driver
        self._statement = statement
        self._shape = shape
        self._transform = transform
        self.pulled = 0

    def __iter__(self) -> Self:
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        try:
            row = self._driver.fetch_next(self._statement, self._shape)
        except Exception:
            self.close()
            raise
        if row is None:
            self.close()
            raise StopIteration
        self.pulled += 1
        return self._transform(row) if self._transform else row

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def __del__(self) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def statement(self) -> Statement:
        return self._statement

    def close(self) -> None:
        """Release the statement. Further pulls end the iteration."""
        if self._closed:
            return
        self._closed = True
        logger.debug(f'Releasing statement after {self.pulled} rows')
        self._driver.release(self._statement)
