# dbcsv/cursors.py
"""
Cursor adapters that present any result source as a forward-only sequence of
rows with fixed column names.

The converter only talks to :class:`ResultCursor`. PEP 249 cursors (sqlite3,
psycopg, oracledb, ...) are wrapped by :class:`DBAPICursor` and in-memory data
by :class:`IterableCursor`; :func:`open_cursor` picks the right one.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator, List, Optional

from .errors import DecodeError, MetadataError

logger = logging.getLogger(__name__)
__all__ = ['ResultCursor', 'DBAPICursor', 'IterableCursor', 'open_cursor']

# IterableCursor read-ahead markers; a None row is data, not end of input
_UNREAD = object()
_END = object()

# Fetch failures that mean "this row's values could not be converted" rather
# than "the result set itself broke".
DECODE_ERRORS = (ValueError, TypeError, OverflowError, UnicodeDecodeError)


def _is_decode_error(error: Exception) -> bool:
    if isinstance(error, DECODE_ERRORS):
        return True
    # PEP 249 drivers each define their own DataError class
    return any(cls.__name__ == 'DataError' for cls in type(error).__mro__)


class ResultCursor(ABC):
    """
    Forward-only source of decoded rows.

    Subclasses implement :meth:`columns` and :meth:`fetchone`. Iteration ends
    when ``fetchone`` returns None; a fault that ended iteration early is
    reported afterwards by :meth:`terminal_error`.

    Example
    -------
    ::

        cursor = open_cursor(db_cursor)
        print(cursor.columns())
        for row in cursor:
            print(row)
        if cursor.terminal_error():
            raise cursor.terminal_error()
    """

    def __init__(self):
        self._row_num = 0
        self._error: Optional[Exception] = None

    @abstractmethod
    def columns(self) -> List[str]:
        """Ordered column names, fixed for the whole result set."""

    @abstractmethod
    def fetchone(self) -> Optional[List[Any]]:
        """
        Return the next row as a list of values, or None when exhausted.

        Raises:
            DecodeError: If the row's values cannot be read
        """

    def terminal_error(self) -> Optional[Exception]:
        """Error that stopped iteration before the end of the result set, if any."""
        return self._error

    @property
    def row_num(self) -> int:
        """Number of rows fetched so far."""
        return self._row_num

    def __iter__(self) -> Iterator[List[Any]]:
        return self

    def __next__(self) -> List[Any]:
        row = self.fetchone()
        if row is None:
            raise StopIteration
        return row


class DBAPICursor(ResultCursor):
    """
    Adapter for PEP 249 database cursors.

    Column names come from ``columns()`` when the wrapped cursor provides it
    (wrapper cursors), otherwise from ``description``. Rows may be
    sequences, mappings (``dict``, ``sqlite3.Row``) or namedtuples.

    Parameters
    ----------
    cursor
        A cursor on which a query has already been executed.

    Example
    -------
    ::

        import sqlite3
        conn = sqlite3.connect('app.db')
        cur = conn.execute('SELECT id, name FROM users')
        for row in DBAPICursor(cur):
            ...
    """

    def __init__(self, cursor):
        super().__init__()
        self._cursor = cursor
        self._columns: Optional[List[str]] = None

    @property
    def cursor(self):
        """The wrapped database cursor."""
        return self._cursor

    def columns(self) -> List[str]:
        if self._columns is None:
            try:
                if callable(getattr(self._cursor, 'columns', None)):
                    columns = list(self._cursor.columns())
                else:
                    description = self._cursor.description
                    if description is None:
                        raise MetadataError("Cursor has no result set; execute a query first")
                    columns = [col[0] for col in description]
            except MetadataError:
                raise
            except Exception as e:
                raise MetadataError(f"Unable to read column names: {e}") from e
            self._columns = [str(col) for col in columns]
        return self._columns

    def _decode(self, raw) -> List[Any]:
        columns = self.columns()
        if hasattr(raw, 'keys') and callable(raw.keys) and not hasattr(raw, '_fields'):
            keys = list(raw.keys())
            if keys == columns:
                values = [raw[key] for key in keys]
            else:
                try:
                    values = [raw[col] for col in columns]
                except (KeyError, IndexError) as e:
                    raise DecodeError(f"Row {self._row_num} is missing column {e}", self._row_num) from e
        else:
            try:
                values = list(raw)
            except TypeError as e:
                raise DecodeError(f"Row {self._row_num} is not a sequence: {type(raw).__name__}",
                                  self._row_num) from e

        if len(values) != len(columns):
            raise DecodeError(
                f"Row {self._row_num} has {len(values)} values, expected {len(columns)}",
                self._row_num
            )
        return values

    def fetchone(self) -> Optional[List[Any]]:
        if self._error is not None:
            return None
        try:
            raw = self._cursor.fetchone()
        except Exception as e:
            if _is_decode_error(e):
                raise DecodeError(f"Unable to decode row {self._row_num + 1}: {e}", self._row_num + 1) from e
            logger.debug(f"Fetch failed after {self._row_num} rows: {e}")
            self._error = e
            return None
        if raw is None:
            return None
        self._row_num += 1
        return self._decode(raw)


class IterableCursor(ResultCursor):
    """
    Adapter for in-memory rows: lists of lists, dicts, namedtuples, or any
    iterable producing them.

    Parameters
    ----------
    rows : iterable
        Row data.
    columns : List[str], optional
        Column names. If omitted they are taken from the first row's keys or
        ``_fields``; otherwise generated as col_001, col_002, ...

    Example
    -------
    ::

        cursor = IterableCursor([(1, 'Alice'), (2, 'Bob')], columns=['id', 'name'])
    """

    def __init__(self, rows: Iterable, columns: Optional[List[str]] = None):
        super().__init__()
        self._iterator = iter(rows)
        self._pending = _UNREAD
        self._columns = list(columns) if columns is not None else None

    def _peek(self):
        if self._pending is _UNREAD:
            self._pending = self._advance()
        return self._pending

    def _advance(self):
        if self._error is not None:
            return _END
        try:
            return next(self._iterator)
        except StopIteration:
            return _END
        except Exception as e:
            logger.debug(f"Row iterator failed after {self._row_num} rows: {e}")
            self._error = e
            return _END

    def columns(self) -> List[str]:
        if self._columns is None:
            first = self._peek()
            if first is _END:
                if self._error is not None:
                    raise MetadataError(f"Unable to read column names: {self._error}") from self._error
                self._columns = []
            elif hasattr(first, '_fields'):
                self._columns = list(first._fields)
            elif hasattr(first, 'keys'):
                self._columns = [str(key) for key in first.keys()]
            elif hasattr(first, '__len__'):
                self._columns = [f'col_{x:03d}' for x in range(1, len(first) + 1)]
            else:
                self._columns = []
        return self._columns

    def fetchone(self) -> Optional[List[Any]]:
        raw = self._peek()
        if raw is _END:
            return None
        columns = self.columns()
        self._pending = _UNREAD
        self._row_num += 1
        if hasattr(raw, 'keys') and not hasattr(raw, '_fields'):
            values = [raw.get(col) if hasattr(raw, 'get') else raw[col] for col in columns]
        else:
            try:
                values = list(raw)
            except TypeError as e:
                raise DecodeError(f"Row {self._row_num} is not a sequence: {type(raw).__name__}",
                                  self._row_num) from e
            if len(values) != len(columns):
                raise DecodeError(
                    f"Row {self._row_num} has {len(values)} values, expected {len(columns)}",
                    self._row_num
                )
        return values


def open_cursor(data, columns: Optional[List[str]] = None) -> ResultCursor:
    """
    Wrap a data source in the appropriate :class:`ResultCursor`.

    Args:
        data: ResultCursor, PEP 249 cursor, or iterable of rows
        columns: Column names for in-memory rows (ignored for cursors)

    Returns:
        ResultCursor

    Raises:
        TypeError: If data is not a cursor or iterable
    """
    if isinstance(data, ResultCursor):
        return data
    if hasattr(data, 'fetchone'):
        return DBAPICursor(data)
    if isinstance(data, (str, bytes)) or not hasattr(data, '__iter__'):
        raise TypeError(f"Expected a cursor or an iterable of rows, got {type(data).__name__}")
    return IterableCursor(data, columns)
