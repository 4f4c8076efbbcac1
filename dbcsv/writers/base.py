# dbcsv/writers/base.py
"""
Base class for cursor converters: destination handling and the fail-fast
fetch/format/filter/write loop shared by every output format.
"""

import codecs
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from ..config import get_setting, get_timezone
from ..cursors import open_cursor
from ..errors import (DecodeError, FileCloseError, FileCreationError, IterationError,
                      MetadataError, WriteError)
from .formatting import FormatOptions, to_string

logger = logging.getLogger(__name__)

# (formatted row, column names) -> (keep, row to write)
RowPreProcessor = Callable[[List[str], List[str]], Tuple[bool, Sequence[str]]]


class RowSink(ABC):
    """Destination that accepts one row of strings at a time."""

    @abstractmethod
    def write_row(self, row: Sequence[str]) -> None:
        pass

    @abstractmethod
    def flush(self) -> None:
        pass


def _is_text_stream(stream) -> bool:
    if isinstance(stream, io.TextIOBase):
        return True
    if isinstance(stream, (io.RawIOBase, io.BufferedIOBase)):
        return False
    # duck-typed writers outside the io hierarchy declare their text encoding
    return hasattr(stream, 'encoding')


def _flush_quietly(sink: RowSink) -> None:
    try:
        sink.flush()
    except Exception as e:
        logger.warning(f"Flush after failed conversion also failed: {e}")


class BaseConverter(ABC):
    """
    Abstract base class for converting a result cursor to text output.

    A converter owns the formatting configuration, drives the cursor one row
    at a time, renders every value with :func:`~dbcsv.writers.formatting.to_string`,
    passes the row through the optional pre-processor and hands it to a
    :class:`RowSink`. The first failure aborts the conversion; rows already
    written are flushed and kept.

    Parameters
    ----------
    data
        Cursor or rows to convert. Accepts:

        * PEP 249 cursors with an executed query
        * :class:`~dbcsv.cursors.ResultCursor` instances
        * Lists or iterables of lists, dicts or namedtuples

    headers : List[str], optional
        Header row to write instead of the cursor's column names. Not checked
        against the column count.
    write_headers : bool, optional
        Whether to write a header row (default from settings, True).
    time_format : str, optional
        strftime template for date and datetime values.
    float_format : str, optional
        Template for float values, e.g. '%.2f'.
    byte_encoding : str, optional
        One of :class:`~dbcsv.writers.formatting.ByteEncoding`.
    row_preprocessor : callable, optional
        ``fn(row, columns) -> (keep, row)`` applied to each formatted row.
    columns : List[str], optional
        Column names for list-of-lists data.
    encoding : str, optional
        Encoding for files, byte streams and byte values (default 'utf-8').
    timezone : str, optional
        Zone assumed for naive datetimes (default from settings, UTC).

    Notes
    -----
    Subclasses must implement ``_open_sink()``. A converter wraps a
    forward-only cursor: converting twice writes the header only the second
    time.
    """

    def __init__(self,
                 data,
                 headers: Optional[List[str]] = None,
                 write_headers: Optional[bool] = None,
                 time_format: Optional[str] = None,
                 float_format: Optional[str] = None,
                 byte_encoding: Optional[str] = None,
                 row_preprocessor: Optional[RowPreProcessor] = None,
                 columns: Optional[List[str]] = None,
                 encoding: Optional[str] = None,
                 timezone: Optional[str] = None):
        self.cursor = open_cursor(data, columns)
        self.headers = list(headers) if headers else None
        if write_headers is None:
            write_headers = get_setting('write_headers', True)
        self.write_headers = bool(write_headers)
        self.encoding = encoding or get_setting('encoding', 'utf-8')
        self.options = FormatOptions(
            time_format=time_format or get_setting('time_format'),
            float_format=float_format or get_setting('float_format'),
            byte_encoding=byte_encoding or get_setting('byte_encoding', 'string'),
            encoding=self.encoding,
            timezone=get_timezone(timezone),
        )
        self._row_preprocessor = row_preprocessor
        self._row_num = 0

    @property
    def row_count(self) -> int:
        """Number of data rows written by the last conversion."""
        return self._row_num

    def set_row_preprocessor(self, preprocessor: Optional[RowPreProcessor]) -> None:
        """
        Set the hook applied to each row after formatting and before writing.

        The hook receives the formatted row and the column names and returns
        ``(keep, row)``. Rows with keep False are skipped; otherwise the
        returned row is written as-is, whatever its length. Pass None to
        remove the hook.
        """
        self._row_preprocessor = preprocessor

    def to_string(self, obj: Any) -> str:
        """Convert a database value to string using this converter's options."""
        return to_string(obj, self.options)

    @abstractmethod
    def _open_sink(self, text_stream) -> RowSink:
        """Create the format-specific sink writing to a text stream."""
        pass

    def _write_row(self, sink: RowSink, row: Sequence[str], failure: str) -> None:
        try:
            sink.write_row(row)
        except Exception as e:
            raise WriteError(f"{failure}: {e}") from e

    def _convert(self, sink: RowSink) -> None:
        """Stream every row of the cursor into the sink. Raises on the first failure."""
        try:
            columns = self.cursor.columns()
        except MetadataError:
            raise
        except Exception as e:
            raise MetadataError(f"Unable to read column names: {e}") from e

        if self.write_headers:
            self._write_row(sink, self.headers or columns, "failed to write headers")

        preprocessor = self._row_preprocessor
        fetched = 0
        while True:
            try:
                values = self.cursor.fetchone()
            except DecodeError:
                raise
            except Exception as e:
                raise DecodeError(f"Unable to decode row {fetched + 1}: {e}", fetched + 1) from e
            if values is None:
                break
            fetched += 1

            row = [self.to_string(value) for value in values]
            if preprocessor is not None:
                keep, row = preprocessor(row, columns)
                if not keep:
                    logger.debug(f"Row {fetched} skipped by pre-processor")
                    continue

            self._write_row(sink, row, "failed to write data row")
            self._row_num += 1

        error = self.cursor.terminal_error()
        if error is not None:
            raise IterationError(f"Cursor failed after {fetched} rows: {error}") from error

    def _run(self, text_stream, destination: str) -> int:
        self._row_num = 0
        sink = self._open_sink(text_stream)
        try:
            self._convert(sink)
        except Exception as e:
            logger.error(f"Error writing data to {destination} after {self._row_num} rows: {e}")
            _flush_quietly(sink)
            raise
        try:
            sink.flush()
        except Exception as e:
            raise WriteError(f"failed to flush output: {e}") from e
        logger.info(f"Wrote {self._row_num} rows to {destination}")
        return self._row_num

    def write(self, stream) -> int:
        """
        Write to a text or byte stream.

        Byte streams (anything that is not a text stream) receive the output
        encoded with this converter's encoding. The stream is flushed but not
        closed.

        Returns:
            Number of data rows written
        """
        destination = str(getattr(stream, 'name', None) or type(stream).__name__)
        if not _is_text_stream(stream):
            stream = codecs.getwriter(self.encoding)(stream)
        return self._run(stream, destination)

    def write_string(self) -> str:
        """Convert into memory and return the text. Only use this for modest result sets."""
        buffer = io.StringIO()
        self._run(buffer, 'string')
        return buffer.getvalue()

    def write_file(self, filename: Union[str, Path]) -> int:
        """
        Create (or truncate) a file and write to it.

        The file is closed on every path. Rows written before a failure remain
        in the file.

        Returns:
            Number of data rows written

        Raises:
            FileCreationError: If the file cannot be opened for writing
            FileCloseError: If closing the file fails after a successful write
        """
        try:
            file_obj = open(filename, 'w', encoding=self.encoding, newline='')
        except OSError as e:
            raise FileCreationError(f"Unable to create {filename}: {e}") from e

        try:
            rows = self._run(file_obj, str(filename))
        except Exception:
            try:
                file_obj.close()
            except OSError as e:
                logger.warning(f"Failed to close {filename}: {e}")
            raise

        try:
            file_obj.close()
        except OSError as e:
            raise FileCloseError(f"Unable to close {filename}: {e}") from e
        return rows

    def __str__(self) -> str:
        try:
            return self.write_string()
        except Exception as e:
            logger.warning(f"Conversion failed, returning empty string: {e}")
            return ''
