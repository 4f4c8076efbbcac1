# dbcsv/writers/csv.py

import csv
import io
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Union

from .base import BaseConverter, RowSink, RowPreProcessor
from ..config import get_setting

logger = logging.getLogger(__name__)


class CSVSink(RowSink):
    """Writes rows through :func:`csv.writer` (minimal quoting, doubled quotes)."""

    def __init__(self, stream: TextIO, delimiter: str = ',', **csv_kwargs):
        self.stream = stream
        self._writer = csv.writer(stream, delimiter=delimiter, **csv_kwargs)

    def write_row(self, row: Sequence[str]) -> None:
        self._writer.writerow(row)

    def flush(self) -> None:
        if hasattr(self.stream, 'flush'):
            self.stream.flush()


class CSVConverter(BaseConverter):
    """
    Converts a database cursor to CSV.

    Example
    -------
    ::

        cursor.execute("SELECT id, name, avatar FROM users")
        converter = CSVConverter(cursor, byte_encoding=ByteEncoding.BASE64)
        converter.set_row_preprocessor(lambda row, cols: (row[1] != '', row))
        converter.write_file('users.csv')
    """

    def __init__(self,
                 data,
                 headers: Optional[List[str]] = None,
                 write_headers: Optional[bool] = None,
                 time_format: Optional[str] = None,
                 float_format: Optional[str] = None,
                 delimiter: Optional[str] = None,
                 byte_encoding: Optional[str] = None,
                 row_preprocessor: Optional[RowPreProcessor] = None,
                 columns: Optional[List[str]] = None,
                 encoding: Optional[str] = None,
                 timezone: Optional[str] = None,
                 line_terminator: Optional[str] = None,
                 **csv_kwargs):
        """
        Initialize CSV converter.

        Args:
            data: Cursor object or list of records
            headers: Header row to use instead of the cursor's column names
            write_headers: Whether to include the header row
            time_format: strftime template for date/datetime values
            float_format: Template for float values ('%.2f', '{:.2f}' or '.2f')
            delimiter: Field delimiter, a single character. None means comma
            byte_encoding: How byte values are rendered (see ByteEncoding)
            row_preprocessor: fn(row, columns) -> (keep, row), applied to each row
            columns: Column names for list-of-lists data
            encoding: File encoding
            timezone: Zone assumed for naive datetimes
            line_terminator: Record terminator (default '\\n')
            **csv_kwargs: Additional arguments passed to csv.writer
        """
        super().__init__(data, headers=headers, write_headers=write_headers, time_format=time_format,
                         float_format=float_format, byte_encoding=byte_encoding,
                         row_preprocessor=row_preprocessor, columns=columns, encoding=encoding,
                         timezone=timezone)
        if delimiter is None:
            delimiter = get_setting('delimiter') or ','
        if not isinstance(delimiter, str) or len(delimiter) != 1 or delimiter in '"\r\n':
            raise ValueError(f"Invalid delimiter: {delimiter!r}")
        self.delimiter = delimiter

        csv_kwargs.setdefault('lineterminator', line_terminator or get_setting('line_terminator', '\n'))
        # surface bad dialect options here rather than mid-conversion
        try:
            csv.writer(io.StringIO(), delimiter=delimiter, **csv_kwargs)
        except (TypeError, ValueError, csv.Error) as e:
            raise ValueError(f"Invalid csv options {csv_kwargs}: {e}") from e
        self._format_kwargs = csv_kwargs

    def _open_sink(self, text_stream) -> CSVSink:
        return CSVSink(text_stream, delimiter=self.delimiter, **self._format_kwargs)


def to_csv(data,
           file: Optional[Union[str, Path, TextIO]] = None,
           **options) -> int:
    """
    Export cursor or result set to CSV.

    Args:
        data: Cursor object or list of records
        file: Output filename or stream. If None, writes to stdout
        **options: CSVConverter options (headers, delimiter, byte_encoding, ...)

    Returns:
        Number of data rows written

    Example:
        # Write to file
        to_csv(cursor, 'users.csv')

        # Write to stdout
        to_csv(cursor)

        # Custom delimiter
        to_csv(cursor, 'data.tsv', delimiter='\\t')
    """
    converter = CSVConverter(data, **options)
    if file is None:
        return converter.write(sys.stdout)
    if isinstance(file, (str, Path)):
        return converter.write_file(file)
    return converter.write(file)


def to_csv_string(data, **options) -> str:
    """
    Export cursor or result set to a CSV string.

    Example:
        text = to_csv_string(cursor, write_headers=False)
    """
    return CSVConverter(data, **options).write_string()
