# dbcsv/__init__.py
"""
dbcsv - stream database query results to CSV

Turns any PEP 249 cursor (or in-memory rows) into CSV in a single pass:

- Per-type value formatting (bytes as text/base64/hex, fixed-notation floats,
  configurable date and float templates)
- Optional header override and row pre-processor hook
- Output to a string, any text or byte stream, or a file
- YAML-based configuration of defaults and script logging helpers

Basic usage::

    import sqlite3
    import dbcsv

    conn = sqlite3.connect('app.db')
    cursor = conn.execute("SELECT * FROM users")
    dbcsv.to_csv(cursor, 'users.csv')

Customized::

    converter = dbcsv.CSVConverter(cursor, delimiter=';', float_format='%.2f',
                                   byte_encoding=dbcsv.ByteEncoding.BASE64)
    converter.set_row_preprocessor(lambda row, columns: (row[0] != '', row))
    text = converter.write_string()
"""

__version__ = '0.1.0'

from .config import set_config_file, get_setting
from .cursors import ResultCursor, DBAPICursor, IterableCursor, open_cursor
from .errors import (ConversionError, MetadataError, DecodeError, WriteError,
                     IterationError, FileCreationError, FileCloseError)
from .logging_utils import setup_logging, errors_logged, cleanup_old_logs
from .writers import CSVConverter, ByteEncoding, FormatOptions, to_csv, to_csv_string, to_string
from . import writers

__all__ = [
    'set_config_file',
    'get_setting',
    'ResultCursor',
    'DBAPICursor',
    'IterableCursor',
    'open_cursor',
    'ConversionError',
    'MetadataError',
    'DecodeError',
    'WriteError',
    'IterationError',
    'FileCreationError',
    'FileCloseError',
    'CSVConverter',
    'ByteEncoding',
    'FormatOptions',
    'to_csv',
    'to_csv_string',
    'to_string',
    'writers',
    'setup_logging',
    'errors_logged',
    'cleanup_old_logs',
]
