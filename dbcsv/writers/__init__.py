# dbcsv/writers/__init__.py
"""
Converters that stream a database cursor to delimited text.

Example
-------
::
    import dbcsv.writers as writers

    # Quick export functions
    writers.to_csv(cursor, 'output.csv')
    text = writers.to_csv_string(cursor, delimiter='|')

    # Full control
    converter = writers.CSVConverter(cursor, byte_encoding=writers.ByteEncoding.HEX)
    converter.set_row_preprocessor(drop_test_accounts)
    converter.write_file('accounts.csv')
"""

from .formatting import ByteEncoding, FormatOptions, to_string
from .base import BaseConverter, RowSink, RowPreProcessor
from .csv import to_csv, to_csv_string, CSVConverter, CSVSink

__all__ = ['to_csv', 'to_csv_string', 'CSVConverter', 'CSVSink',
           'BaseConverter', 'RowSink', 'RowPreProcessor',
           'ByteEncoding', 'FormatOptions', 'to_string']
