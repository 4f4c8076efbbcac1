# dbcsv/errors.py
"""
Exceptions raised while converting a result set to CSV.

Every failure is fatal to the conversion it happened in. Rows written before
the failure stay in the (flushed) output.
"""

from typing import Optional

__all__ = ['ConversionError', 'MetadataError', 'DecodeError', 'WriteError',
           'IterationError', 'FileCreationError', 'FileCloseError']


class ConversionError(Exception):
    """Base class for all conversion failures."""


class MetadataError(ConversionError):
    """Column names could not be read from the cursor."""


class DecodeError(ConversionError):
    """A row's raw values could not be read into typed form."""

    def __init__(self, message: str, row_num: Optional[int] = None):
        super().__init__(message)
        self.row_num = row_num


class WriteError(ConversionError):
    """The sink rejected a header or data row."""


class IterationError(ConversionError):
    """The cursor reported a fault after its last row."""


class FileCreationError(ConversionError):
    """The output file could not be created."""


class FileCloseError(ConversionError):
    """The output file could not be closed."""
