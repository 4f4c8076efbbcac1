# dbcsv/writers/formatting.py
"""
Rendering of database values as CSV cell text.

Drivers hand back a small closed set of scalar types plus driver-specific
wrappers. :func:`to_string` checks the scalar types first, then objects that
know how to marshal themselves, then a generic JSON/str fallback, so every
value renders to *some* string.
"""

import base64
import binascii
import datetime as dt
import json
import logging
import math
import numbers
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

logger = logging.getLogger(__name__)
__all__ = ['ByteEncoding', 'FormatOptions', 'to_string', 'apply_float_format']


class ByteEncoding:
    """
    How byte values (BLOB, BYTEA, VARBINARY) are rendered.

    - STRING: decode the bytes as text
    - BASE64: standard base64 alphabet, padded (RFC 4648)
    - URL_BASE64: URL and filename safe alphabet, padded
    - RAW_BASE64: standard alphabet without ``=`` padding
    - RAW_URL_BASE64: URL safe alphabet without ``=`` padding
    - HEX: lowercase hex, two characters per byte

    Example:
        >>> to_csv(cursor, 'images.csv', byte_encoding=ByteEncoding.BASE64)
        >>> to_csv(cursor, 'hashes.csv', byte_encoding='hex')
    """
    STRING = 'string'
    BASE64 = 'base64'
    URL_BASE64 = 'base64url'
    RAW_BASE64 = 'base64raw'
    RAW_URL_BASE64 = 'base64urlraw'
    HEX = 'hex'
    DEFAULT = STRING

    @classmethod
    def values(cls):
        return [cls.STRING, cls.BASE64, cls.URL_BASE64, cls.RAW_BASE64, cls.RAW_URL_BASE64, cls.HEX]


@dataclass(frozen=True)
class FormatOptions:
    """
    Per-conversion formatting options, fixed for the whole run.

    Attributes:
        time_format: strftime template for dates and datetimes, None for the default
        float_format: '%.2f', '{:.2f}' or '.2f' style template, None for the shortest round-trip
        byte_encoding: One of the ByteEncoding values
        encoding: Text encoding used to decode bytes with ByteEncoding.STRING
        timezone: tzinfo assumed for naive datetimes
    """
    time_format: Optional[str] = None
    float_format: Optional[str] = None
    byte_encoding: str = ByteEncoding.DEFAULT
    encoding: str = 'utf-8'
    timezone: dt.tzinfo = dt.timezone.utc

    def __post_init__(self):
        if self.byte_encoding not in ByteEncoding.values():
            raise ValueError(f"Unsupported byte_encoding: {self.byte_encoding!r}. "
                             f"Expected one of {ByteEncoding.values()}")
        if self.float_format:
            try:
                apply_float_format(self.float_format, 0.0)
            except (TypeError, ValueError, KeyError, IndexError) as e:
                raise ValueError(f"Invalid float_format {self.float_format!r}: {e}") from e


DEFAULT_OPTIONS = FormatOptions()


def apply_float_format(template: str, value: float) -> str:
    """Apply a printf ('%.2f'), str.format ('{:.2f}') or format-spec ('.2f') template."""
    if '%' in template and '{' not in template:
        return template % value
    if '{' in template:
        return template.format(value)
    return format(value, template)


def _unquote(text: str) -> str:
    # strips one quote at each end, even when they don't pair up
    if text.startswith('"'):
        text = text[1:]
    if text.endswith('"'):
        text = text[:-1]
    return text


def _bytes_to_string(value: bytes, options: FormatOptions) -> str:
    encoding = options.byte_encoding
    if encoding == ByteEncoding.BASE64:
        return base64.b64encode(value).decode('ascii')
    elif encoding == ByteEncoding.URL_BASE64:
        return base64.urlsafe_b64encode(value).decode('ascii')
    elif encoding == ByteEncoding.RAW_BASE64:
        return base64.b64encode(value).decode('ascii').rstrip('=')
    elif encoding == ByteEncoding.RAW_URL_BASE64:
        return base64.urlsafe_b64encode(value).decode('ascii').rstrip('=')
    elif encoding == ByteEncoding.HEX:
        return binascii.hexlify(value).decode('ascii')
    return value.decode(options.encoding, errors='replace')


def _shortest_digits(value, number: float) -> str:
    digits = float.__repr__(number)
    if not isinstance(value, float):
        # single precision types print fewer digits than their widened float
        try:
            Decimal(str(value))
            digits = str(value)
        except (InvalidOperation, ValueError):
            pass
    return digits


def _float_to_string(value, options: FormatOptions) -> str:
    number = float(value)
    if options.float_format:
        try:
            return apply_float_format(options.float_format, number)
        except (TypeError, ValueError, OverflowError) as e:
            # integer templates like '%d' fail on NaN and Inf
            logger.debug(f"float_format {options.float_format!r} failed for {number!r}: {e}")
    if math.isnan(number):
        return 'NaN'
    if math.isinf(number):
        return '+Inf' if number > 0 else '-Inf'
    # shortest digits that round-trip; Decimal drops the exponent
    text = format(Decimal(_shortest_digits(value, number)), 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def _datetime_to_string(value: dt.datetime, options: FormatOptions) -> str:
    if value.tzinfo is None:
        tz = options.timezone
        value = tz.localize(value) if hasattr(tz, 'localize') else value.replace(tzinfo=tz)
    if options.time_format:
        return value.strftime(options.time_format)

    text = value.strftime('%Y-%m-%d %H:%M:%S')
    if value.microsecond:
        text += f'.{value.microsecond:06d}'.rstrip('0')
    text += value.strftime(' %z')
    zone = value.strftime('%Z')
    if zone:
        text += f' {zone}'
    return text


def _marshal_json(value: Any) -> Optional[str]:
    """Call the value's ``__json__`` hook; None if it fails."""
    try:
        data = value.__json__()
        if isinstance(data, (bytes, bytearray)):
            return bytes(data).decode('utf-8')
        if isinstance(data, str):
            return data
        return json.dumps(data, ensure_ascii=False, separators=(',', ':'))
    except Exception as e:
        logger.debug(f"__json__ failed for {type(value).__name__}: {e}")
        return None


def _has_own_str(value: Any) -> bool:
    return type(value).__str__ is not object.__str__


def to_string(value: Any, options: Optional[FormatOptions] = None) -> str:
    """
    Convert a database value to its CSV cell text.

    Never raises: values that match none of the known types fall back to JSON
    and finally to ``str()``.

    Args:
        value: Value as returned by the driver
        options: Formatting options, defaults apply when None

    Returns:
        String representation

    Example:
        >>> to_string(None)
        ''
        >>> to_string(12.5)
        '12.5'
        >>> to_string(b'\\xab\\xcd', FormatOptions(byte_encoding='hex'))
        'abcd'
    """
    if options is None:
        options = DEFAULT_OPTIONS

    if value is None:
        return ''
    elif isinstance(value, str):
        return value
    elif isinstance(value, (bytes, bytearray, memoryview)):
        return _bytes_to_string(bytes(value), options)
    elif isinstance(value, bool):
        return 'true' if value else 'false'
    elif isinstance(value, int):
        return str(int(value))
    elif isinstance(value, float):
        return _float_to_string(value, options)
    elif isinstance(value, numbers.Integral):
        return str(int(value))
    elif isinstance(value, numbers.Real):
        # numpy float32 and friends register as Real without subclassing float
        return _float_to_string(value, options)
    elif isinstance(value, Decimal):
        return format(value, 'f')
    elif isinstance(value, dt.datetime):
        return _datetime_to_string(value, options)
    elif isinstance(value, dt.date):
        return value.strftime(options.time_format) if options.time_format else value.isoformat()
    elif isinstance(value, dt.time):
        return value.strftime(options.time_format) if options.time_format else value.isoformat()

    if callable(getattr(value, '__json__', None)):
        text = _marshal_json(value)
        if text is not None:
            return _unquote(text)

    if _has_own_str(value):
        try:
            return str(value)
        except Exception as e:
            logger.debug(f"__str__ failed for {type(value).__name__}: {e}")

    try:
        return _unquote(json.dumps(value, ensure_ascii=False, separators=(',', ':')))
    except (TypeError, ValueError):
        pass
    try:
        return str(value)
    except Exception:
        return object.__repr__(value)
