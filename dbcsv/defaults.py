# dbcsv/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'write_headers': True,
    'delimiter': ',',
    'line_terminator': '\n',
    'encoding': 'utf-8',       # text encoding for byte streams, files and raw byte values
    'byte_encoding': 'string',  # see dbcsv.writers.formatting.ByteEncoding
    'time_format': None,       # strftime template, None for the built-in representation
    'float_format': None,      # '%.2f', '{:.2f}' or '.2f', None for shortest round-trip
    'default_timezone': 'UTC',  # zone assumed for naive datetimes
    'logging': {
        'directory': './logs',
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'split_errors': True,
        'console': True,
        'retention_days': 30,
    }
}
