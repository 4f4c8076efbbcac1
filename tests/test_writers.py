# tests/test_writers.py
"""
Tests for dbcsv writers: streaming a cursor out as CSV.
"""

import csv
import datetime as dt
import io
import logging
from collections import namedtuple
from unittest.mock import patch

import pytest

from dbcsv.errors import (DecodeError, FileCloseError, FileCreationError, IterationError,
                          MetadataError, WriteError)
from dbcsv.writers import ByteEncoding, CSVConverter, to_csv, to_csv_string

from conftest import FailingStream, FakeDBAPICursor, OperationalError


@pytest.fixture
def people():
    return FakeDBAPICursor(['id', 'name'], [(1, 'Alice'), (2, 'Bob')])


class TestCSVConverter:
    """End-to-end conversions."""

    def test_default_output(self, people):
        assert CSVConverter(people).write_string() == 'id,name\n1,Alice\n2,Bob\n'

    def test_sqlite_cursor(self, users_db):
        cursor = users_db.execute("SELECT id, name, score, avatar FROM users ORDER BY id")
        text = to_csv_string(cursor, byte_encoding=ByteEncoding.HEX)
        assert text == (
            'id,name,score,avatar\n'
            '1,Alice,12.5,abcd\n'
            '2,Bob,,\n'
            '3,"Carol, Jr.",100,6869\n'
        )

    def test_hex_column(self):
        cursor = FakeDBAPICursor(['id', 'name', 'blob'], [(1, 'Alice', bytes([0xAB, 0xCD]))])
        text = to_csv_string(cursor, byte_encoding='hex')
        assert text.splitlines()[1] == '1,Alice,abcd'

    def test_float_not_exponential(self):
        text = to_csv_string([(12.5,), (1e21,)], columns=['amount'])
        assert text == 'amount\n12.5\n1000000000000000000000\n'

    def test_float_format(self):
        text = to_csv_string([(3.14159,)], columns=['pi'], float_format='%.3f')
        assert text == 'pi\n3.142\n'

    def test_integer_float_format_with_infinity(self):
        rows = [(1.0,), (float('inf'),), (float('nan'),)]
        text = CSVConverter(rows, columns=['x'], float_format='%d').write_string()
        assert text == 'x\n1\n+Inf\nNaN\n'

    def test_time_format(self):
        rows = [(dt.datetime(2024, 3, 1, 8, 15),)]
        assert to_csv_string(rows, columns=['at'], time_format='%Y%m%d%H%M') == 'at\n202403010815\n'

    def test_default_datetime(self):
        rows = [(dt.datetime(2024, 3, 1, 8, 15),)]
        assert to_csv_string(rows, columns=['at']) == 'at\n2024-03-01 08:15:00 +0000 UTC\n'

    def test_timezone_option(self):
        rows = [(dt.datetime(2024, 3, 1, 8, 15),)]
        text = to_csv_string(rows, columns=['at'], timezone='-05:00')
        assert text == 'at\n2024-03-01 08:15:00 -0500 UTC-05:00\n'

    def test_quoting_is_csv_grammar(self):
        rows = [('has,comma', 'has "quote"', 'two\nlines', 'plain')]
        text = to_csv_string(rows, columns=['a', 'b', 'c', 'd'], write_headers=False)
        assert text == '"has,comma","has ""quote""","two\nlines",plain\n'
        assert list(csv.reader(io.StringIO(text))) == [list(rows[0])]

    def test_null_is_empty_cell(self):
        assert to_csv_string([(None, None)], columns=['a', 'b']) == 'a,b\n,\n'

    def test_row_count(self, people):
        converter = CSVConverter(people)
        converter.write_string()
        assert converter.row_count == 2

    def test_str(self, people):
        assert str(CSVConverter(people)) == 'id,name\n1,Alice\n2,Bob\n'

    def test_str_on_failure_is_empty(self):
        cursor = FakeDBAPICursor(None, [])
        assert str(CSVConverter(cursor)) == ''

    def test_forward_only(self, people):
        converter = CSVConverter(people)
        converter.write_string()
        assert converter.write_string() == 'id,name\n'

    def test_empty_result(self):
        assert to_csv_string(FakeDBAPICursor(['id'], [])) == 'id\n'


class TestHeaders:
    """Header row selection."""

    def test_override(self, people):
        text = to_csv_string(people, headers=['ID', 'Full Name'])
        assert text.splitlines()[0] == 'ID,Full Name'

    def test_override_not_checked_against_columns(self, people):
        text = to_csv_string(people, headers=['only_one'])
        assert text.splitlines() == ['only_one', '1,Alice', '2,Bob']

    def test_empty_override_uses_columns(self, people):
        assert to_csv_string(people, headers=[]).splitlines()[0] == 'id,name'

    def test_disabled(self, people):
        assert to_csv_string(people, write_headers=False) == '1,Alice\n2,Bob\n'

    def test_disabled_ignores_override(self, people):
        assert to_csv_string(people, write_headers=False, headers=['x', 'y']) == '1,Alice\n2,Bob\n'


class TestDelimiter:
    """Delimiter and csv dialect options."""

    def test_default_comma(self, people):
        assert CSVConverter(people).delimiter == ','

    def test_tab(self, people):
        assert to_csv_string(people, delimiter='\t') == 'id\tname\n1\tAlice\n2\tBob\n'

    def test_delimiter_quoted_in_values(self):
        text = to_csv_string([('a;b', 'c')], columns=['x', 'y'], delimiter=';', write_headers=False)
        assert text == '"a;b";c\n'

    @pytest.mark.parametrize('delimiter', ['', ';;', '"', '\n', '\r', 5])
    def test_invalid(self, people, delimiter):
        with pytest.raises(ValueError, match='Invalid delimiter'):
            CSVConverter(people, delimiter=delimiter)

    def test_line_terminator(self, people):
        assert to_csv_string(people, line_terminator='\r\n') == 'id,name\r\n1,Alice\r\n2,Bob\r\n'

    def test_csv_kwargs(self):
        text = to_csv_string([('a', 1)], columns=['x', 'y'], quoting=csv.QUOTE_ALL, write_headers=False)
        assert text == '"a","1"\n'

    def test_bad_csv_kwargs(self, people):
        with pytest.raises(ValueError, match='Invalid csv options'):
            CSVConverter(people, quoting=99)


class TestRowPreProcessor:
    """Row filtering and rewriting."""

    def test_skip_all(self, people):
        converter = CSVConverter(people)
        converter.set_row_preprocessor(lambda row, columns: (False, row))
        assert converter.write_string() == 'id,name\n'
        assert converter.row_count == 0

    def test_skip_all_without_headers(self, people):
        text = to_csv_string(people, write_headers=False, row_preprocessor=lambda row, columns: (False, row))
        assert text == ''

    def test_filter(self, people):
        text = to_csv_string(people, row_preprocessor=lambda row, columns: (row[1] != 'Alice', row))
        assert text == 'id,name\n2,Bob\n'

    def test_rewrite_with_different_width(self, people):
        def shout(row, columns):
            return True, [value.upper() for value in row] + [str(len(columns))]

        assert to_csv_string(people, row_preprocessor=shout) == 'id,name\n1,ALICE,2\n2,BOB,2\n'

    def test_receives_formatted_strings_and_columns(self):
        seen = []

        def record(row, columns):
            seen.append((row, columns))
            return True, row

        to_csv_string([(1, None, True)], columns=['a', 'b', 'c'], row_preprocessor=record)
        assert seen == [(['1', '', 'true'], ['a', 'b', 'c'])]

    def test_remove(self, people):
        converter = CSVConverter(people, row_preprocessor=lambda row, columns: (False, row))
        converter.set_row_preprocessor(None)
        assert converter.write_string() == 'id,name\n1,Alice\n2,Bob\n'

    def test_exception_propagates(self, people):
        def explode(row, columns):
            raise KeyError('boom')

        with pytest.raises(KeyError):
            to_csv_string(people, row_preprocessor=explode)


class TestErrors:
    """Fail-fast behavior."""

    def test_decode_failure_on_second_row(self):
        cursor = FakeDBAPICursor(['id', 'name'], [(1, 'Alice'), ValueError('bad value'), (3, 'Carol')])
        stream = io.StringIO()
        with pytest.raises(DecodeError) as exc_info:
            CSVConverter(cursor).write(stream)
        assert stream.getvalue() == 'id,name\n1,Alice\n'
        assert exc_info.value.row_num == 2
        assert cursor.fetch_calls == 2

    def test_none_row_in_memory_data(self):
        stream = io.StringIO()
        with pytest.raises(DecodeError) as exc_info:
            CSVConverter([(1,), None, (3,)], columns=['id']).write(stream)
        assert stream.getvalue() == 'id\n1\n'
        assert exc_info.value.row_num == 2

    def test_metadata_failure_writes_nothing(self):
        stream = io.StringIO()
        with pytest.raises(MetadataError):
            CSVConverter(FakeDBAPICursor(None, [(1,)])).write(stream)
        assert stream.getvalue() == ''

    def test_header_write_failure(self, people):
        with pytest.raises(WriteError, match='failed to write headers'):
            CSVConverter(people).write(FailingStream(limit=0))

    def test_row_write_failure(self, people):
        stream = FailingStream(limit=2)
        with pytest.raises(WriteError, match='failed to write data row') as exc_info:
            CSVConverter(people).write(stream)
        assert isinstance(exc_info.value.__cause__, OSError)
        assert stream.getvalue() == 'id,name\n1,Alice\n'

    def test_flush_on_failure(self, people):
        stream = FailingStream(limit=2)
        with pytest.raises(WriteError):
            CSVConverter(people).write(stream)
        assert stream.flushed == 1

    def test_flush_on_success(self, people):
        stream = FailingStream(limit=10)
        CSVConverter(people).write(stream)
        assert stream.flushed == 1

    def test_terminal_error(self):
        error = OperationalError('connection reset')
        cursor = FakeDBAPICursor(['id'], [(1,), error])
        stream = io.StringIO()
        with pytest.raises(IterationError, match='connection reset') as exc_info:
            CSVConverter(cursor).write(stream)
        assert exc_info.value.__cause__ is error
        assert stream.getvalue() == 'id\n1\n'

    def test_failure_is_logged(self, people, caplog):
        with caplog.at_level(logging.ERROR, logger='dbcsv'):
            with pytest.raises(WriteError):
                CSVConverter(people).write(FailingStream(limit=1))
        assert 'after 0 rows' in caplog.text

    def test_success_is_logged(self, people, caplog):
        with caplog.at_level(logging.INFO, logger='dbcsv'):
            CSVConverter(people).write_string()
        assert 'Wrote 2 rows to string' in caplog.text


class TestDestinations:
    """Strings, streams and files."""

    def test_byte_stream(self, people):
        stream = io.BytesIO()
        rows = CSVConverter(people).write(stream)
        assert rows == 2
        assert stream.getvalue() == b'id,name\n1,Alice\n2,Bob\n'

    def test_byte_stream_with_encoding_attribute(self):
        class EncodedBytesIO(io.BytesIO):
            encoding = 'latin-1'

        stream = EncodedBytesIO()
        CSVConverter([('café',)], columns=['name']).write(stream)
        assert stream.getvalue() == 'name\ncafé\n'.encode('utf-8')

    def test_byte_stream_encoding(self):
        stream = io.BytesIO()
        CSVConverter([('café',)], columns=['name'], encoding='latin-1').write(stream)
        assert stream.getvalue() == 'name\ncafé\n'.encode('latin-1')

    def test_text_stream_left_open(self, people):
        stream = io.StringIO()
        CSVConverter(people).write(stream)
        assert not stream.closed

    def test_write_file(self, tmp_path, people):
        output_file = tmp_path / 'people.csv'
        assert CSVConverter(people).write_file(output_file) == 2
        assert output_file.read_text(encoding='utf-8') == 'id,name\n1,Alice\n2,Bob\n'

    def test_write_file_keeps_rows_before_failure(self, tmp_path):
        cursor = FakeDBAPICursor(['id'], [(1,), (2,), ValueError('bad')])
        output_file = tmp_path / 'partial.csv'
        with pytest.raises(DecodeError):
            CSVConverter(cursor).write_file(output_file)
        assert output_file.read_text(encoding='utf-8') == 'id\n1\n2\n'

    def test_write_file_closes_on_failure(self, tmp_path):
        cursor = FakeDBAPICursor(['id'], [ValueError('bad')])
        handles = []
        real_open = open

        def tracking_open(*args, **kwargs):
            handle = real_open(*args, **kwargs)
            handles.append(handle)
            return handle

        with patch('builtins.open', tracking_open):
            with pytest.raises(DecodeError):
                CSVConverter(cursor).write_file(tmp_path / 'out.csv')
        assert len(handles) == 1 and handles[0].closed

    def test_write_file_creation_error(self, tmp_path, people):
        with pytest.raises(FileCreationError):
            CSVConverter(people).write_file(tmp_path / 'missing' / 'dir' / 'out.csv')

    def test_write_file_close_error(self, tmp_path, people):
        class BadClose(io.StringIO):
            def close(self):
                was_open = not self.closed
                super().close()
                if was_open:
                    raise OSError('close failed')

        with patch('builtins.open', lambda *args, **kwargs: BadClose()):
            with pytest.raises(FileCloseError, match='close failed'):
                CSVConverter(people).write_file(tmp_path / 'out.csv')

    def test_to_csv_path(self, tmp_path, people):
        output_file = tmp_path / 'people.csv'
        assert to_csv(people, str(output_file)) == 2
        assert output_file.read_text(encoding='utf-8').startswith('id,name\n')

    def test_to_csv_stream(self, people):
        stream = io.StringIO()
        to_csv(people, stream, write_headers=False)
        assert stream.getvalue() == '1,Alice\n2,Bob\n'

    def test_to_csv_stdout(self, people, capsys):
        to_csv(people)
        assert capsys.readouterr().out == 'id,name\n1,Alice\n2,Bob\n'


class TestDataSources:
    """Non-cursor inputs accepted by converters."""

    def test_dicts(self):
        rows = [{'id': 1, 'name': 'Alice'}, {'id': 2, 'name': 'Bob'}]
        assert to_csv_string(rows) == 'id,name\n1,Alice\n2,Bob\n'

    def test_namedtuples(self):
        Person = namedtuple('Person', ['id', 'name'])
        assert to_csv_string([Person(1, 'Alice')]) == 'id,name\n1,Alice\n'

    def test_lists_without_columns(self):
        assert to_csv_string([[1, 'a']]) == 'col_001,col_002\n1,a\n'

    def test_rejects_scalars(self):
        with pytest.raises(TypeError):
            CSVConverter(42)
