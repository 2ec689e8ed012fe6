"""
Unit tests for the fixed-length reader and writer (flatseq.stream.fixedlength)
and the reader/writer factories (flatseq.stream).
"""

import io

import pytest

from flatseq.config import ReaderConfig
from flatseq.exceptions import ConfigValidationError, MalformedInputError
from flatseq.stream import (
    CsvReader,
    CsvWriter,
    DelimitedReader,
    FixedLengthReader,
    FixedLengthWriter,
    create_reader,
    create_writer,
)


# ---------------------------------------------------------------------------
# FixedLengthReader
# ---------------------------------------------------------------------------

class TestFixedLengthReader:

    def test_whole_line_without_widths(self):
        reader = FixedLengthReader.from_string("HELLO WORLD\n")
        assert reader.read().fields == ("HELLO WORLD",)

    def test_widths_with_remainder(self):
        reader = FixedLengthReader.from_string("H001rest of line\n", widths=[1, 3])
        assert reader.read().fields == ("H", "001", "rest of line")

    def test_exact_width_has_no_remainder(self):
        reader = FixedLengthReader.from_string("H001\n", widths=[1, 3])
        assert reader.read().fields == ("H", "001")

    def test_short_line(self):
        reader = FixedLengthReader.from_string("H0\n\n", widths=[1, 3])
        assert reader.read().fields == ("H", "0")
        assert reader.read().fields == ("", "")

    def test_line_continuation(self):
        reader = FixedLengthReader.from_string("AB\\\nCD\\\nEF\nGH\n", line_continuation="\\")
        first = reader.read()
        assert first.fields == ("ABCDEF",)
        assert first.text == "AB\\\nCD\\\nEF"
        second = reader.read()
        assert (second.fields, second.line_number) == (("GH",), 4)

    def test_continuation_at_end_of_stream(self):
        reader = FixedLengthReader.from_string("AB\\\n", line_continuation="\\")
        with pytest.raises(MalformedInputError, match="line continuation"):
            reader.read()

    def test_non_positive_width(self):
        with pytest.raises(ValueError, match="positive"):
            FixedLengthReader.from_string("", widths=[2, 0])


# ---------------------------------------------------------------------------
# FixedLengthWriter
# ---------------------------------------------------------------------------

class TestFixedLengthWriter:

    def test_pads_and_truncates(self):
        out = io.StringIO()
        FixedLengthWriter(out, widths=[2, 3]).write(["a", "bcdef"])
        assert out.getvalue() == "a bcd\n"

    def test_missing_fields_padded(self):
        out = io.StringIO()
        FixedLengthWriter(out, widths=[1, 3], padding="0").write(["H"])
        assert out.getvalue() == "H000\n"

    def test_extra_fields_appended(self):
        out = io.StringIO()
        FixedLengthWriter(out, widths=[1, 1]).write(["a", "b", "tail"])
        assert out.getvalue() == "abtail\n"

    def test_without_widths(self):
        out = io.StringIO()
        writer = FixedLengthWriter(out)
        writer.write(["abc"])
        writer.write(["def"])
        assert out.getvalue() == "abc\ndef\n"
        assert writer.line_number == 2


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class TestFactories:

    def test_reader_defaults(self):
        reader = create_reader("delimited", io.StringIO("a\tb\n"))
        assert isinstance(reader, DelimitedReader)
        assert reader.read().fields == ("a", "b")

    def test_reader_options_passed(self):
        reader = create_reader(
            "csv", io.StringIO("a;b\n"), ReaderConfig(delimiter=";", multiline=True)
        )
        assert isinstance(reader, CsvReader)
        assert reader.multiline
        assert reader.read().fields == ("a", "b")

    def test_unset_options_keep_reader_defaults(self):
        reader = create_reader("csv", io.StringIO(""), ReaderConfig(delimiter="|"))
        assert reader.quote == '"'
        assert reader.escape == '"'

    def test_writer_only_option_ignored_by_reader(self):
        reader = create_reader("csv", io.StringIO(""), ReaderConfig(always_quote=True))
        assert isinstance(reader, CsvReader)

    def test_writer_options_passed(self):
        out = io.StringIO()
        writer = create_writer("csv", out, ReaderConfig(always_quote=True, multiline=True))
        assert isinstance(writer, CsvWriter)
        writer.write(["a"])
        assert out.getvalue() == '"a"\n'

    def test_fixedlength_widths(self):
        reader = create_reader("fixedlength", io.StringIO("H12\n"), ReaderConfig(widths=[1]))
        assert isinstance(reader, FixedLengthReader)
        assert reader.read().fields == ("H", "12")

    def test_option_unknown_to_format(self):
        with pytest.raises(ConfigValidationError, match="widths"):
            create_reader("csv", io.StringIO(""), ReaderConfig(widths=[1]))

    def test_unsupported_format(self):
        with pytest.raises(ConfigValidationError, match="Unsupported stream format"):
            create_reader("xml", io.StringIO(""))

    def test_writer_for_fixedlength(self):
        out = io.StringIO()
        writer = create_writer("fixedlength", out, ReaderConfig(widths=[2], padding="_"))
        assert isinstance(writer, FixedLengthWriter)
        writer.write(["a"])
        assert out.getvalue() == "a_\n"
