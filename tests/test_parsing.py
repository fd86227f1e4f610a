"""
Unit tests for line parsing and file scanning helpers.
"""
import pytest

from bulkload.core.parsing import (
    count_file_lines,
    parse_line,
    read_first_line,
    read_header,
)


class TestParseLine:
    """Test suite for parse_line."""

    def test_quoted_delimiter_is_literal(self):
        assert parse_line('a,"b,c",d') == ["a", "b,c", "d"]

    def test_plain_fields(self):
        assert parse_line("1,Alice,engineering") == ["1", "Alice", "engineering"]

    def test_empty_fields_are_kept(self):
        assert parse_line("a,,b,") == ["a", "", "b", ""]

    def test_empty_line_is_one_empty_field(self):
        assert parse_line("") == [""]

    def test_unterminated_quote_emits_remaining_text(self):
        assert parse_line('a,"b,c') == ["a", "b,c"]

    def test_quote_characters_are_not_emitted(self):
        assert parse_line('"x"y,z') == ["xy", "z"]

    @pytest.mark.parametrize("line,delimiter,expected", [
        ("a;b;c", ";", ["a", "b", "c"]),
        ('a;"b;c"', ";", ["a", "b;c"]),
        ("a,b", ";", ["a,b"]),
    ])
    def test_custom_delimiter(self, line, delimiter, expected):
        assert parse_line(line, delimiter=delimiter) == expected


class TestFileHelpers:
    """Test suite for header reading and line counting."""

    def test_read_first_line_strips_bom_and_crlf(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes("\ufeffid,name\r\n1,Alice\r\n".encode("utf-8"))

        assert read_first_line(str(path)) == "id,name"

    def test_read_header_trims_column_names(self, write_csv):
        path = write_csv(["id , name", "1,Alice"])

        assert read_header(path) == ["id", "name"]

    def test_read_header_of_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")

        assert read_header(str(path)) == []

    def test_count_lines_with_trailing_newline(self, write_csv):
        path = write_csv(["id,name", "1,a", "2,b"])

        assert count_file_lines(path) == 3

    def test_count_lines_without_trailing_newline(self, write_csv):
        path = write_csv(["id,name", "1,a", "2,b"], trailing_newline=False)

        assert count_file_lines(path) == 3

    def test_count_lines_of_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")

        assert count_file_lines(str(path)) == 0
