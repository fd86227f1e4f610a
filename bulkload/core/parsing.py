"""
Line-level parsing of delimited text.

The parser is deliberately small: a quote character toggles "inside a
quoted field", the delimiter inside quotes is literal, and quote characters
are never emitted. It does not handle escaped quotes or fields spanning
several physical lines.
"""
from typing import List

DEFAULT_DELIMITER = ","
DEFAULT_QUOTE = '"'
BOM = "\ufeff"
_READ_BLOCK_SIZE = 1024 * 1024


def parse_line(line: str, delimiter: str = DEFAULT_DELIMITER, quote: str = DEFAULT_QUOTE) -> List[str]:
    """
    Split one line into its fields.

    An unterminated quote is not an error: whatever was accumulated when the
    line ends is emitted as the last field.

    >>> parse_line('a,"b,c",d')
    ['a', 'b,c', 'd']
    """
    fields = []
    current = []
    in_quotes = False

    for char in line:
        if char == quote:
            in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            fields.append("".join(current))
            current = []
        else:
            current.append(char)

    fields.append("".join(current))
    return fields


def strip_line_ending(line: str) -> str:
    return line.rstrip("\r\n")


def read_first_line(file_path: str, encoding: str = "utf-8") -> str:
    """Return the header line without its terminator or a leading BOM."""
    with open(file_path, "r", encoding=encoding, newline="") as handle:
        first = handle.readline()
    return strip_line_ending(first).lstrip(BOM)


def read_header(file_path: str, delimiter: str = DEFAULT_DELIMITER) -> List[str]:
    """Parse the header row into trimmed column names."""
    header_line = read_first_line(file_path)
    if not header_line:
        return []
    return [column.strip() for column in parse_line(header_line, delimiter)]


def count_file_lines(file_path: str) -> int:
    """
    Count lines by scanning the file in binary blocks.

    A final line without a trailing newline still counts; an empty file has
    zero lines.
    """
    count = 0
    last_byte = b""
    with open(file_path, "rb") as handle:
        while True:
            block = handle.read(_READ_BLOCK_SIZE)
            if not block:
                break
            count += block.count(b"\n")
            last_byte = block[-1:]

    if last_byte and last_byte != b"\n":
        count += 1
    return count
