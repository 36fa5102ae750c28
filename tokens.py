import math
import re
from enum import Enum

from errors import (
    InvalidInteger,
    InvalidStringLength,
    NonCanonical,
    UnexpectedEndOfInput,
)

INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1
UINT64_MAX = (1 << 64) - 1

INTEGER_MARKER = ord("i")
LIST_MARKER = ord("l")
DICT_MARKER = ord("d")
END_MARKER = ord("e")

# Containers nested deeper than this are rejected before the interpreter stack runs out
DEFAULT_MAX_DEPTH = 256

INTEGER_RE = re.compile(rb"[+-]?[0-9]+")
CANONICAL_INTEGER_RE = re.compile(rb"0|-?[1-9][0-9]*")
UNSIGNED_RE = re.compile(rb"[0-9]+")
FLOAT_RE = re.compile(
    rb"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|[+-]?(?:inf|infinity|nan)",
    re.IGNORECASE,
)
LENGTH_RE = re.compile(rb"-?[0-9]+")
CANONICAL_LENGTH_RE = re.compile(rb"0|[1-9][0-9]*")


class NumberKind(Enum):
    INTEGER = "integer"
    UNSIGNED = "unsigned"
    FLOAT = "float"


def is_digit(marker):
    return 0x30 <= marker <= 0x39


def parse_strict_integer(text: bytes, position=None, canonical=False) -> int:
    """
    Parses an integer numeral as a signed 64-bit value.
    Anything else, including decimals and out of range values, is an error.
    """
    if not INTEGER_RE.fullmatch(text):
        raise InvalidInteger(f"Invalid integer {text!r}", position)
    if canonical and not CANONICAL_INTEGER_RE.fullmatch(text):
        raise NonCanonical(f"Non-canonical integer {text!r}", position)

    value = int(text)
    if not INT64_MIN <= value <= INT64_MAX:
        raise InvalidInteger(f"Integer {text!r} does not fit in 64 bits", position)
    return value


def parse_lenient_number(text: bytes, position=None):
    """
    Parses a numeral that only has to look like a number.

    Tries a signed 64-bit integer, then an unsigned 64-bit integer, then a
    decimal float (scientific notation allowed). Returns (NumberKind, value).
    """
    if INTEGER_RE.fullmatch(text):
        value = int(text)
        if INT64_MIN <= value <= INT64_MAX:
            return NumberKind.INTEGER, value
        if UNSIGNED_RE.fullmatch(text) and value <= UINT64_MAX:
            return NumberKind.UNSIGNED, value

    if FLOAT_RE.fullmatch(text):
        value = float(text)
        # float() saturates to infinity where a range check should fail
        if not math.isinf(value) or b"inf" in text.lower():
            return NumberKind.FLOAT, value

    raise InvalidInteger(f"Invalid integer {text!r}", position)


class TokenReader:
    """Extracts bencode tokens (markers, numerals, string payloads) from a ByteCursor."""

    def __init__(self, cursor, canonical=False):
        self._cursor = cursor
        self.canonical = canonical

    @property
    def position(self):
        return self._cursor.position

    def read_marker(self):
        return self._cursor.read_byte()

    def peek_marker(self):
        marker = self._cursor.peek_byte()
        if marker is None:
            raise UnexpectedEndOfInput("Unexpected end of bencoded data", self.position)
        return marker

    def read_delimited(self, delim: bytes) -> bytes:
        return self._cursor.read_until(delim)

    def read_exact(self, count: int) -> bytes:
        return self._cursor.read_exact(count)

    def read_string_length(self) -> int:
        start = self.position
        text = self.read_delimited(b":")
        if not LENGTH_RE.fullmatch(text):
            raise InvalidStringLength(f"Invalid string length {text!r}", start)

        length = int(text)
        if length < 0:
            raise InvalidStringLength(f"Negative string length {length}", start)
        if length > INT64_MAX:
            raise InvalidStringLength(f"String length {length} is too large", start)
        if self.canonical and not CANONICAL_LENGTH_RE.fullmatch(text):
            raise NonCanonical(f"Non-canonical string length {text!r}", start)
        return length

    def read_string(self) -> bytes:
        """Reads a <length>:<bytes> token."""
        return self.read_exact(self.read_string_length())

    def read_integer(self) -> int:
        """Reads the numeral of an i...e token strictly. The i marker must already be consumed."""
        start = self.position
        return parse_strict_integer(self.read_delimited(b"e"), start, self.canonical)

    def read_number(self):
        """Reads the numeral of an i...e token leniently. Returns (NumberKind, value)."""
        start = self.position
        return parse_lenient_number(self.read_delimited(b"e"), start)

    def at_end(self):
        return self._cursor.at_end()
