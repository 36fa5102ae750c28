import io
from collections.abc import Mapping
from functools import partial
from typing import Any

from builders import MapBuilder, RecordBuilder, SequenceBuilder, builder_for
from cursor import cursor_pool
from errors import EncodeError, NestingTooDeep, NonCanonical, NonStringKey, UnexpectedToken, UnsupportedType
from records import is_empty, is_record, record_layout, zero_value
from target_decoder import TargetDecoder
from tokens import (
    DEFAULT_MAX_DEPTH,
    DICT_MARKER,
    END_MARKER,
    INTEGER_MARKER,
    LIST_MARKER,
    TokenReader,
    is_digit,
)
from utils import logger, to_bytes


class Decoder:
    """
    Decodes bencoded data (d, l, i, s) into a generic tree:
    int, bytes, list, and dict keyed by bytes.
    Uses a recursive descent parser with one byte of lookahead.

    Integers must be plain signed 64-bit numerals; anything else is an error.
    With canonical=True the input must also be in canonical form: no leading
    zeros, no "-0", keys in ascending order and nothing after the value.
    """
    def __init__(self, source, canonical=False, max_depth=DEFAULT_MAX_DEPTH):
        self._source = source
        self.canonical = canonical
        self.max_depth = max_depth
        self._tokens = None

    def decode(self):
        """Main entry point for decoding."""
        with cursor_pool.borrowed(self._source) as cursor:
            self._tokens = TokenReader(cursor, self.canonical)
            try:
                value = self._decode_value(0)
                if self.canonical and not self._tokens.at_end():
                    raise NonCanonical("Trailing data after bencoded value", self._tokens.position)
                logger.debug(f"Decoded {type(value).__name__} ending at byte {self._tokens.position}")
            finally:
                self._tokens = None
        return value

    def _decode_value(self, depth):
        marker = self._tokens.peek_marker()

        if marker == INTEGER_MARKER:
            return self._decode_int()
        elif marker == LIST_MARKER:
            return self._decode_list(depth + 1)
        elif marker == DICT_MARKER:
            return self._decode_dict(depth + 1)
        elif is_digit(marker):
            return self._tokens.read_string()
        else:
            raise UnexpectedToken(
                f"Unexpected character {bytes([marker])!r}", self._tokens.position
            )

    def _check_depth(self, depth):
        if depth > self.max_depth:
            raise NestingTooDeep(
                f"Nesting deeper than {self.max_depth} levels", self._tokens.position
            )

    def _decode_int(self):
        self._tokens.read_marker()  # Skip 'i'
        return self._tokens.read_integer()

    def _decode_list(self, depth):
        self._check_depth(depth)
        self._tokens.read_marker()  # Skip 'l'
        lst = []
        while self._tokens.peek_marker() != END_MARKER:
            lst.append(self._decode_value(depth))
        self._tokens.read_marker()  # Skip 'e'
        return lst

    def _decode_dict(self, depth):
        self._check_depth(depth)
        self._tokens.read_marker()  # Skip 'd'
        d = {}
        previous = None
        while self._tokens.peek_marker() != END_MARKER:
            start = self._tokens.position
            key = self._decode_value(depth)
            if not isinstance(key, bytes):
                raise NonStringKey("Dict keys must be strings", start)
            if self.canonical and previous is not None and key <= previous:
                raise NonCanonical(f"Dict key {key!r} is out of order", start)
            previous = key
            d[key] = self._decode_value(depth)
        self._tokens.read_marker()  # Skip 'e'
        return d


class Encoder:
    """
    Encodes Python objects into canonical bencoded bytes.

    str and bytes-like values become strings, int becomes an integer, list and
    tuple become lists, mappings and dataclass records become dictionaries with
    their keys sorted. None values inside dictionaries are left out.
    """
    def __init__(self, sink):
        self._write = sink.write

    @staticmethod
    def encode(data) -> bytes:
        buffer = io.BytesIO()
        Encoder(buffer).write(data)
        return buffer.getvalue()

    def write(self, data):
        # bool is an int and would otherwise slip through as i1e
        if data is None or isinstance(data, (bool, float)):
            raise UnsupportedType(type(data))

        if isinstance(data, str):
            self._write_string(to_bytes(data))
        elif isinstance(data, (bytes, bytearray, memoryview)):
            self._write_string(bytes(data))
        elif isinstance(data, int):
            self._write(b"i%de" % data)
        elif isinstance(data, (list, tuple)):
            self._write(b"l")
            for item in data:
                self.write(item)
            self._write(b"e")
        elif isinstance(data, Mapping):
            self._write_dict(self._mapping_items(data))
        elif is_record(data):
            self._write_dict(self._record_items(data))
        else:
            raise UnsupportedType(type(data))

    def _write_string(self, data: bytes):
        self._write(b"%d:" % len(data))
        self._write(data)

    def _write_dict(self, items):
        self._write(b"d")
        # Bencoding requires dict keys to be sorted by their raw bytes
        for key in sorted(items):
            value = items[key]
            if value is None:
                continue
            self._write_string(key)
            self.write(value)
        self._write(b"e")

    @staticmethod
    def _mapping_items(mapping):
        items = {}
        for key, value in mapping.items():
            if isinstance(key, str):
                raw_key = to_bytes(key)
            elif isinstance(key, (bytes, bytearray, memoryview)):
                raw_key = bytes(key)
            else:
                raise UnsupportedType(type(key))

            if raw_key in items:
                raise EncodeError(f"Duplicate dict key {raw_key!r}")
            items[raw_key] = value
        return items

    @staticmethod
    def _record_items(record):
        items = {}
        for field in record_layout(type(record)).fields:
            value = getattr(record, field.name)
            if field.omitempty and is_empty(value):
                continue
            items[to_bytes(field.key)] = value
        return items


def decode(source, *, canonical=False, max_depth=DEFAULT_MAX_DEPTH):
    """
    Decodes one value from bytes, a binary file object or a ByteCursor
    into a generic tree. See Decoder.
    """
    return Decoder(source, canonical, max_depth).decode()


def _replace_items(target, items):
    target[:] = items


def decode_into(source, target, *, item_type=Any, key_type=str, max_depth=DEFAULT_MAX_DEPTH):
    """
    Decodes one value into an existing target, which is updated in place.

    The target is a dataclass instance, a list (of item_type) or a dict
    (key_type to item_type). Dictionary keys are matched to record fields
    case-insensitively, and data the target has no place for is skipped.
    Integer numerals are parsed leniently, see TargetDecoder.
    """
    if is_record(target):
        builder = RecordBuilder(type(target), target)
    elif isinstance(target, list):
        builder = SequenceBuilder(item_type, target, partial(_replace_items, target))
    elif isinstance(target, dict):
        builder = MapBuilder(key_type, item_type, target)
    else:
        raise TypeError(
            f"Cannot decode into {type(target).__name__}: "
            "use a dataclass instance, list or dict, or decode_as()"
        )

    _decode_with(source, builder, max_depth)


def decode_as(source, hint, *, max_depth=DEFAULT_MAX_DEPTH):
    """
    Decodes one value into a new value of the declared type, e.g.
    decode_as(b"i7.5e", int) == 7 or decode_as(data, list[Email]).
    Returns the zero value of the type if the data does not fit it.
    """
    box = [zero_value(hint)]
    _decode_with(source, builder_for(hint, box[0], partial(box.__setitem__, 0)), max_depth)
    return box[0]


def _decode_with(source, builder, max_depth):
    with cursor_pool.borrowed(source) as cursor:
        tokens = TokenReader(cursor)
        TargetDecoder(tokens, max_depth).decode(builder)
        logger.debug(f"Decoded into {type(builder).__name__} ending at byte {tokens.position}")


def encode(data) -> bytes:
    """Encodes data into canonical bencoded bytes."""
    return Encoder.encode(data)


def dump(data, sink):
    """Writes the bencoding of data to a binary file-like sink."""
    Encoder(sink).write(data)
