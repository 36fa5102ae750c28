from errors import NestingTooDeep, NonStringKey, UnexpectedToken
from tokens import (
    DEFAULT_MAX_DEPTH,
    DICT_MARKER,
    END_MARKER,
    INTEGER_MARKER,
    LIST_MARKER,
    NumberKind,
    is_digit,
)


class TargetDecoder:
    """
    Decodes one bencoded value into a Builder instead of a tree.

    Same grammar as bencoding.Decoder, but integer numerals only have to look
    like numbers: they are parsed as signed 64-bit, then unsigned 64-bit, then
    float, and the builder gets whichever worked. Each builder is committed
    once its value has been read completely.
    """
    def __init__(self, tokens, max_depth=DEFAULT_MAX_DEPTH):
        self._tokens = tokens
        self.max_depth = max_depth

    def decode(self, builder):
        self._decode_value(builder, 0)

    def _decode_value(self, builder, depth):
        marker = self._tokens.peek_marker()

        if marker == INTEGER_MARKER:
            self._decode_number(builder)
        elif marker == LIST_MARKER:
            self._decode_list(builder, depth + 1)
        elif marker == DICT_MARKER:
            self._decode_dict(builder, depth + 1)
        elif is_digit(marker):
            builder.set_string(self._tokens.read_string())
        else:
            raise UnexpectedToken(
                f"Unexpected character {bytes([marker])!r}", self._tokens.position
            )

        builder.commit()

    def _check_depth(self, depth):
        if depth > self.max_depth:
            raise NestingTooDeep(
                f"Nesting deeper than {self.max_depth} levels", self._tokens.position
            )

    def _decode_number(self, builder):
        self._tokens.read_marker()  # Skip 'i'
        kind, value = self._tokens.read_number()

        if kind is NumberKind.INTEGER:
            builder.set_integer(value)
        elif kind is NumberKind.UNSIGNED:
            builder.set_unsigned(value)
        else:
            builder.set_float(value)

    def _decode_list(self, builder, depth):
        self._check_depth(depth)
        self._tokens.read_marker()  # Skip 'l'
        builder.begin_list()

        index = 0
        while self._tokens.peek_marker() != END_MARKER:
            self._decode_value(builder.child_at(index), depth)
            index += 1
        self._tokens.read_marker()  # Skip 'e'

    def _decode_dict(self, builder, depth):
        self._check_depth(depth)
        self._tokens.read_marker()  # Skip 'd'
        builder.begin_map()

        while (marker := self._tokens.peek_marker()) != END_MARKER:
            if not is_digit(marker):
                raise NonStringKey(
                    f"Dictionary key must be a string, got {bytes([marker])!r}",
                    self._tokens.position,
                )
            key = self._tokens.read_string()
            self._decode_value(builder.child_for(key), depth)
        self._tokens.read_marker()  # Skip 'e'
