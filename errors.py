class BencodeError(Exception):
    pass


class DecodeError(BencodeError, ValueError):
    """Raised when bencoded input cannot be decoded."""

    def __init__(self, message, position=None):
        if position is not None:
            message = f"{message} (at byte {position})"
        super().__init__(message)
        self.position = position


class UnexpectedEndOfInput(DecodeError):
    pass


class TruncatedInput(UnexpectedEndOfInput):
    pass


class InvalidInteger(DecodeError):
    pass


class InvalidStringLength(DecodeError):
    pass


class NonStringKey(DecodeError):
    pass


class UnexpectedToken(DecodeError):
    pass


class NonCanonical(DecodeError):
    pass


class NestingTooDeep(DecodeError):
    pass


class EncodeError(BencodeError, ValueError):
    pass


class UnsupportedType(EncodeError, TypeError):
    def __init__(self, value_type):
        super().__init__(f"Cannot encode type: {value_type.__name__}")
        self.value_type = value_type
