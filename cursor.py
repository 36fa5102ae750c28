import threading
from contextlib import contextmanager

from errors import TruncatedInput, UnexpectedEndOfInput
from utils import logger

CHUNK_SIZE = 16384  # 16KB
POOL_LIMIT = 8


class ByteCursor:
    """
    Forward-only reader over bencoded bytes.

    The source is either an in-memory bytes or bytearray, which is read in place,
    or a binary file-like object, which is pulled in CHUNK_SIZE reads into an
    internal buffer. Other bytes-like objects are copied to bytes once. Stream
    sources may be read past the end of the value being decoded.

    The stream buffer belongs to the cursor and is kept across reset(), so a
    pooled cursor reuses it.
    """
    def __init__(self, source=b""):
        self._spare = bytearray()
        self.reset(source)

    def reset(self, source=b""):
        """Points the cursor at a new source, dropping position and buffered bytes."""
        del self._spare[:]
        if isinstance(source, (bytes, bytearray)):
            self._buffer = source
            self._stream = None
        elif isinstance(source, memoryview):
            self._buffer = source.tobytes()
            self._stream = None
        else:
            self._buffer = self._spare
            self._stream = source
        self._index = 0
        self._offset = 0  # Absolute position of _buffer[0]

    @property
    def position(self):
        return self._offset + self._index

    def _fill(self):
        """Pulls one more chunk from the stream. Returns False once it is exhausted."""
        if self._stream is None:
            return False

        chunk = self._stream.read(CHUNK_SIZE)
        if not chunk:
            self._stream = None
            return False

        # Drop what has been consumed so the buffer does not grow with the input
        if self._index >= CHUNK_SIZE:
            del self._buffer[:self._index]
            self._offset += self._index
            self._index = 0

        self._buffer += chunk
        return True

    def _ensure(self, count):
        while len(self._buffer) - self._index < count:
            if not self._fill():
                return False
        return True

    def _end_position(self):
        return self._offset + len(self._buffer)

    def read_byte(self):
        if not self._ensure(1):
            raise UnexpectedEndOfInput("Unexpected end of bencoded data", self.position)
        byte = self._buffer[self._index]
        self._index += 1
        return byte

    def peek_byte(self):
        """Returns the next byte without consuming it, or None at the end of input."""
        if not self._ensure(1):
            return None
        return self._buffer[self._index]

    def read_until(self, delim: bytes) -> bytes:
        """Reads up to delim, consuming the delimiter but not returning it."""
        scanned = 0
        while True:
            end = self._buffer.find(delim, self._index + scanned)
            if end != -1:
                break
            scanned = len(self._buffer) - self._index
            if not self._fill():
                raise UnexpectedEndOfInput(
                    f"Missing {delim.decode('ascii')!r} delimiter", self._end_position()
                )

        data = bytes(self._buffer[self._index:end])
        self._index = end + 1
        return data

    def read_exact(self, count: int) -> bytes:
        if count < 0:
            raise ValueError(f"Cannot read a negative number of bytes: {count}")
        if not self._ensure(count):
            available = len(self._buffer) - self._index
            raise TruncatedInput(
                f"Expected {count} bytes, only {available} available", self.position
            )

        data = bytes(self._buffer[self._index:self._index + count])
        self._index += count
        return data

    def at_end(self):
        return self.peek_byte() is None


class CursorPool:
    """
    Keeps released cursors around so their buffers can be reused.
    A cursor is handed to one caller at a time and is reset on release.
    """
    def __init__(self, limit=POOL_LIMIT):
        self.limit = limit
        self._free = []
        self._lock = threading.Lock()

    def acquire(self, source):
        with self._lock:
            cursor = self._free.pop() if self._free else None

        if cursor is None:
            return ByteCursor(source)

        logger.debug("Reusing pooled byte cursor")
        cursor.reset(source)
        return cursor

    def release(self, cursor):
        cursor.reset()
        with self._lock:
            if len(self._free) < self.limit:
                self._free.append(cursor)

    def __len__(self):
        with self._lock:
            return len(self._free)

    @contextmanager
    def borrowed(self, source):
        """Yields a cursor for source. A ByteCursor passed in is used as is and not pooled."""
        if isinstance(source, ByteCursor):
            yield source
            return

        cursor = self.acquire(source)
        try:
            yield cursor
        finally:
            self.release(cursor)


cursor_pool = CursorPool()
