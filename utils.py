import hashlib
import logging

# Configure logging to look professional
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger("Bencodec")

TEXT_ENCODING = "utf-8"
# Keeps arbitrary bytes intact when a byte string is read as text and written back.
TEXT_ERRORS = "surrogateescape"


def sha1_hash(data: bytes) -> bytes:
    """Computes the SHA-1 hash of the given binary data."""
    return hashlib.sha1(data).digest()


def to_text(data: bytes) -> str:
    return data.decode(TEXT_ENCODING, TEXT_ERRORS)


def to_bytes(text: str) -> bytes:
    return text.encode(TEXT_ENCODING, TEXT_ERRORS)


def format_size(length):
    """Human readable size, e.g. 163.00 MB."""
    size = float(length)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024:
            return f"{size:.2f} {unit}"
        size /= 1024
    return f"{size:.2f} TB"
