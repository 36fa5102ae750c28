import sys
from contextlib import contextmanager
from urllib.parse import urlparse

import requests

from utils import logger

HTTP_TIMEOUT = 10


def is_url(location):
    return urlparse(location).scheme in ("http", "https")


@contextmanager
def open_source(location):
    """
    Opens bencoded input for reading and yields a binary file-like object.
    location is a local path, "-" for stdin, or an http(s) URL.
    """
    if location == "-":
        yield sys.stdin.buffer
        return

    if is_url(location):
        logger.debug(f"Fetching {location}")
        with requests.get(location, stream=True, timeout=HTTP_TIMEOUT) as response:
            response.raise_for_status()
            # Undo any gzip/deflate transfer encoding while streaming
            response.raw.decode_content = True
            yield response.raw
        return

    with open(location, 'rb') as f:
        yield f


def read_source(location) -> bytes:
    with open_source(location) as stream:
        return stream.read()
