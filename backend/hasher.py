"""Content identifiers for uploaded streams."""

import hashlib
from typing import BinaryIO, Final

from errors import IOFailure, UnsupportedAlgorithm

_CHUNK_SIZE: Final = 64 * 1024

SUPPORTED_ALGORITHMS: Final = ("md5", "sha1", "sha256", "sha512")


def content_identifier(stream: BinaryIO, algorithm: str = "md5") -> str:
    """Digest the whole stream and return the lowercase hex identifier.

    Only the stream content goes into the digest, so the same bytes always
    produce the same identifier. The stream is consumed; callers that want
    to read it again must seek back to the start themselves.

    Raises:
        UnsupportedAlgorithm: If ``algorithm`` is not one of
            ``SUPPORTED_ALGORITHMS``.
        IOFailure: If reading the stream fails.
    """
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise UnsupportedAlgorithm(algorithm)

    digest = hashlib.new(algorithm)
    try:
        for chunk in iter(lambda: stream.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    except (OSError, ValueError) as error:
        raise IOFailure(f"Failed to read stream: {error}") from error

    return digest.hexdigest()
