"""Fixed-size chunking of binary streams."""

from __future__ import annotations

from typing import BinaryIO, Iterator

from s3upload.services.base import ServiceError


class SourceStreamError(ServiceError):
    """The source stream could not be read as binary data."""


def read_chunk(stream: BinaryIO, chunk_size: int) -> bytes:
    """Read exactly ``chunk_size`` bytes, or fewer only at end of stream.

    ``read(n)`` may legally return short on raw and socket-backed streams,
    so reads are repeated until the chunk is full or EOF is reported.
    """
    buffer = bytearray()
    while len(buffer) < chunk_size:
        try:
            data = stream.read(chunk_size - len(buffer))
        except Exception as exc:
            raise SourceStreamError(f"Failed to read source stream: {exc}") from exc
        if data is None:
            raise SourceStreamError(
                "Source stream returned no data; non-blocking streams are not supported"
            )
        if isinstance(data, str):
            raise SourceStreamError("Source stream must be opened in binary mode")
        if not data:
            break
        buffer += data
    return bytes(buffer)


def iter_chunks(stream: BinaryIO, chunk_size: int) -> Iterator[bytes]:
    """Yield consecutive chunks of the stream until it is exhausted.

    Every chunk but the last is exactly ``chunk_size`` bytes. An empty
    stream yields nothing.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    while True:
        chunk = read_chunk(stream, chunk_size)
        if not chunk:
            return
        yield chunk
        if len(chunk) < chunk_size:
            return
