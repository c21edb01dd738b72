"""Tests for fixed-size stream chunking."""

from __future__ import annotations

import io
import math

import pytest

from s3upload.services.chunking import SourceStreamError, iter_chunks, read_chunk


class TrickleStream(io.RawIOBase):
    """Binary stream that returns at most ``step`` bytes per read."""

    def __init__(self, data: bytes, step: int):
        self._data = data
        self._pos = 0
        self._step = step

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data)
        size = min(size, self._step)
        chunk = self._data[self._pos : self._pos + size]
        self._pos += len(chunk)
        return chunk


class BrokenStream:
    def __init__(self, good: bytes):
        self._good = good

    def read(self, size: int = -1) -> bytes:
        if self._good:
            data, self._good = self._good[:size], self._good[size:]
            return data
        raise OSError("connection reset")


class NonBlockingStream:
    def read(self, size: int = -1):
        return None


@pytest.mark.parametrize(
    "length, chunk_size",
    [(0, 4), (1, 4), (3, 4), (4, 4), (5, 4), (16, 4), (17, 4), (100, 7)],
)
def test_chunk_count_and_sizes(length, chunk_size):
    data = bytes(i % 251 for i in range(length))

    chunks = list(iter_chunks(io.BytesIO(data), chunk_size))

    assert len(chunks) == math.ceil(length / chunk_size)
    assert all(len(c) == chunk_size for c in chunks[:-1])
    assert b"".join(chunks) == data


def test_empty_stream_yields_nothing():
    assert list(iter_chunks(io.BytesIO(b""), 8)) == []


def test_short_stream_yields_single_undersized_chunk():
    assert list(iter_chunks(io.BytesIO(b"abc"), 8)) == [b"abc"]


def test_short_reads_are_accumulated_into_full_chunks():
    data = b"0123456789abcdefghij"
    stream = TrickleStream(data, step=3)

    chunks = list(iter_chunks(stream, 8))

    assert chunks == [b"01234567", b"89abcdef", b"ghij"]


def test_chunks_are_lazy():
    stream = io.BytesIO(b"a" * 20)
    chunks = iter_chunks(stream, 8)

    assert stream.tell() == 0
    next(chunks)
    assert stream.tell() == 8


def test_read_chunk_stops_at_eof():
    stream = io.BytesIO(b"xyz")
    assert read_chunk(stream, 10) == b"xyz"
    assert read_chunk(stream, 10) == b""


def test_io_error_is_wrapped():
    chunks = iter_chunks(BrokenStream(b"abcd"), 4)

    assert next(chunks) == b"abcd"
    with pytest.raises(SourceStreamError, match="connection reset") as excinfo:
        next(chunks)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_text_stream_is_rejected():
    with pytest.raises(SourceStreamError, match="binary mode"):
        list(iter_chunks(io.StringIO("hello"), 4))


def test_non_blocking_stream_is_rejected():
    with pytest.raises(SourceStreamError, match="non-blocking"):
        list(iter_chunks(NonBlockingStream(), 4))


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError, match="chunk_size"):
        list(iter_chunks(io.BytesIO(b"abc"), 0))


def test_closed_stream_is_wrapped():
    stream = io.BytesIO(b"abc")
    stream.close()

    with pytest.raises(SourceStreamError, match="closed file") as excinfo:
        read_chunk(stream, 4)
    assert isinstance(excinfo.value.__cause__, ValueError)
