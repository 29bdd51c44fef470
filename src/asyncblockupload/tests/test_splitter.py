import io
import math
import os

import pytest

from asyncblockupload import SplitError, block_id_for, split_blocks

M = 16


class TrickleStream(io.RawIOBase):
    """Returns at most 3 bytes per read, like a slow socket."""

    def __init__(self, data: bytes):
        self._data = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def read(self, size=-1):
        return self._data.read(min(size, 3) if size >= 0 else 3)


class FailingStream(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def read(self, size=-1):
        raise OSError("disk on fire")


@pytest.mark.parametrize("length", [1, M - 1, M, M + 1, 2 * M, 5 * M + 3])
def test_known_length_block_sizes(length):
    data = os.urandom(length)
    blocks = list(split_blocks(io.BytesIO(data), M, length=length))

    assert len(blocks) == math.ceil(length / M)
    assert sum(b.length for b in blocks) == length
    assert all(b.length == M for b in blocks[:-1])
    assert blocks[-1].length == (length % M or M)
    assert b"".join(b.data for b in blocks) == data


def test_exact_block_size_gives_one_block():
    blocks = list(split_blocks(io.BytesIO(b"a" * M), M, length=M))
    assert len(blocks) == 1
    blocks = list(split_blocks(io.BytesIO(b"a" * M), M))
    assert len(blocks) == 1


@pytest.mark.parametrize("length", [None, 0])
def test_empty_source_gives_no_blocks(length):
    assert list(split_blocks(io.BytesIO(b""), M, length=length)) == []


@pytest.mark.parametrize("length", [1, M, M + 1, 3 * M, 3 * M + 5])
def test_unknown_length_handles_short_reads(length):
    data = os.urandom(length)
    blocks = list(split_blocks(TrickleStream(data), M))

    assert len(blocks) == math.ceil(length / M)
    assert all(b.length == M for b in blocks[:-1])
    assert b"".join(b.data for b in blocks) == data


def test_known_length_reads_only_declared_bytes():
    stream = io.BytesIO(b"x" * (2 * M))
    blocks = list(split_blocks(stream, M, length=M + 1))
    assert [b.length for b in blocks] == [M, 1]
    assert stream.read() == b"x" * (M - 1)


def test_source_shorter_than_declared_length():
    with pytest.raises(SplitError):
        list(split_blocks(io.BytesIO(b"x" * M), M, length=M + 1))


def test_read_failure_is_split_error():
    with pytest.raises(SplitError):
        list(split_blocks(FailingStream(), M))


def test_block_count_limit():
    with pytest.raises(SplitError):
        next(split_blocks(io.BytesIO(b""), M, length=3 * M, max_block_count=2))
    with pytest.raises(SplitError):
        list(split_blocks(io.BytesIO(b"x" * (3 * M)), M, max_block_count=2))


def test_block_ids_are_deterministic_and_fixed_width():
    blocks = list(split_blocks(io.BytesIO(b"y" * (3 * M)), M, length=3 * M))
    assert [b.block_id for b in blocks] == [block_id_for(i) for i in range(3)]
    assert len({b.block_id for b in blocks}) == 3
    assert len({len(block_id_for(i)) for i in (0, 1, 9_999, 49_999)}) == 1
    assert [b.offset for b in blocks] == [0, M, 2 * M]


def test_split_is_lazy_and_not_restartable():
    stream = io.BytesIO(b"z" * (3 * M))
    blocks = split_blocks(stream, M)
    first = next(blocks)
    assert first.index == 0
    assert stream.tell() == M

    assert len(list(blocks)) == 2
    assert list(blocks) == []
    # A fresh split of the same, already consumed stream sees nothing.
    assert list(split_blocks(stream, M)) == []


def test_invalid_block_size():
    with pytest.raises(ValueError):
        next(split_blocks(io.BytesIO(b"x"), 0))
