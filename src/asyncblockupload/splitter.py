import base64
import logging
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from .config import MAX_BLOCK_COUNT
from .errors import SplitError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Block:
    index: int
    block_id: str
    offset: int
    data: bytes

    @property
    def length(self) -> int:
        return len(self.data)


def block_id_for(index: int) -> str:
    """Deterministic, fixed-width block identifier for a block index."""
    return base64.b64encode(index.to_bytes(8, byteorder="big")).decode("ascii")


def read_full(stream: BinaryIO, size: int) -> bytes:
    # Raw streams may return short reads before EOF.
    parts: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            break
        parts.append(chunk)
        remaining -= len(chunk)
    return b"".join(parts)


def split_blocks(
    stream: BinaryIO,
    max_block_size: int,
    length: int | None = None,
    max_block_count: int = MAX_BLOCK_COUNT,
) -> Iterator[Block]:
    """
    Lazily split ``stream`` into blocks of at most ``max_block_size`` bytes.

    With a known ``length`` exactly ``ceil(length / max_block_size)`` blocks
    are produced and only ``length`` bytes are read. Without one, blocks are
    read until the stream is exhausted; an empty stream yields no blocks.

    The iterator consumes ``stream`` as it goes and cannot be restarted.
    Splitting the same payload again needs a freshly opened stream.
    """
    if max_block_size <= 0:
        raise ValueError("max_block_size must be positive")

    if length is not None:
        block_count = -(-length // max_block_size)
        if block_count > max_block_count:
            raise SplitError(
                f"Payload of {length} bytes needs {block_count} blocks, limit is {max_block_count}"
            )
        logger.debug("Splitting %d bytes into %d block(s)", length, block_count)

    index = 0
    offset = 0
    while length is None or offset < length:
        want = max_block_size if length is None else min(max_block_size, length - offset)
        try:
            data = read_full(stream, want)
        except OSError as e:
            raise SplitError(f"Failed to read block {index} at offset {offset}: {e}") from e

        if length is not None and len(data) < want:
            raise SplitError(
                f"Source ended at {offset + len(data)} bytes, expected {length}"
            )
        if not data:
            break
        if index >= max_block_count:
            raise SplitError(f"Stream exceeds the limit of {max_block_count} blocks")

        yield Block(index=index, block_id=block_id_for(index), offset=offset, data=data)
        index += 1
        offset += len(data)

        if length is None and len(data) < max_block_size:
            break
