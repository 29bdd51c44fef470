import io
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator, Protocol


class ByteSource(Protocol):
    """
    A payload to upload.

    ``length`` is the byte length when known, ``None`` for a pure stream.
    ``open()`` is a scoped acquisition: the stream it yields is only valid
    inside the ``with`` block and is released on every exit path.
    """

    length: int | None

    def open(self) -> AbstractContextManager[BinaryIO]: ...


class BytesSource(ByteSource):
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self.length = len(self._data)

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        with io.BytesIO(self._data) as stream:
            yield stream


class FileSource(ByteSource):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.length = self.path.stat().st_size

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        with self.path.open("rb") as stream:
            yield stream


class StreamSource(ByteSource):
    """
    Wraps a stream owned by the caller.

    The stream is read once and never closed here. A second ``open()`` raises
    ``RuntimeError`` because the stream has already advanced.
    """

    def __init__(self, stream: BinaryIO, length: int | None = None) -> None:
        if length is not None and length < 0:
            raise ValueError("length must not be negative")
        self._stream = stream
        self.length = length
        self._consumed = False

    @contextmanager
    def open(self) -> Iterator[BinaryIO]:
        if self._consumed:
            raise RuntimeError("Stream source has already been consumed")
        self._consumed = True
        yield self._stream


def as_byte_source(payload, length: int | None = None) -> ByteSource:
    """Coerce bytes, a path, a binary stream or a ByteSource into a ByteSource."""
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return BytesSource(bytes(payload))
    if isinstance(payload, (str, Path)):
        return FileSource(payload)
    if hasattr(payload, "read"):
        return StreamSource(payload, length)
    if hasattr(payload, "open") and hasattr(payload, "length"):
        return payload
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")
