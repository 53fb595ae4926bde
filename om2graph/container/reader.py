from __future__ import annotations

import struct
from typing import Optional, Union

from om2graph.errors import ContainerDecodeError

BufferLike = Union[bytes, bytearray, memoryview]


class BinaryReader:
    """Cursor over an immutable byte buffer.

    Reads return zero-copy ``memoryview`` slices. Any access outside
    ``[0, length]`` raises ``ContainerDecodeError``.
    """

    def __init__(self, buffer: BufferLike) -> None:
        self._buffer = memoryview(buffer).cast("B")
        self._length = len(self._buffer)
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    @property
    def length(self) -> int:
        return self._length

    def _move(self, position: int) -> None:
        if position < 0 or position > self._length:
            raise ContainerDecodeError(
                f"Offset {position} is outside the buffer (length {self._length})."
            )
        self._position = position

    def seek(self, position: int) -> None:
        self._move(position if position >= 0 else self._length + position)

    def skip(self, offset: int) -> None:
        self._move(self._position + offset)

    def _claim(self, length: int) -> int:
        position = self._position
        end = position + length
        if length < 0 or end > self._length:
            raise ContainerDecodeError(
                f"Unexpected end of data reading {length} bytes at offset {position} "
                f"(length {self._length})."
            )
        self._position = end
        return position

    def read(self, length: Optional[int] = None) -> memoryview:
        if length is None:
            length = self._length - self._position
        position = self._claim(length)
        return self._buffer[position:position + length]

    def byte(self) -> int:
        position = self._claim(1)
        return self._buffer[position]

    def uint32(self) -> int:
        position = self._claim(4)
        return struct.unpack_from("<I", self._buffer, position)[0]
