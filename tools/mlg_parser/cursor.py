"""
Byte Cursor

Bounds-checked sequential reader over bytes or a seekable binary file.
A read either returns everything it asked for or raises UnexpectedEof
without moving the position.
"""

import io
import os
import struct
from typing import BinaryIO, Dict, Union

from .errors import InputOutputError, UnexpectedEof

BIG_ENDIAN = '>'
LITTLE_ENDIAN = '<'

ByteSource = Union[bytes, bytearray, memoryview, BinaryIO]


class ByteCursor:
    """
    Sequential reader with a fixed byte order.

    The byte order applies to every multi-byte read; it is a property of
    the whole file and is set once the format version is known.

    File sources must be seekable: the size is measured up front and the
    decoder seeks to the record stream. Pipes and sockets are rejected
    with InputOutputError; read them into bytes first.

    Example:
        cur = ByteCursor(b'\\x00\\x2a')
        cur.read_u16()  # 42
    """

    def __init__(self, source: ByteSource, byte_order: str = BIG_ENDIAN):
        if isinstance(source, (bytes, bytearray, memoryview)):
            source = io.BytesIO(bytes(source))
        elif not source.seekable():
            raise InputOutputError(
                f"Input {getattr(source, 'name', '<stream>')} is not seekable")
        self._stream = source
        self._start = source.tell()
        self._size = source.seek(0, os.SEEK_END)
        source.seek(self._start)
        self._pos = self._start
        self._structs: Dict[str, struct.Struct] = {}
        self.byte_order = byte_order

    @property
    def byte_order(self) -> str:
        return self._byte_order

    @byte_order.setter
    def byte_order(self, value: str):
        if value not in (BIG_ENDIAN, LITTLE_ENDIAN):
            raise ValueError(f"Unknown byte order: {value!r}")
        self._byte_order = value
        self._structs.clear()

    @property
    def size(self) -> int:
        """Total size of the underlying source"""
        return self._size

    def tell(self) -> int:
        return self._pos

    def remaining(self) -> int:
        return self._size - self._pos

    def seek(self, offset: int) -> None:
        """Move to an absolute offset within the source"""
        if offset < 0 or offset > self._size:
            raise UnexpectedEof(max(offset - self._pos, 0), self.remaining(), self._pos)
        self._stream.seek(offset)
        self._pos = offset

    def skip(self, count: int) -> None:
        self.seek(self._pos + count)

    def read_bytes(self, count: int) -> bytes:
        if count > self.remaining():
            raise UnexpectedEof(count, self.remaining(), self._pos)
        data = self._stream.read(count)
        if len(data) < count:
            # source shrank underneath us
            self._stream.seek(self._pos)
            raise UnexpectedEof(count, len(data), self._pos)
        self._pos += count
        return data

    def read_string(self, length: int) -> str:
        """Read a fixed-width, NUL-padded UTF-8 string"""
        raw = self.read_bytes(length)
        return raw.decode('utf-8', errors='replace').strip('\0')

    def _unpack(self, code: str):
        packer = self._structs.get(code)
        if packer is None:
            packer = struct.Struct(self._byte_order + code)
            self._structs[code] = packer
        return packer.unpack(self.read_bytes(packer.size))[0]

    def read_u8(self) -> int:
        return self._unpack('B')

    def read_i8(self) -> int:
        return self._unpack('b')

    def read_u16(self) -> int:
        return self._unpack('H')

    def read_i16(self) -> int:
        return self._unpack('h')

    def read_u32(self) -> int:
        return self._unpack('I')

    def read_i32(self) -> int:
        return self._unpack('i')

    def read_i64(self) -> int:
        return self._unpack('q')

    def read_f32(self) -> float:
        return self._unpack('f')

    def read_f64(self) -> float:
        return self._unpack('d')

    def __repr__(self) -> str:
        return f"ByteCursor(pos={self._pos}, size={self._size}, order={self._byte_order!r})"
