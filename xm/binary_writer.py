"""Growable little-endian byte buffer used by the XM encoder.

All multi-byte values are little-endian.  Capacity doubles until a pending
write fits; the unwritten tail of the capacity is never part of the output.
"""

from __future__ import annotations

import struct

DEFAULT_CAPACITY = 1024


class BinaryWriter:
    def __init__(self, size: int = DEFAULT_CAPACITY) -> None:
        if size < 1:
            raise ValueError(f"initial size must be positive, got {size}")
        self._buf = bytearray(size)
        self._offset = 0
        self._length = 0  # high-water mark

    @property
    def capacity(self) -> int:
        return len(self._buf)

    @property
    def position(self) -> int:
        return self._offset

    @position.setter
    def position(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"position must be >= 0, got {value}")
        self._offset = value

    def get_position(self) -> int:
        return self._offset

    def set_position(self, value: int) -> None:
        self.position = value

    def _ensure_capacity(self, additional: int) -> None:
        required = self._offset + additional
        if required <= len(self._buf):
            return
        new_size = len(self._buf) * 2
        while new_size < required:
            new_size *= 2
        self._buf.extend(bytes(new_size - len(self._buf)))

    def _put(self, fmt: str, value: int) -> None:
        size = struct.calcsize(fmt)
        self._ensure_capacity(size)
        struct.pack_into(fmt, self._buf, self._offset, value)
        self._advance(size)

    def _advance(self, count: int) -> None:
        self._offset += count
        if self._offset > self._length:
            self._length = self._offset

    def write_u8(self, value: int) -> None:
        self._put("<B", value)

    def write_i8(self, value: int) -> None:
        self._put("<b", value)

    def write_u16(self, value: int) -> None:
        self._put("<H", value)

    def write_i16(self, value: int) -> None:
        self._put("<h", value)

    def write_u32(self, value: int) -> None:
        self._put("<I", value)

    def write_i32(self, value: int) -> None:
        self._put("<i", value)

    def write_string(self, text: str, length: int) -> None:
        """Write `text` into a fixed `length`-byte field, truncating or zero-padding."""

        raw = text.encode("latin-1", errors="replace")[:length]
        self._ensure_capacity(length)
        end = self._offset + length
        self._buf[self._offset : self._offset + len(raw)] = raw
        self._buf[self._offset + len(raw) : end] = bytes(length - len(raw))
        self._advance(length)

    def write_bytes(self, data: bytes) -> None:
        self._ensure_capacity(len(data))
        self._buf[self._offset : self._offset + len(data)] = data
        self._advance(len(data))

    def write_zeros(self, count: int) -> None:
        self._ensure_capacity(count)
        self._buf[self._offset : self._offset + count] = bytes(count)
        self._advance(count)

    def write_u16_at(self, offset: int, value: int) -> None:
        """Overwrite a 16-bit slot at `offset` without moving the position."""

        if offset < 0 or offset + 2 > self._length:
            raise ValueError(
                f"patch offset {offset} outside written range ({self._length} bytes)"
            )
        struct.pack_into("<H", self._buf, offset, value)

    def getvalue(self) -> bytes:
        """Return exactly the bytes written so far."""

        return bytes(self._buf[: self._length])

    def __len__(self) -> int:
        return self._length


__all__ = ["BinaryWriter", "DEFAULT_CAPACITY"]
