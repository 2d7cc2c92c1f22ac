"""Compact binary encoding shared by message packets and field payloads.

Unsigned integers wider than one byte use a variable-length little-endian
form: values up to 250 take a single byte, larger values are written as a
marker byte (251, 252, 253 or 254) followed by the value as a 2, 4, 8 or
16 byte little-endian integer.  Strings and sequences are prefixed with
their length in the same form.
"""

from __future__ import annotations

import struct

_SINGLE_BYTE_MAX = 250
_MARKERS = ((251, 2), (252, 4), (253, 8), (254, 16))
_SUPPORTED_BITS = (16, 32, 64, 128)
_FLOAT32 = struct.Struct("<f")


class CodecError(ValueError):
    """Raised when a value cannot be encoded or the input cannot be decoded."""


class Encoder:
    """Accumulates encoded values into a byte string."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def varint(self, value: int) -> None:
        """Append an unsigned integer in variable-length form."""
        if value < 0:
            raise CodecError(f"cannot encode negative integer {value}")
        if value <= _SINGLE_BYTE_MAX:
            self._buffer.append(value)
            return
        for marker, size in _MARKERS:
            if value < 1 << (8 * size):
                self._buffer.append(marker)
                self._buffer += value.to_bytes(size, "little")
                return
        raise CodecError(f"integer {value} does not fit in 128 bits")

    def fixed(self, value: int, size: int) -> None:
        """Append an unsigned integer as exactly ``size`` little-endian bytes."""
        try:
            self._buffer += value.to_bytes(size, "little", signed=False)
        except OverflowError as err:
            raise CodecError(f"integer {value} does not fit in {size} bytes") from err

    def float32(self, value: float) -> None:
        """Append a single-precision float."""
        try:
            self._buffer += _FLOAT32.pack(value)
        except (struct.error, OverflowError) as err:
            raise CodecError(f"cannot encode {value!r} as a 32-bit float") from err

    def string(self, value: str) -> None:
        """Append a length-prefixed UTF-8 string."""
        data = value.encode("utf-8")
        self.varint(len(data))
        self._buffer += data

    def getvalue(self) -> bytes:
        """Return everything encoded so far."""
        return bytes(self._buffer)


class Decoder:
    """Reads encoded values from the front of a byte string.

    Bytes left over after the last read are ignored.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0

    def _take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise CodecError(
                f"unexpected end of data: needed {size} bytes at offset {self._pos}, "
                f"{len(self._data) - self._pos} available"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def varint(self, bits: int) -> int:
        """Read a variable-length unsigned integer of at most ``bits`` bits."""
        if bits not in _SUPPORTED_BITS:
            raise ValueError(f"unsupported integer width {bits}; use one of {_SUPPORTED_BITS}")
        first = self._take(1)[0]
        if first <= _SINGLE_BYTE_MAX:
            return first
        for marker, size in _MARKERS:
            if first == marker:
                if size * 8 > bits:
                    raise CodecError(
                        f"{size * 8}-bit integer found where {bits} bits were expected"
                    )
                return int.from_bytes(self._take(size), "little")
        raise CodecError(f"invalid integer marker byte {first}")

    def fixed(self, size: int) -> int:
        """Read an unsigned integer of exactly ``size`` little-endian bytes."""
        return int.from_bytes(self._take(size), "little")

    def float32(self) -> float:
        """Read a single-precision float."""
        return _FLOAT32.unpack(self._take(_FLOAT32.size))[0]

    def string(self) -> str:
        """Read a length-prefixed UTF-8 string."""
        length = self.varint(64)
        raw = self._take(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as err:
            raise CodecError(f"string is not valid UTF-8: {err}") from err