# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Typed value codec: primitives and strings to and from tagged, big-endian bytes.

Each encodable value maps to a one-character tag:

=========  ===  ===========================
Type       Tag  Encoding
=========  ===  ===========================
bool       Z    1 byte, 0 or 1
Int8       B    signed 8-bit
Int16      S    signed 16-bit
Int32      I    signed 32-bit
int/Int64  J    signed 64-bit
Float32    F    IEEE-754 single
float      D    IEEE-754 double
Char       C    unsigned 16-bit code unit
str        T    u16 length + UTF-8 bytes
=========  ===  ===========================

Python has a single ``int`` and ``float``; the fixed-width wrappers below
carry the narrower tags so a value read back re-encodes with the tag it was
written with.
"""

from __future__ import annotations

import struct
from typing import Any

from redex.kernel.exceptions import CodecException

MAX_UTF_LENGTH = 0xFFFF

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1

_U16 = struct.Struct(">H")


def _checked_int(cls: type, value: Any, bits: int) -> int:
    number = int(value)
    low, high = -(1 << (bits - 1)), (1 << (bits - 1)) - 1
    if not low <= number <= high:
        raise ValueError(f"{cls.__name__} out of range [{low}, {high}]: {number}")
    return number


class Int8(int):
    """Signed 8-bit integer (tag ``B``)."""

    def __new__(cls, value: Any = 0) -> Int8:
        return super().__new__(cls, _checked_int(cls, value, 8))


class Int16(int):
    """Signed 16-bit integer (tag ``S``)."""

    def __new__(cls, value: Any = 0) -> Int16:
        return super().__new__(cls, _checked_int(cls, value, 16))


class Int32(int):
    """Signed 32-bit integer (tag ``I``)."""

    def __new__(cls, value: Any = 0) -> Int32:
        return super().__new__(cls, _checked_int(cls, value, 32))


class Int64(int):
    """Signed 64-bit integer (tag ``J``); plain ints in range encode the same way."""

    def __new__(cls, value: Any = 0) -> Int64:
        return super().__new__(cls, _checked_int(cls, value, 64))


class Float32(float):
    """IEEE-754 single precision float (tag ``F``).

    The value is rounded to single precision on construction, so a decoded
    value compares equal to the one that was written.
    """

    def __new__(cls, value: Any = 0.0) -> Float32:
        try:
            single = struct.unpack(">f", struct.pack(">f", float(value)))[0]
        except OverflowError as exc:
            raise ValueError(f"Float32 out of range: {value}") from exc
        return super().__new__(cls, single)


class Char(str):
    """A single UTF-16 code unit (tag ``C``)."""

    def __new__(cls, value: Any) -> Char:
        text = str(value)
        if len(text) != 1 or ord(text) > 0xFFFF:
            raise ValueError(f"Char must be one BMP character, got {text!r}")
        return super().__new__(cls, text)


# Keyed by exact type: subclasses such as enums are not primitives.
_ENCODERS: dict[type, tuple[str, struct.Struct | None]] = {
    bool: ("Z", struct.Struct(">?")),
    Int8: ("B", struct.Struct(">b")),
    Int16: ("S", struct.Struct(">h")),
    Int32: ("I", struct.Struct(">i")),
    Int64: ("J", struct.Struct(">q")),
    int: ("J", struct.Struct(">q")),
    Float32: ("F", struct.Struct(">f")),
    float: ("D", struct.Struct(">d")),
    Char: ("C", _U16),
    str: ("T", None),
}

_DECODERS: dict[str, tuple[struct.Struct | None, type | None]] = {
    "Z": (struct.Struct(">?"), bool),
    "B": (struct.Struct(">b"), Int8),
    "S": (struct.Struct(">h"), Int16),
    "I": (struct.Struct(">i"), Int32),
    "J": (struct.Struct(">q"), None),
    "F": (struct.Struct(">f"), Float32),
    "D": (struct.Struct(">d"), None),
    "C": (_U16, None),
    "T": (None, None),
}

DATA_TAGS = frozenset(_DECODERS)


def write_utf(text: str) -> bytes:
    """Encode *text* as a 16-bit unsigned length followed by UTF-8 bytes."""
    try:
        raw = text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise CodecException(f"String is not encodable as UTF-8: {exc}", code="CODEC_BAD_UTF8") from exc
    if len(raw) > MAX_UTF_LENGTH:
        raise CodecException(
            f"String too long for a 16-bit length prefix: {len(raw)} bytes",
            code="CODEC_UTF_TOO_LONG",
        )
    return _U16.pack(len(raw)) + raw


def read_utf(data: bytes | memoryview, offset: int = 0) -> tuple[str, int]:
    """Decode one length-prefixed UTF-8 string at *offset*.

    Returns the string and the offset just past it.
    """
    end = offset + _U16.size
    if len(data) < end:
        raise CodecException("Truncated string length prefix", code="CODEC_TRUNCATED")
    (length,) = _U16.unpack_from(data, offset)
    if len(data) < end + length:
        raise CodecException(
            f"Truncated string: expected {length} bytes, found {len(data) - end}",
            code="CODEC_TRUNCATED",
        )
    try:
        return bytes(data[end : end + length]).decode("utf-8"), end + length
    except UnicodeDecodeError as exc:
        raise CodecException(f"Invalid UTF-8 in string: {exc}", code="CODEC_BAD_UTF8") from exc


def is_data_value(value: Any) -> bool:
    """Return True if *value* is a primitive, wrapper or string with a data tag.

    Only exact types qualify. Subclasses (enums, for instance) and integers
    that do not fit in 64 bits are not primitives; they travel as opaque
    objects.
    """
    kind = type(value)
    if kind is int:
        return _INT64_MIN <= value <= _INT64_MAX
    return kind in _ENCODERS


def encode_value(value: Any) -> tuple[str, bytes]:
    """Encode a data value, returning its tag and bytes.

    Raises:
        CodecException: If *value* has no data tag.
    """
    if not is_data_value(value):
        raise CodecException(
            f"Unsupported data value type: {type(value).__name__}",
            code="CODEC_UNSUPPORTED",
        )
    tag, packer = _ENCODERS[type(value)]
    if packer is None:
        return tag, write_utf(value)
    if tag == "C":
        return tag, packer.pack(ord(value))
    return tag, packer.pack(value)


def decode_value(tag: str, data: bytes) -> Any:
    """Decode bytes written by :func:`encode_value` under *tag*.

    Raises:
        CodecException: On an unknown tag, truncated bytes or trailing bytes.
    """
    entry = _DECODERS.get(tag)
    if entry is None:
        raise CodecException(f"Unknown data type tag: {tag!r}", code="CODEC_UNKNOWN_TAG")
    unpacker, wrapper = entry

    if tag == "T":
        text, end = read_utf(data)
        if end != len(data):
            raise CodecException(f"Trailing bytes after string: {len(data) - end}", code="CODEC_TRAILING")
        return text

    assert unpacker is not None
    if len(data) != unpacker.size:
        raise CodecException(
            f"Tag {tag!r} expects {unpacker.size} bytes, found {len(data)}",
            code="CODEC_TRUNCATED" if len(data) < unpacker.size else "CODEC_TRAILING",
        )
    (value,) = unpacker.unpack(data)
    if tag == "C":
        return Char(chr(value))
    return wrapper(value) if wrapper is not None else value
