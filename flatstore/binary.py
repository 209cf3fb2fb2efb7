"""
Binary Primitives Module

Sequential readers and writers for the field types used by the record
codecs. Numeric fields are fixed-width little-endian; strings are UTF-8
with a 7-bit-encoded length prefix. Decimals use the 16-byte scaled
integer layout (lo, mid, hi, flags) so a balance always occupies the same
number of bytes regardless of its value.
"""

import struct
from decimal import Decimal
from typing import BinaryIO, Optional

from .errors import ValidationError, CorruptFileError


DECIMAL_SIZE = 16
FLOAT_SIZE = 4
INT64_SIZE = 8
UINT16_SIZE = 2

MAX_DECIMAL_SCALE = 28
MAX_DECIMAL_COEFFICIENT = (1 << 96) - 1

_DECIMAL = struct.Struct("<IIII")
_FLOAT = struct.Struct("<f")
_INT64 = struct.Struct("<q")
_UINT16 = struct.Struct("<H")

_SIGN_MASK = 0x80000000
_SCALE_MASK = 0x00FF0000
_SCALE_SHIFT = 16

# A 32-bit length never needs more than five 7-bit groups
_MAX_PREFIX_BYTES = 5
# Only the low three bits of the fifth group fit in a signed 32-bit length
_MAX_LAST_PREFIX_BYTE = 0x07


def prefix_size(length: int) -> int:
    """Number of bytes used by the 7-bit-encoded length prefix"""
    size = 1
    while length >= 0x80:
        length >>= 7
        size += 1
    return size


def string_size(value: str) -> int:
    """Encoded width of a length-prefixed string"""
    byte_length = len(_utf8(value))
    return prefix_size(byte_length) + byte_length


def to_float32(value: float) -> float:
    """Round a Python float to the nearest single-precision value"""
    return _FLOAT.unpack(_FLOAT.pack(value))[0]


def _utf8(value: str) -> bytes:
    try:
        return value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise ValidationError(f"String is not valid UTF-8 text: {e}")


class BinaryWriter:
    """Writes typed fields to a binary stream"""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def write_string(self, value: str) -> None:
        data = _utf8(value)
        self.write_7bit_int(len(data))
        self._stream.write(data)

    def write_7bit_int(self, value: int) -> None:
        if value < 0:
            raise ValidationError(f"Length prefix cannot be negative: {value}")
        out = bytearray()
        while value >= 0x80:
            out.append((value & 0x7F) | 0x80)
            value >>= 7
        out.append(value)
        self._stream.write(bytes(out))

    def write_decimal(self, value: Decimal) -> None:
        """
        Write a decimal as a 96-bit coefficient with a scale and sign.

        Raises:
            ValidationError: If the value is not finite or does not fit
        """
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        if not value.is_finite():
            raise ValidationError(f"Cannot store non-finite decimal {value}")

        sign, digits, exponent = value.as_tuple()
        coefficient = int("".join(str(d) for d in digits)) if digits else 0
        if exponent > 0:
            coefficient *= 10 ** exponent
            scale = 0
        else:
            scale = -exponent

        # Trailing zeros beyond the maximum scale carry no value
        while scale > MAX_DECIMAL_SCALE and coefficient % 10 == 0:
            coefficient //= 10
            scale -= 1

        if scale > MAX_DECIMAL_SCALE:
            raise ValidationError(f"Decimal {value} has more than {MAX_DECIMAL_SCALE} fractional digits")
        if coefficient > MAX_DECIMAL_COEFFICIENT:
            raise ValidationError(f"Decimal {value} is out of the storable range")

        lo = coefficient & 0xFFFFFFFF
        mid = (coefficient >> 32) & 0xFFFFFFFF
        hi = (coefficient >> 64) & 0xFFFFFFFF
        flags = scale << _SCALE_SHIFT
        if sign:
            flags |= _SIGN_MASK
        self._stream.write(_DECIMAL.pack(lo, mid, hi, flags))

    def write_float(self, value: float) -> None:
        self._stream.write(_FLOAT.pack(value))

    def write_int64(self, value: int) -> None:
        try:
            self._stream.write(_INT64.pack(value))
        except struct.error:
            raise ValidationError(f"Value {value} does not fit in a signed 64-bit integer")

    def write_uint16(self, value: int) -> None:
        try:
            self._stream.write(_UINT16.pack(value))
        except struct.error:
            raise ValidationError(f"Value {value} does not fit in an unsigned 16-bit integer")


class BinaryReader:
    """
    Reads typed fields from a binary stream.

    Tracks the absolute stream position of everything it consumes so the
    caller can compute record boundaries without seeking. When ``size`` (the
    total stream length) is given, reads past the end are refused before
    any buffer is allocated.
    """

    def __init__(self, stream: BinaryIO, size: Optional[int] = None):
        self._stream = stream
        self.position = stream.tell()
        self.size = size

    def _read_exact(self, size: int) -> bytes:
        if self.size is not None and size > self.size - self.position:
            raise CorruptFileError(
                f"Unexpected end of data: wanted {size} bytes, "
                f"{self.size - self.position} remain",
                offset=self.position
            )
        data = self._stream.read(size)
        if len(data) != size:
            raise CorruptFileError(
                f"Unexpected end of data: wanted {size} bytes, got {len(data)}",
                offset=self.position
            )
        self.position += size
        return data

    def read_7bit_int(self) -> int:
        result = 0
        for index in range(_MAX_PREFIX_BYTES):
            byte = self._read_exact(1)[0]
            if index == _MAX_PREFIX_BYTES - 1 and byte > _MAX_LAST_PREFIX_BYTE:
                raise CorruptFileError("String length prefix exceeds 32 bits", offset=self.position)
            result |= (byte & 0x7F) << (7 * index)
            if not byte & 0x80:
                return result
        raise CorruptFileError("Malformed string length prefix", offset=self.position)

    def read_string(self) -> str:
        start = self.position
        length = self.read_7bit_int()
        data = self._read_exact(length)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError:
            raise CorruptFileError("String field is not valid UTF-8", offset=start)

    def read_decimal(self) -> Decimal:
        start = self.position
        lo, mid, hi, flags = _DECIMAL.unpack(self._read_exact(DECIMAL_SIZE))
        scale = (flags & _SCALE_MASK) >> _SCALE_SHIFT
        if flags & ~(_SIGN_MASK | _SCALE_MASK) or scale > MAX_DECIMAL_SCALE:
            raise CorruptFileError(f"Invalid decimal flags 0x{flags:08x}", offset=start)

        coefficient = (hi << 64) | (mid << 32) | lo
        sign = 1 if flags & _SIGN_MASK else 0
        # Build from the digit tuple so no context rounding can occur
        digits = tuple(int(d) for d in str(coefficient))
        return Decimal((sign, digits, -scale))

    def read_float(self) -> float:
        return _FLOAT.unpack(self._read_exact(FLOAT_SIZE))[0]

    def read_int64(self) -> int:
        return _INT64.unpack(self._read_exact(INT64_SIZE))[0]

    def read_uint16(self) -> int:
        return _UINT16.unpack(self._read_exact(UINT16_SIZE))[0]
