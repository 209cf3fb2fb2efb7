"""
Test suite for binary primitives

Tests length prefixes, string framing and the fixed-width numeric layouts,
including rejection of values that cannot be stored and of damaged input.
"""

import io
import struct
import pytest
from decimal import Decimal

from flatstore.binary import (
    BinaryReader, BinaryWriter, prefix_size, string_size, to_float32,
    DECIMAL_SIZE, MAX_DECIMAL_COEFFICIENT
)
from flatstore.errors import CorruptFileError, ValidationError


def _written(write, value) -> bytes:
    buffer = io.BytesIO()
    write(BinaryWriter(buffer), value)
    return buffer.getvalue()


def _reader(data: bytes) -> BinaryReader:
    return BinaryReader(io.BytesIO(data))


class TestLengthPrefix:
    """Test 7-bit-encoded length prefixes"""

    def test_prefix_sizes(self):
        """Prefix grows by one byte per 7 bits of length"""
        assert prefix_size(0) == 1
        assert prefix_size(127) == 1
        assert prefix_size(128) == 2
        assert prefix_size(16383) == 2
        assert prefix_size(16384) == 3

    def test_multi_byte_prefix_layout(self):
        """Low groups come first with the continuation bit set"""
        assert _written(BinaryWriter.write_7bit_int, 300) == b'\xac\x02'
        assert _reader(b'\xac\x02').read_7bit_int() == 300

    def test_negative_length_rejected(self):
        """Negative lengths cannot be encoded"""
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_7bit_int, -1)

    def test_overlong_prefix_is_corrupt(self):
        """More than five continuation bytes is malformed"""
        with pytest.raises(CorruptFileError):
            _reader(b'\xff' * 6).read_7bit_int()

    def test_fifth_prefix_byte_limited_to_32_bits(self):
        """The fifth group may only carry the top bits of a 32-bit length"""
        assert _reader(b'\xff\xff\xff\xff\x07').read_7bit_int() == 2 ** 31 - 1
        with pytest.raises(CorruptFileError):
            _reader(b'\xff\xff\xff\xff\x08').read_7bit_int()

    def test_length_past_known_size_is_corrupt(self):
        """A reader that knows the stream size refuses to read past it"""
        data = b'\x80\x01abc'
        reader = BinaryReader(io.BytesIO(data), len(data))
        with pytest.raises(CorruptFileError) as exc_info:
            reader.read_string()
        assert exc_info.value.offset == 2


class TestStrings:
    """Test length-prefixed UTF-8 strings"""

    def test_ascii_string_layout(self):
        """A short string is one length byte followed by its bytes"""
        assert _written(BinaryWriter.write_string, "IBAN1") == b'\x05IBAN1'

    def test_length_counts_utf8_bytes(self):
        """The prefix holds the byte count, not the character count"""
        data = _written(BinaryWriter.write_string, "Łódź")
        assert data[0] == len("Łódź".encode("utf-8"))
        assert string_size("Łódź") == len(data)
        assert _reader(data).read_string() == "Łódź"

    def test_long_string(self):
        """Strings longer than 127 bytes use a two-byte prefix"""
        value = "x" * 300
        data = _written(BinaryWriter.write_string, value)
        assert len(data) == 302
        assert string_size(value) == 302
        assert _reader(data).read_string() == value

    def test_empty_string(self):
        """The empty string is a single zero byte"""
        assert _written(BinaryWriter.write_string, "") == b'\x00'
        assert _reader(b'\x00').read_string() == ""

    def test_truncated_string_is_corrupt(self):
        """A prefix promising more bytes than available is an error"""
        with pytest.raises(CorruptFileError):
            _reader(b'\x05IB').read_string()

    def test_invalid_utf8_is_corrupt(self):
        """Undecodable bytes are reported as corruption"""
        with pytest.raises(CorruptFileError):
            _reader(b'\x02\xff\xfe').read_string()

    def test_lone_surrogate_rejected(self):
        """Text that has no UTF-8 form cannot be written"""
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_string, "\ud800")


class TestDecimals:
    """Test the 16-byte scaled decimal layout"""

    def test_integer_layout(self):
        """Coefficient in the low word, zero scale and sign"""
        data = _written(BinaryWriter.write_decimal, Decimal('100'))
        assert data == struct.pack('<IIII', 100, 0, 0, 0)

    def test_negative_scaled_layout(self):
        """Scale lives in bits 16-23 of the flags and sign in bit 31"""
        data = _written(BinaryWriter.write_decimal, Decimal('-1.5'))
        assert data == struct.pack('<IIII', 15, 0, 0, 0x80010000)

    def test_fixed_width(self):
        """Every decimal takes the same number of bytes"""
        for value in [Decimal('0'), Decimal('59.99'), Decimal('123456789012345.6789')]:
            assert len(_written(BinaryWriter.write_decimal, value)) == DECIMAL_SIZE

    def test_round_trip_preserves_scale(self):
        """Trailing zeros survive a round trip"""
        for text in ['0.00', '100', '-0.01', '5000.50', '79228162514264337593543950335']:
            data = _written(BinaryWriter.write_decimal, Decimal(text))
            value = _reader(data).read_decimal()
            assert value == Decimal(text)
            assert str(value) == text

    def test_positive_exponent_is_expanded(self):
        """1E+2 is stored as the integer 100"""
        data = _written(BinaryWriter.write_decimal, Decimal('1E+2'))
        assert _reader(data).read_decimal() == Decimal('100')

    def test_out_of_range_rejected(self):
        """Coefficients beyond 96 bits and scales beyond 28 are refused"""
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_decimal, Decimal(MAX_DECIMAL_COEFFICIENT + 1))
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_decimal, Decimal('1E-29'))
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_decimal, Decimal('NaN'))

    def test_excess_trailing_zeros_are_dropped(self):
        """Scales beyond 28 are accepted when only zeros exceed them"""
        value = _reader(_written(BinaryWriter.write_decimal, Decimal('0E-30'))).read_decimal()
        assert value == 0
        value = _reader(_written(BinaryWriter.write_decimal, Decimal('1.5000000000000000000000000000000'))).read_decimal()
        assert value == Decimal('1.5')
        assert value.as_tuple().exponent == -28

    def test_invalid_flags_are_corrupt(self):
        """Reserved flag bits or an oversized scale mean damaged data"""
        with pytest.raises(CorruptFileError):
            _reader(struct.pack('<IIII', 1, 0, 0, 0x00000001)).read_decimal()
        with pytest.raises(CorruptFileError):
            _reader(struct.pack('<IIII', 1, 0, 0, 29 << 16)).read_decimal()


class TestFixedWidthNumbers:
    """Test float, int64 and uint16 fields"""

    def test_float32(self):
        """Floats are single precision"""
        data = _written(BinaryWriter.write_float, 0.1)
        assert len(data) == 4
        assert _reader(data).read_float() == to_float32(0.1)
        assert to_float32(0.1) != 0.1

    def test_int64(self):
        """Signed 64-bit integers round-trip at both ends of the range"""
        for value in [0, -1, 2 ** 63 - 1, -(2 ** 63)]:
            assert _reader(_written(BinaryWriter.write_int64, value)).read_int64() == value
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_int64, 2 ** 63)

    def test_uint16(self):
        """Unsigned 16-bit integers reject out-of-range values"""
        assert _written(BinaryWriter.write_uint16, 826) == struct.pack('<H', 826)
        assert _reader(struct.pack('<H', 65535)).read_uint16() == 65535
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_uint16, 65536)
        with pytest.raises(ValidationError):
            _written(BinaryWriter.write_uint16, -1)

    def test_reader_tracks_position(self):
        """Position advances by exactly the bytes consumed"""
        reader = _reader(b'\x02ab' + struct.pack('<H', 7))
        reader.read_string()
        assert reader.position == 3
        reader.read_uint16()
        assert reader.position == 5
