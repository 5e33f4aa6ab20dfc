"""Bit-level reader and writer with Exp-Golomb coding, as used in H.264 headers."""

from __future__ import annotations


class GolombReader:
    """Reads bits, bytes and Exp-Golomb codes from a byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._pos = 0
        self._byte = 0
        self._shift = 0

    def read_byte(self) -> int:
        """Read the next whole byte from the underlying data."""
        if self._pos >= len(self._data):
            raise EOFError("no more data to read")
        value = self._data[self._pos]
        self._pos += 1
        return value

    def read_bit(self) -> int:
        """Read one bit, most significant first."""
        if self._shift == 0:
            self._byte = self.read_byte()
            self._shift = 7
        else:
            self._shift -= 1
        return (self._byte >> self._shift) & 1

    def read_bits(self, n: int) -> int:
        """Read ``n`` bits as an unsigned integer."""
        result = 0
        for shift in reversed(range(n)):
            result |= self.read_bit() << shift
        return result

    def read_ue_golomb(self) -> int:
        """Read an unsigned Exp-Golomb code."""
        zeros = 0
        while zeros < 32:
            if self.read_bit():
                break
            zeros += 1
        return self.read_bits(zeros) + (1 << zeros) - 1

    def read_se_golomb(self) -> int:
        """Read a signed Exp-Golomb code."""
        value = self.read_ue_golomb()
        if value % 2 == 0:
            return -(value >> 1)
        return value >> 1

    def end(self) -> bool:
        """Return True when only the RBSP stop byte is left to read."""
        if self._shift == 0 and len(self._data) - self._pos == 1:
            return self._data[self._pos] == 0x80
        return False


class GolombWriter:
    """Writes bits, bytes and Exp-Golomb codes into a growing buffer."""

    def __init__(self) -> None:
        self._buf = bytearray()
        self._byte = 0
        self._index = -1
        self._shift = 0

    def write_bit(self, bit: int) -> None:
        """Append one bit."""
        if self._shift == 0:
            self._buf.append(0)
            self._byte = 0
            self._index += 1
            self._shift = 7
        else:
            self._shift -= 1
        self._byte |= (bit & 1) << self._shift
        self._buf[self._index] = self._byte

    def write_bits(self, value: int, n: int) -> None:
        """Append the low ``n`` bits of ``value``, most significant first."""
        for shift in reversed(range(n)):
            self.write_bit((value >> shift) & 1)

    def write_byte(self, value: int) -> None:
        """Append one whole byte."""
        self._buf.append(value)
        self._index += 1

    def write_ue_golomb(self, value: int) -> None:
        """Append an unsigned Exp-Golomb code for a value in 0..254."""
        if not 0 <= value <= 254:
            raise ValueError(f"value out of range for Exp-Golomb code: {value}")
        value += 1
        self.write_bits(value, value.bit_length() * 2 - 1)

    def write_se_golomb(self, value: int) -> None:
        """Append a signed Exp-Golomb code."""
        if value > 0:
            self.write_ue_golomb(value * 2 - 1)
        else:
            self.write_ue_golomb(-value * 2)

    def to_bytes(self) -> bytes:
        """Return everything written so far."""
        return bytes(self._buf)