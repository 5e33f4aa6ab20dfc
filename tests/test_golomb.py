import pytest

from rtcbridge.golomb import GolombReader, GolombWriter


@pytest.mark.parametrize("value", [0, 1, 2, 7, 100, 254])
def test_ue_round_trip(value):
    writer = GolombWriter()
    writer.write_ue_golomb(value)
    reader = GolombReader(writer.to_bytes())
    assert reader.read_ue_golomb() == value


@pytest.mark.parametrize("value", [0, -1, -3, -50])
def test_se_round_trip_non_positive(value):
    writer = GolombWriter()
    writer.write_se_golomb(value)
    reader = GolombReader(writer.to_bytes())
    assert reader.read_se_golomb() == value


def test_mixed_sequence_round_trip():
    writer = GolombWriter()
    writer.write_bit(1)
    writer.write_bits(5, 3)
    writer.write_ue_golomb(3)
    writer.write_se_golomb(0)
    writer.write_bits(0xAB, 8)
    reader = GolombReader(writer.to_bytes())
    assert reader.read_bit() == 1
    assert reader.read_bits(3) == 5
    assert reader.read_ue_golomb() == 3
    assert reader.read_se_golomb() == 0
    assert reader.read_bits(8) == 0xAB


def test_ue_zero_is_single_set_bit():
    writer = GolombWriter()
    writer.write_ue_golomb(0)
    assert writer.to_bytes() == b"\x80"


def test_write_byte_then_bits():
    writer = GolombWriter()
    writer.write_byte(0x67)
    writer.write_bit(1)
    data = writer.to_bytes()
    assert len(data) == 2
    assert data[0] == 0x67
    reader = GolombReader(data)
    assert reader.read_byte() == 0x67
    assert reader.read_bit() == 1


def test_read_bits_of_whole_byte():
    assert GolombReader(b"\xa5").read_bits(8) == 0xA5


def test_read_zero_bits_consumes_nothing():
    reader = GolombReader(b"")
    assert reader.read_bits(0) == 0


def test_read_past_end_raises():
    reader = GolombReader(b"\x01")
    reader.read_bits(8)
    with pytest.raises(EOFError):
        reader.read_bit()


def test_read_byte_on_empty_raises():
    with pytest.raises(EOFError):
        GolombReader(b"").read_byte()


def test_end_detects_stop_byte():
    reader = GolombReader(b"\xff\x80")
    reader.read_bits(8)
    assert reader.end() is True


def test_end_false_for_other_byte():
    reader = GolombReader(b"\xff\x40")
    reader.read_bits(8)
    assert reader.end() is False


def test_end_false_mid_byte():
    reader = GolombReader(b"\xff\x80")
    reader.read_bits(4)
    assert reader.end() is False


@pytest.mark.parametrize("value", [-1, 255, 1000])
def test_ue_out_of_range(value):
    with pytest.raises(ValueError):
        GolombWriter().write_ue_golomb(value)