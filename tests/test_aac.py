from rtcbridge.aac import aac_rtp_depay, aac_rtp_pay, is_adts
from rtcbridge.rtp import RTPPacket

ADTS = b"\xff\xf1\x50\x80\x02\x1f\xfc"


def _collector():
    out = []
    return out, out.append


def test_is_adts_true():
    assert is_adts(ADTS + b"\x21")


def test_is_adts_false_for_short_or_other_data():
    assert not is_adts(ADTS)
    assert not is_adts(b"\x21\x00\x00\x00\x00\x00\x00\x00")
    assert not is_adts(b"\xff\x0f\x00\x00\x00\x00\x00\x00")


def test_pay_header_bytes():
    out, push = _collector()
    packet = RTPPacket(version=0, timestamp=512, payload=b"\x21\x22\x23")
    aac_rtp_pay(1200)(push)(packet)
    assert len(out) == 1
    assert out[0].payload[:2] == b"\x00\x10"
    assert out[0].payload[2:4] == b"\x00\x18"
    assert out[0].payload[4:] == packet.payload
    assert out[0].timestamp == packet.timestamp
    assert out[0].marker is True
    assert out[0].version == 2


def test_pay_then_depay_round_trip():
    frame = bytes(range(100))
    out, push = _collector()
    write = aac_rtp_pay(1200)(aac_rtp_depay()(push))
    write(RTPPacket(version=0, timestamp=1024, payload=frame))
    assert len(out) == 1
    assert out[0].payload == frame
    assert out[0].version == 0
    assert out[0].timestamp == 1024


def test_depay_strips_adts():
    data = b"\x21\x10\x05"
    packet = RTPPacket(timestamp=77, payload=b"\x00\x10\x00\x18" + ADTS + data)
    out, push = _collector()
    aac_rtp_depay()(push)(packet)
    assert len(out) == 1
    assert out[0].payload == data
    assert out[0].payload == packet.payload[4 + len(ADTS):]
    assert out[0].timestamp == packet.timestamp
    assert out[0].version == 0


def test_pay_passes_through_rtp_packets():
    out, push = _collector()
    packet = RTPPacket(version=2, payload=b"abc")
    aac_rtp_pay(1200)(push)(packet)
    assert out == [packet]


def test_pay_sequence_numbers_consecutive():
    out, push = _collector()
    write = aac_rtp_pay(1200)(push)
    packets = [RTPPacket(version=0, timestamp=i, payload=bytes([i, i + 1])) for i in range(5)]
    for packet in packets:
        write(packet)
    assert len(out) == 5
    assert [p.payload[4:] for p in out] == [packet.payload for packet in packets]
    assert [p.timestamp for p in out] == [packet.timestamp for packet in packets]
    seqs = [p.sequence_number for p in out]
    assert all((b - a) & 0xFFFF == 1 for a, b in zip(seqs, seqs[1:]))