import base64

from rtcbridge.h264 import (
    NALU_TYPE_IFRAME,
    NALU_TYPE_PFRAME,
    NALU_TYPE_PPS,
    NALU_TYPE_SPS,
    annexb_to_avc,
    decode_annexb,
    decode_stream,
    encode_avc,
    get_fmtp_line,
    get_parameter_set,
    get_profile_level_id,
    index_from,
    is_keyframe,
    join,
    nalu_type,
    split_avc,
    types,
)

SPS = bytes([0x67, 0x42, 0x00, 0x0A, 0xF8, 0x41, 0xA2])
PPS = bytes([0x68, 0xCE, 0x38, 0x80])
IDR = bytes([0x65, 0x88, 0x84, 0x00, 0x21])
PFRAME = bytes([0x41, 0x9A, 0x02])
SC4 = b"\x00\x00\x00\x01"
SC3 = b"\x00\x00\x01"


def test_nalu_type():
    assert nalu_type(encode_avc(IDR)) == NALU_TYPE_IFRAME


def test_types_of_access_unit():
    avc = encode_avc(SPS, PPS, IDR)
    assert types(avc) == [NALU_TYPE_SPS, NALU_TYPE_PPS, NALU_TYPE_IFRAME]


def test_encode_avc_skips_empty():
    assert encode_avc(b"", IDR, b"") == encode_avc(IDR)


def test_split_avc_round_trip():
    parts = split_avc(encode_avc(SPS, PPS, IDR))
    assert [p[4:] for p in parts] == [SPS, PPS, IDR]
    assert all(int.from_bytes(p[:4], "big") == len(p) - 4 for p in parts)


def test_is_keyframe():
    assert is_keyframe(encode_avc(SPS, PPS, IDR)) is True
    assert is_keyframe(encode_avc(PFRAME)) is False
    assert is_keyframe(encode_avc(SPS, PPS)) is False


def test_join():
    assert join(encode_avc(SPS, PPS), encode_avc(IDR)) == encode_avc(SPS, PPS, IDR)


def test_fmtp_line_and_parameter_set_round_trip():
    fmtp = get_fmtp_line(encode_avc(SPS, PPS, IDR))
    assert fmtp.startswith("packetization-mode=1;profile-level-id=" + SPS[1:4].hex())
    assert "sprop-parameter-sets=" + base64.b64encode(SPS).decode() in fmtp
    assert get_parameter_set(fmtp) == (SPS, PPS)


def test_parameter_set_missing():
    assert get_parameter_set("") == (b"", b"")
    assert get_parameter_set("packetization-mode=1") == (b"", b"")


def test_profile_level_id_default():
    assert get_profile_level_id("") == "640029"


def test_profile_level_id_is_capped():
    assert get_profile_level_id("profile-level-id=640033") == "640029"


def test_profile_level_id_from_hex():
    assert get_profile_level_id("packetization-mode=1;profile-level-id=42e01f") == "42E01F"


def test_profile_level_id_from_sprop():
    fmtp = get_fmtp_line(encode_avc(SPS, PPS, IDR))
    assert get_profile_level_id(fmtp) == SPS[1:4].hex().upper()


def test_annexb_to_avc():
    assert annexb_to_avc(SC4 + SPS + SC4 + IDR) == encode_avc(SPS, IDR)


def test_decode_annexb_mixed_start_codes():
    data = SC3 + SPS + SC3 + PPS + SC4 + IDR
    assert decode_annexb(data) == encode_avc(SPS, PPS, IDR)


def test_decode_annexb_four_byte_codes():
    data = SC4 + SPS + SC4 + PPS + SC4 + IDR
    assert decode_annexb(data) == encode_avc(SPS, PPS, IDR)


def test_decode_stream_first_access_unit():
    first = SC4 + SPS + SC4 + PPS + SC4 + IDR
    stream = first + SC4 + PFRAME
    au, offset = decode_stream(stream)
    assert au == encode_avc(SPS, PPS, IDR)
    assert offset == len(first)
    assert types(au)[0] == NALU_TYPE_SPS
    assert stream[offset + 4] & 0x1F == NALU_TYPE_PFRAME


def test_decode_stream_incomplete():
    assert decode_stream(SC4 + SPS + SC4 + PPS) == (None, 0)


def test_index_from():
    prefix = b"\x11\x22"
    data = prefix + SC3 + b"\x33"
    assert index_from(data, SC3, 0) == len(prefix)
    assert index_from(data, SC3, 1) == len(prefix)
    assert index_from(data, SC3, len(prefix) + 1) == -1
    assert index_from(data, SC3, len(data) + 5) == -1