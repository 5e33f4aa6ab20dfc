"""H.264 NAL unit helpers for AVC (length-prefixed) and Annex B streams."""

from __future__ import annotations

import base64
import binascii
from collections.abc import Iterator

NALU_TYPE_PFRAME = 1
NALU_TYPE_IFRAME = 5
NALU_TYPE_SEI = 6
NALU_TYPE_SPS = 7
NALU_TYPE_PPS = 8
NALU_TYPE_AUD = 9

_FORBIDDEN_ZERO_BIT = 0x80
_NAL_UNIT_TYPE = 0x1F
_START_CODE3 = b"\x00\x00\x01"
_START_CODE4 = b"\x00\x00\x00\x01"


def nalu_type(data: bytes) -> int:
    """Return the type of the first NAL unit in AVC data."""
    return data[4] & _NAL_UNIT_TYPE


def _iter_avc(data: bytes) -> Iterator[bytes]:
    """Yield length-prefixed NAL units; the last one takes the remainder."""
    while True:
        size = 4 + int.from_bytes(data[:4], "big")
        if size < len(data):
            yield data[:size]
            data = data[size:]
        else:
            yield data
            return


def _between(s: str, start: str, end: str) -> str:
    i = s.find(start)
    if i < 0:
        return ""
    s = s[i + len(start):]
    j = s.find(end)
    return s[:j] if j >= 0 else s


def _b64decode(s: str) -> bytes:
    try:
        return base64.b64decode(s, validate=True)
    except (binascii.Error, ValueError):
        return b""


def is_keyframe(data: bytes) -> bool:
    """Return True if the access unit holds an IDR slice before any P slice."""
    for nal in _iter_avc(data):
        kind = nalu_type(nal)
        if kind == NALU_TYPE_PFRAME:
            return False
        if kind == NALU_TYPE_IFRAME:
            return True
    return False


def join(ps: bytes, iframe: bytes) -> bytes:
    """Concatenate parameter sets and a frame."""
    return bytes(ps) + bytes(iframe)


def get_profile_level_id(fmtp: str) -> str:
    """Return a profile-level-id limited to High 4.1, even for an empty fmtp."""
    profile, capab, level = 0x64, 0, 0x29

    if fmtp:
        conf = None
        s = _between(fmtp, "sprop-parameter-sets=", ",")
        if s:
            sps = _b64decode(s)
            if len(sps) >= 4:
                conf = sps[1:4]
        else:
            s = _between(fmtp, "profile-level-id=", ";")
            if s:
                try:
                    conf = bytes.fromhex(s)
                except ValueError:
                    conf = None

        if conf is not None and len(conf) >= 3:
            if conf[0] < profile:
                profile, capab = conf[0], conf[1]
            if conf[2] < level:
                level = conf[2]

    return f"{profile:02X}{capab:02X}{level:02X}"


def get_parameter_set(fmtp: str) -> tuple[bytes, bytes]:
    """Return (SPS, PPS) from sprop-parameter-sets; empty bytes when absent."""
    if not fmtp:
        return b"", b""
    s = _between(fmtp, "sprop-parameter-sets=", ";")
    if not s:
        return b"", b""
    sps, sep, pps = s.partition(",")
    if not sep:
        return b"", b""
    return _b64decode(sps), _b64decode(pps)


def get_fmtp_line(avc: bytes) -> str:
    """Build an SDP fmtp line from SPS+PPS+IFrame in AVC format."""
    line = "packetization-mode=1"
    for nal in _iter_avc(avc):
        kind = nalu_type(nal)
        if kind == NALU_TYPE_SPS:
            line += ";profile-level-id=" + nal[5:8].hex()
            line += ";sprop-parameter-sets=" + base64.b64encode(nal[4:]).decode()
        elif kind == NALU_TYPE_PPS:
            line += "," + base64.b64encode(nal[4:]).decode()
    return line


def annexb_to_avc(data: bytes) -> bytes:
    """Replace four-byte start codes with big-endian NAL lengths."""
    buf = bytearray(data)
    i = 0
    while i + 4 < len(buf):
        found = buf.find(_START_CODE4, i + 4)
        size = len(buf) - (i + 4) if found < 0 else found - (i + 4)
        buf[i:i + 4] = size.to_bytes(4, "big")
        i += size + 4
    return bytes(buf)


def index_from(data: bytes, sep: bytes, start: int) -> int:
    """Find ``sep`` in ``data`` at or after ``start``; -1 when absent."""
    if start > 0:
        if start < len(data):
            return data.find(sep, start)
        return -1
    return data.find(sep)


def decode_stream(annexb: bytes) -> tuple[bytes | None, int]:
    """Return the first access unit in AVC format and where the next one starts."""
    start_pos = -1
    i = 0
    while True:
        i = index_from(annexb, _START_CODE3, i)
        if i < 0:
            break
        i += 3
        if i >= len(annexb):
            break

        octet = annexb[i]
        if octet & _FORBIDDEN_ZERO_BIT:
            continue

        kind = octet & _NAL_UNIT_TYPE
        if start_pos >= 0:
            if kind in (NALU_TYPE_AUD, NALU_TYPE_SPS, NALU_TYPE_PFRAME):
                end = i - 4 if annexb[i - 4] == 0 else i - 3
                return decode_annexb(annexb[start_pos:end]), end
        elif kind in (NALU_TYPE_SPS, NALU_TYPE_PFRAME):
            start_pos = i - 4 if i >= 4 and annexb[i - 4] == 0 else i - 3

    return None, 0


def decode_annexb(data: bytes) -> bytes:
    """Convert Annex B with three- or four-byte start codes to AVC."""
    buf = bytearray(data)
    if buf[2] == 1:
        buf[0:0] = b"\x00"

    start_pos = 0
    i = 4
    while True:
        i = index_from(buf, _START_CODE3, i)
        if i < 0:
            break
        i += 3
        if i >= len(buf):
            break

        octet = buf[i]
        if octet & _FORBIDDEN_ZERO_BIT:
            continue

        if octet & _NAL_UNIT_TYPE in (
            NALU_TYPE_PFRAME, NALU_TYPE_IFRAME, NALU_TYPE_SPS, NALU_TYPE_PPS
        ):
            if buf[i - 4] != 0:
                # three-byte start code: widen it to hold a four-byte length
                buf[start_pos:start_pos + 4] = (i - start_pos - 7).to_bytes(4, "big")
                buf[i:i] = b"\x00"
                start_pos = i - 3
            else:
                buf[start_pos:start_pos + 4] = (i - start_pos - 8).to_bytes(4, "big")
                start_pos = i - 4

    buf[start_pos:start_pos + 4] = (len(buf) - start_pos - 4).to_bytes(4, "big")
    return bytes(buf)


def encode_avc(*nals: bytes) -> bytes:
    """Join NAL units with four-byte length prefixes, skipping empty ones."""
    return b"".join(len(nal).to_bytes(4, "big") + bytes(nal) for nal in nals if nal)


def split_avc(data: bytes) -> list[bytes]:
    """Split AVC data into NAL units, each keeping its length prefix."""
    return list(_iter_avc(data))


def types(data: bytes) -> list[int]:
    """Return the NAL unit types found in AVC data."""
    return [nalu_type(nal) for nal in _iter_avc(data)]