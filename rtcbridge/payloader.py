"""Splitting H.264 access units into RTP payloads (single NAL, STAP-A, FU-A)."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

STAPA_NALU_TYPE = 24
FUA_NALU_TYPE = 28
FUB_NALU_TYPE = 29

_SPS_NALU_TYPE = 7
_PPS_NALU_TYPE = 8
_AUD_NALU_TYPE = 9
_FILLER_NALU_TYPE = 12

_FUA_HEADER_SIZE = 2
_NALU_TYPE_BITMASK = 0x1F
_NALU_REF_IDC_BITMASK = 0x60
_FU_START_BIT = 0x80
_FU_END_BIT = 0x40

_OUTPUT_STAPA_HEADER = 0x78


def _next_start_code(data: bytes, start: int) -> tuple[int, int]:
    """Return (position, length) of the next Annex B start code, or (-1, -1)."""
    zeros = 0
    for i, octet in enumerate(data[start:], start):
        if octet == 0:
            zeros += 1
            continue
        if octet == 1 and zeros >= 2:
            return i - zeros, zeros + 1
        zeros = 0
    return -1, -1


def emit_nalus(nals: bytes, is_avc: bool) -> Iterator[bytes]:
    """Yield the NAL units of AVC (length-prefixed) or Annex B data."""
    if is_avc:
        while True:
            end = 4 + int.from_bytes(nals[:4], "big")
            yield nals[4:end]
            if end >= len(nals):
                return
            nals = nals[end:]

    start, length = _next_start_code(nals, 0)
    if start == -1:
        yield nals
        return
    while start != -1:
        prev = start + length
        start, length = _next_start_code(nals, prev)
        yield nals[prev:start] if start != -1 else nals[prev:]


@dataclass
class Payloader:
    """Fragments H.264 data into RTP payloads no larger than the MTU.

    SPS and PPS units are held back and sent as one STAP-A packet in front of
    the next picture.
    """

    is_avc: bool = False
    _sps: bytes | None = field(default=None, init=False, repr=False)
    _pps: bytes | None = field(default=None, init=False, repr=False)

    def payload(self, mtu: int, payload: bytes) -> list[bytes]:
        """Return the RTP payloads for one chunk of H.264 data."""
        payloads: list[bytes] = []
        if not payload:
            return payloads

        for nalu in emit_nalus(bytes(payload), self.is_avc):
            if not nalu:
                continue

            kind = nalu[0] & _NALU_TYPE_BITMASK
            ref_idc = nalu[0] & _NALU_REF_IDC_BITMASK

            if kind in (_AUD_NALU_TYPE, _FILLER_NALU_TYPE):
                continue
            if kind == _SPS_NALU_TYPE:
                self._sps = nalu
                continue
            if kind == _PPS_NALU_TYPE:
                self._pps = nalu
                continue
            if self._sps is not None and self._pps is not None:
                stapa = (
                    bytes([_OUTPUT_STAPA_HEADER])
                    + (len(self._sps) & 0xFFFF).to_bytes(2, "big")
                    + self._sps
                    + (len(self._pps) & 0xFFFF).to_bytes(2, "big")
                    + self._pps
                )
                if len(stapa) <= mtu:
                    payloads.append(stapa)
                self._sps = None
                self._pps = None

            if len(nalu) <= mtu:
                payloads.append(nalu)
                continue

            max_fragment = mtu - _FUA_HEADER_SIZE
            if max_fragment <= 0:
                continue

            # the NAL header octet is carried in the FU indicator and header
            for offset in range(1, len(nalu), max_fragment):
                chunk = nalu[offset:offset + max_fragment]
                header = kind
                if offset == 1:
                    header |= _FU_START_BIT
                elif offset + len(chunk) == len(nalu):
                    header |= _FU_END_BIT
                payloads.append(bytes([FUA_NALU_TYPE | ref_idc, header]) + chunk)

        return payloads