"""RTP packets and H.264 RTP packetization and depacketization."""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace

from .h264 import (
    NALU_TYPE_AUD,
    NALU_TYPE_IFRAME,
    NALU_TYPE_PPS,
    NALU_TYPE_SEI,
    NALU_TYPE_SPS,
    annexb_to_avc,
    encode_avc,
    get_parameter_set,
    nalu_type,
)
from .payloader import FUA_NALU_TYPE, STAPA_NALU_TYPE, Payloader

RTP_PACKET_VERSION_AVC = 0
RTP_HEADER_SIZE = 12
PS_MAX_SIZE = 128  # the biggest SPS seen in the wild is 48 bytes

_NALU_TYPE_BITMASK = 0x1F
_NALU_REF_IDC_BITMASK = 0x60
_FU_END_BIT = 0x40


@dataclass
class RTPPacket:
    """An RTP packet; version 0 marks a whole access unit in AVC format."""

    version: int = 2
    marker: bool = False
    payload_type: int = 0
    sequence_number: int = 0
    timestamp: int = 0
    ssrc: int = 0
    payload: bytes = b""


Writer = Callable[[RTPPacket], None]
Wrapper = Callable[[Writer], Writer]


def _sequence_numbers() -> Iterator[int]:
    number = random.randrange(0x10000)
    while True:
        number = (number + 1) & 0xFFFF
        yield number


def _avc(nalu: bytes) -> bytes:
    return len(nalu).to_bytes(4, "big") + nalu


def depacketize_h264(payload: bytes) -> bytes:
    """Convert a single-NAL or STAP-A RTP payload to AVC format.

    Raises ValueError for short, truncated or unhandled payloads.
    """
    if len(payload) <= 2:
        raise ValueError(f"short packet: {len(payload)} <= 2")

    kind = payload[0] & _NALU_TYPE_BITMASK
    if 0 < kind < 24:
        return _avc(bytes(payload))

    if kind == STAPA_NALU_TYPE:
        result = bytearray()
        offset = 1
        while offset < len(payload):
            if offset + 2 > len(payload):
                raise ValueError("STAP-A declared size is larger than buffer")
            size = int.from_bytes(payload[offset:offset + 2], "big")
            offset += 2
            if len(payload) < offset + size:
                raise ValueError("STAP-A declared size is larger than buffer")
            result += _avc(bytes(payload[offset:offset + size]))
            offset += size
        return bytes(result)

    raise ValueError(f"unhandled NALU type: {kind}")


class _H264Depacketizer:
    """Adds FU-A reassembly on top of depacketize_h264."""

    def __init__(self) -> None:
        self._fua = bytearray()

    def unmarshal(self, payload: bytes) -> bytes:
        if len(payload) > 2 and payload[0] & _NALU_TYPE_BITMASK == FUA_NALU_TYPE:
            self._fua += payload[2:]
            if not payload[1] & _FU_END_BIT:
                return b""
            header = (payload[0] & _NALU_REF_IDC_BITMASK) | (
                payload[1] & _NALU_TYPE_BITMASK
            )
            nalu = bytes([header]) + bytes(self._fua)
            self._fua.clear()
            return _avc(nalu)
        return depacketize_h264(payload)


def h264_rtp_depay(fmtp_line: str) -> Wrapper:
    """Return a wrapper that collects RTP packets into whole AVC access units."""
    depacketizer = _H264Depacketizer()
    ps = encode_avc(*get_parameter_set(fmtp_line))
    buf = bytearray()

    def wrap(push: Writer) -> Writer:
        def write(packet: RTPPacket) -> None:
            try:
                payload = depacketizer.unmarshal(packet.payload)
            except ValueError:
                return
            if not payload:
                return

            # some cameras send SPS and PPS (and SEI) as separately marked packets
            if packet.marker and len(payload) < PS_MAX_SIZE:
                kind = nalu_type(payload)
                if kind in (NALU_TYPE_SPS, NALU_TYPE_PPS):
                    buf.extend(payload)
                    return
                if kind == NALU_TYPE_SEI:
                    return

            if not buf:
                while True:
                    kind = nalu_type(payload)
                    if kind == NALU_TYPE_IFRAME:
                        # IFrame without SPS and PPS
                        buf.extend(ps)
                    elif kind in (NALU_TYPE_SEI, NALU_TYPE_AUD):
                        size = 4 + int.from_bytes(payload[:4], "big")
                        if size >= len(payload):
                            return
                        payload = payload[size:]
                        continue
                    break

            if not packet.marker:
                buf.extend(payload)
                return

            if buf:
                payload = bytes(buf) + payload
                buf.clear()

            if (
                nalu_type(payload) == NALU_TYPE_SPS
                and int.from_bytes(payload[:4], "big") >= PS_MAX_SIZE
            ):
                # SPS+PPS+IFrame glued together with Annex B start codes
                payload = annexb_to_avc(payload)

            push(replace(packet, version=RTP_PACKET_VERSION_AVC, payload=payload))

        return write

    return wrap


def h264_rtp_pay(mtu: int) -> Wrapper:
    """Return a wrapper that splits AVC access units into RTP packets."""
    payloader = Payloader(is_avc=True)
    sequence = _sequence_numbers()
    size = mtu - RTP_HEADER_SIZE

    def wrap(push: Writer) -> Writer:
        def write(packet: RTPPacket) -> None:
            if packet.version != RTP_PACKET_VERSION_AVC:
                push(packet)
                return

            payloads = payloader.payload(size, packet.payload)
            last = len(payloads) - 1
            for i, payload in enumerate(payloads):
                push(
                    RTPPacket(
                        version=2,
                        marker=i == last,
                        sequence_number=next(sequence),
                        timestamp=packet.timestamp,
                        payload=payload,
                    )
                )

        return write

    return wrap