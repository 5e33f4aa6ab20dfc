"""AAC over RTP (RFC 3640, AAC-hbr mode) packetization."""

from __future__ import annotations

import random
from collections.abc import Iterator
from dataclasses import replace

from .rtp import RTPPacket, Wrapper, Writer

RTP_PACKET_VERSION_AAC = 0

_ADTS_HEADER_SIZE = 7


def _sequence_numbers() -> Iterator[int]:
    number = random.randrange(0x10000)
    while True:
        number = (number + 1) & 0xFFFF
        yield number


def is_adts(data: bytes) -> bool:
    """Return True if the data starts with an ADTS header."""
    return len(data) > 7 and data[0] == 0xFF and data[1] & 0xF0 == 0xF0


def aac_rtp_depay() -> Wrapper:
    """Return a wrapper that strips AU headers (and ADTS) from RTP payloads.

    Only a two-byte AU header section is supported.
    """

    def wrap(push: Writer) -> Writer:
        def write(packet: RTPPacket) -> None:
            headers_size = int.from_bytes(packet.payload[:2], "big") >> 3
            data = packet.payload[2 + headers_size:]
            if is_adts(data):
                data = data[_ADTS_HEADER_SIZE:]
            push(replace(packet, version=RTP_PACKET_VERSION_AAC, payload=data))

        return write

    return wrap


def aac_rtp_pay(mtu: int) -> Wrapper:
    """Return a wrapper that packs one AAC frame per RTP packet.

    ``mtu`` is accepted for symmetry with other payloaders; frames are not split.
    """

    sequence = _sequence_numbers()

    def wrap(push: Writer) -> Writer:
        def write(packet: RTPPacket) -> None:
            if packet.version != RTP_PACKET_VERSION_AAC:
                push(packet)
                return

            size = len(packet.payload)
            # 16-bit AU header section holding one 13-bit size and 3-bit index
            payload = (
                b"\x00\x10"
                + ((size << 3) & 0xFFFF).to_bytes(2, "big")
                + bytes(packet.payload)
            )
            push(
                RTPPacket(
                    version=2,
                    marker=True,
                    sequence_number=next(sequence),
                    timestamp=packet.timestamp,
                    payload=payload,
                )
            )

        return write

    return wrap