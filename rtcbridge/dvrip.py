"""Client for DVRIP (Sofia / XMeye) cameras and recorders."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import socket
import string
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import BinaryIO
from urllib.parse import parse_qs, unquote, urlsplit

from .h264 import annexb_to_avc, get_fmtp_line
from .rtp import RTPPacket

log = logging.getLogger(__name__)

LOGIN = 1000
OP_MONITOR_CLAIM = 1413
OP_MONITOR_START = 1410

DEFAULT_PORT = 34567
PAYLOAD_TYPE_RAW = 255  # payload is a whole frame, not RTP-packetized

KIND_VIDEO = "video"
KIND_AUDIO = "audio"
DIRECTION_SENDONLY = "sendonly"

_HEADER_SIZE = 20
_DIAL_TIMEOUT = 3.0
_IO_TIMEOUT = 5.0

_SAMPLE_RATES = (4000, 8000, 11025, 16000, 20000, 22050, 32000, 44100, 48000)

_H265_VPS = 32
_H265_SPS = 33
_H265_PPS = 34

_SOFIA_CHARS = string.digits + string.ascii_uppercase + string.ascii_lowercase

_MONITOR = (
    '{{"Name":"OPMonitor","SessionID":"0x{session:08X}",'
    '"OPMonitor":{{"Action":"{action}","Parameter":{stream}}}}}'
)


class DvripError(Exception):
    """A protocol error or a refusal from the device."""


@dataclass
class _Codec:
    name: str
    clock_rate: int = 0
    payload_type: int = 0
    fmtp_line: str = ""


@dataclass
class _Media:
    kind: str
    direction: str
    codecs: list[_Codec] = field(default_factory=list)


PacketSink = Callable[[_Media, RTPPacket], None]


def sofia_hash(password: str) -> str:
    """Return the 8-character password hash the devices expect."""
    digest = hashlib.md5(password.encode()).digest()
    return "".join(
        _SOFIA_CHARS[(digest[i] + digest[i + 1]) % 62] for i in range(0, len(digest), 2)
    )


def _h265_nalu_type(avc: bytes) -> int:
    return (avc[4] >> 1) & 0x3F


def _le(data: bytes) -> int:
    return int.from_bytes(data, "little")


class DvripClient:
    """Connects to a ``dvrip://`` URL and turns its media stream into packets."""

    def __init__(self, url: str, on_packet: PacketSink | None = None) -> None:
        self.url = url
        self.on_packet = on_packet
        self.session = 0
        self.seq = 0
        self.stream = ""
        self.medias: list[_Media] = []

        self._sock: socket.socket | None = None
        self._reader: BinaryIO | None = None
        self._video: _Media | None = None
        self._audio: _Media | None = None

        self._video_ts = 0
        self._video_dt = 0
        self._audio_ts = 0
        self._audio_seq = 0

    def __enter__(self) -> "DvripClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def dial(self) -> None:
        """Connect, choose the channel and stream type, and log in."""
        u = urlsplit(self.url)
        try:
            port = u.port or DEFAULT_PORT
        except ValueError as exc:
            raise DvripError(f"bad url: {self.url}") from exc

        self._sock = socket.create_connection((u.hostname or "", port), timeout=_DIAL_TIMEOUT)
        self._sock.settimeout(_IO_TIMEOUT)
        self._reader = self._sock.makefile("rb")

        query = parse_qs(u.query, keep_blank_values=True)
        channel = query.get("channel", [""])[0] or "0"
        subtype = query.get("subtype", [""])[0]
        subtype = {"": "Main", "0": "Main", "1": "Extra1"}.get(subtype, subtype)

        self.stream = (
            f'{{"Channel":{channel},"CombinMode":"NONE",'
            f'"StreamType":"{subtype}","TransMode":"TCP"}}'
        )

        if u.username is not None:
            self.login(unquote(u.username), unquote(u.password or ""))
        else:
            self.login("admin", "admin")

    def login(self, user: str, password: str) -> None:
        """Send the login request and check the answer."""
        data = (
            '{"EncryptType":"MD5","LoginType":"DVRIP-Web",'
            f'"PassWord":"{sofia_hash(password)}","UserName":"{user}"}}'
        )
        self.request(LOGIN, data)
        self.response_json()

    def play(self) -> None:
        """Claim the stream and ask the device to start sending it."""
        claim = _MONITOR.format(session=self.session, action="Claim", stream=self.stream)
        self.request(OP_MONITOR_CLAIM, claim)
        self.response_json()

        start = _MONITOR.format(session=self.session, action="Start", stream=self.stream)
        self.request(OP_MONITOR_START, start)

    def handle(self) -> None:
        """Read media frames and deliver them as packets.

        While no tracks are known yet, returns as soon as both video and audio
        have been seen, or after a few frames; otherwise runs until an error.
        """
        buf = b""
        size = 0
        probe = 1 if not self.medias else 0

        while True:
            b = self.response()

            # collect data from multiple packets
            if size > 0:
                buf += b
                if len(buf) < size:
                    continue
                if len(buf) > size:
                    raise DvripError("wrong size")
                b = buf

            if len(b) < 8:
                raise DvripError("short packet")
            data_type = int.from_bytes(b[:4], "big")
            if data_type in (0x1FC, 0x1FE):
                if len(b) < 16:
                    raise DvripError("short packet")
                size = _le(b[12:16]) + 16
            elif data_type == 0x1FD:
                size = _le(b[4:8]) + 8
            elif data_type in (0x1FA, 0x1F9):
                size = _le(b[6:8]) + 8
            else:
                raise DvripError(f"unknown type: {data_type:X}")

            if len(b) < size:
                buf = b
                continue

            if data_type in (0x1FC, 0x1FE):
                self._on_iframe(b)
            elif data_type == 0x1FD:
                self._on_pframe(b)
            else:
                self._on_audio(b, size)

            if probe:
                probe += 1
                if (self._video_ts > 0 and self._audio_ts > 0) or probe == 20:
                    return

            size = 0

    def _emit(self, media: _Media, packet: RTPPacket) -> None:
        if self.on_packet is not None:
            self.on_packet(media, packet)

    def _on_iframe(self, b: bytes) -> None:
        payload = annexb_to_avc(b[16:])

        if self._video is None:
            fps = b[5]
            if fps == 0:
                raise DvripError("zero frame rate")
            # the exact value of the start timestamp does not matter
            self._video_ts = _le(b[8:12])
            self._video_dt = 90000 // fps
            self.add_video_track(b[4], payload)

        if self._video is not None:
            self._video_ts = (self._video_ts + self._video_dt) & 0xFFFFFFFF
            self._emit(self._video, RTPPacket(version=0, timestamp=self._video_ts, payload=payload))

    def _on_pframe(self, b: bytes) -> None:
        if self._video is None:
            return
        self._video_ts = (self._video_ts + self._video_dt) & 0xFFFFFFFF
        payload = annexb_to_avc(b[8:])
        self._emit(self._video, RTPPacket(version=0, timestamp=self._video_ts, payload=payload))

    def _on_audio(self, b: bytes, size: int) -> None:
        if self._audio is None:
            # the exact value of the start timestamp does not matter
            self._audio_ts = self._video_ts
            self.add_audio_track(b[4], b[5])

        if self._audio is None:
            return

        rest: bytes | None = b
        while rest:
            payload = rest[8:size]
            rest = rest[size:] if len(rest) > size else None

            self._audio_ts = (self._audio_ts + len(payload)) & 0xFFFFFFFF
            self._audio_seq = (self._audio_seq + 1) & 0xFFFF

            self._emit(
                self._audio,
                RTPPacket(
                    version=2,
                    marker=True,
                    sequence_number=self._audio_seq,
                    timestamp=self._audio_ts,
                    payload=payload,
                ),
            )

    def request(self, cmd: int, data: str) -> None:
        """Send one command with its JSON body."""
        if self._sock is None:
            raise DvripError("not connected")
        body = data.encode()
        header = bytearray(_HEADER_SIZE)
        header[0] = 255
        header[4:8] = self.session.to_bytes(4, "little")
        header[8:12] = self.seq.to_bytes(4, "little")
        header[14:16] = cmd.to_bytes(2, "little")
        header[16:20] = (len(body) + 2).to_bytes(4, "little")

        self.seq = (self.seq + 1) & 0xFFFFFFFF
        self._sock.sendall(bytes(header) + body + b"\x0a\x00")

    def _read_exact(self, n: int) -> bytes:
        if self._reader is None:
            raise DvripError("not connected")
        data = self._reader.read(n)
        if data is None or len(data) < n:
            raise EOFError("connection closed")
        return data

    def response(self) -> bytes:
        """Read one message and return its body; remembers the session id."""
        header = self._read_exact(_HEADER_SIZE)
        if header[0] != 255:
            raise DvripError("read error")
        self.session = _le(header[4:8])
        return self._read_exact(_le(header[16:20]))

    def response_json(self) -> dict:
        """Read a JSON answer and check that its Ret code means success."""
        b = self.response()
        try:
            res = json.loads(b[:-2])
        except ValueError as exc:
            raise DvripError(f"bad response: {exc}") from exc
        if not isinstance(res, dict):
            raise DvripError(f"wrong response: {b!r}")
        ret = res.get("Ret")
        if isinstance(ret, bool) or not isinstance(ret, (int, float)) or ret not in (100, 515):
            raise DvripError(f"wrong response: {b!r}")
        return res

    def add_video_track(self, media_code: int, payload: bytes) -> None:
        """Create the video track from the first keyframe (AVC format)."""
        if media_code == 2:
            codec = _Codec(
                name="H264",
                clock_rate=90000,
                payload_type=PAYLOAD_TYPE_RAW,
                fmtp_line=get_fmtp_line(payload),
            )
        elif media_code in (0x03, 0x13):
            codec = _Codec(
                name="H265",
                clock_rate=90000,
                payload_type=PAYLOAD_TYPE_RAW,
                fmtp_line="profile-id=1",
            )
            names = {_H265_VPS: "vps", _H265_SPS: "sps", _H265_PPS: "pps"}
            while True:
                size = 4 + int.from_bytes(payload[:4], "big")
                name = names.get(_h265_nalu_type(payload))
                if name:
                    encoded = base64.b64encode(payload[4:size]).decode()
                    codec.fmtp_line += f";sprop-{name}={encoded}"
                if size < len(payload):
                    payload = payload[size:]
                else:
                    break
        else:
            log.warning("unsupported video codec: %d", media_code)
            return

        media = _Media(KIND_VIDEO, DIRECTION_SENDONLY, [codec])
        self.medias.append(media)
        self._video = media

    def add_audio_track(self, media_code: int, sample_rate: int) -> None:
        """Create the audio track; only G.711 u-law and A-law are supported."""
        if media_code == 10:
            codec = _Codec(name="PCMU")
        elif media_code == 14:
            codec = _Codec(name="PCMA")
        else:
            log.warning("unsupported audio codec: %d", media_code)
            return

        if 1 <= sample_rate <= len(_SAMPLE_RATES):
            codec.clock_rate = _SAMPLE_RATES[sample_rate - 1]

        media = _Media(KIND_AUDIO, DIRECTION_SENDONLY, [codec])
        self.medias.append(media)
        self._audio = media

    def close(self) -> None:
        """Close the connection."""
        if self._reader is not None:
            self._reader.close()
            self._reader = None
        if self._sock is not None:
            self._sock.close()
            self._sock = None