"""Building FFmpeg command lines from ``ffmpeg:`` source strings."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from .hardware import make_hardware

Query = dict[str, list[str]]

DEFAULTS: dict[str, str] = {
    "bin": "ffmpeg",
    "global": "-hide_banner",
    # inputs
    "file": "-re -i {input}",
    "http": "-fflags nobuffer -flags low_delay -i {input}",
    "rtsp": (
        "-fflags nobuffer -flags low_delay -timeout 5000000 "
        "-user_agent go2rtc/ffmpeg -rtsp_transport tcp -i {input}"
    ),
    "rtsp/udp": (
        "-fflags nobuffer -flags low_delay -timeout 5000000 "
        "-user_agent go2rtc/ffmpeg -i {input}"
    ),
    # output
    "output": "-user_agent ffmpeg/go2rtc -rtsp_transport tcp -f rtsp {output}",
    # superfast rather than ultrafast, which cannot do `-profile main -level 4.1`
    "h264": (
        "-c:v libx264 -g 50 -profile:v high -level:v 4.1 "
        "-preset:v superfast -tune:v zerolatency"
    ),
    "h265": (
        "-c:v libx265 -g 50 -profile:v high -level:v 5.1 "
        "-preset:v superfast -tune:v zerolatency"
    ),
    "mjpeg": "-c:v mjpeg -force_duplicated_matrix:v 1 -huffman:v 0 -pix_fmt:v yuvj420p",
    "opus": "-c:a libopus -ar:a 48000 -ac:a 2",
    "pcmu": "-c:a pcm_mulaw -ar:a 8000 -ac:a 1",
    "pcmu/16000": "-c:a pcm_mulaw -ar:a 16000 -ac:a 1",
    "pcmu/48000": "-c:a pcm_mulaw -ar:a 48000 -ac:a 1",
    "pcma": "-c:a pcm_alaw -ar:a 8000 -ac:a 1",
    "pcma/16000": "-c:a pcm_alaw -ar:a 16000 -ac:a 1",
    "pcma/48000": "-c:a pcm_alaw -ar:a 48000 -ac:a 1",
    "aac": "-c:a aac",  # keep sample rate and channels
    "aac/16000": "-c:a aac -ar:a 16000 -ac:a 1",
    "mp3": "-c:a libmp3lame -q:a 8",
    # Intel and AMD on Linux; disabling B-frames matters
    "h264/vaapi": "-c:v h264_vaapi -g 50 -bf 0 -profile:v high -level:v 4.1 -sei:v 0",
    "h265/vaapi": "-c:v hevc_vaapi -g 50 -bf 0 -profile:v high -level:v 5.1 -sei:v 0",
    "mjpeg/vaapi": "-c:v mjpeg_vaapi",
    # Raspberry Pi
    "h264/v4l2m2m": "-c:v h264_v4l2m2m -g 50 -bf 0",
    "h265/v4l2m2m": "-c:v hevc_v4l2m2m -g 50 -bf 0",
    # NVidia on Linux and Windows
    "h264/cuda": "-c:v h264_nvenc -g 50 -profile:v high -level:v auto -preset:v p2 -tune:v ll",
    "h265/cuda": "-c:v hevc_nvenc -g 50 -profile:v high -level:v auto",
    # Intel on Windows
    "h264/dxva2": "-c:v h264_qsv -g 50 -bf 0 -profile:v high -level:v 4.1 -async_depth:v 1",
    "h265/dxva2": "-c:v hevc_qsv -g 50 -bf 0 -profile:v high -level:v 5.1 -async_depth:v 1",
    "mjpeg/dxva2": "-c:v mjpeg_qsv -profile:v high -level:v 5.1",
    # macOS
    "h264/videotoolbox": "-c:v h264_videotoolbox -g 50 -bf 0 -profile:v high -level:v 4.1",
    "h265/videotoolbox": "-c:v hevc_videotoolbox -g 50 -bf 0 -profile:v high -level:v 5.1",
}

_ROTATIONS = {
    "90": "transpose=1",  # clockwise
    "180": "transpose=1,transpose=1",
    "-90": "transpose=2",  # counterclockwise
    "270": "transpose=2",
}


@dataclass
class FFmpegArgs:
    """The parts of an FFmpeg command line; ``str()`` joins them."""

    binary: str = "ffmpeg"
    global_args: str = ""
    input: str = ""
    codecs: list[str] = field(default_factory=list)
    filters: list[str] = field(default_factory=list)
    output: str = ""
    video: int = 0  # number of video params
    audio: int = 0  # number of audio params

    def add_codec(self, codec: str) -> None:
        self.codecs.append(codec)

    def add_filter(self, filter_: str) -> None:
        self.filters.append(filter_)

    def insert_filter(self, filter_: str) -> None:
        self.filters.insert(0, filter_)

    def __str__(self) -> str:
        parts = [self.binary]
        if self.global_args:
            parts.append(self.global_args)
        parts.append(self.input)

        multimode = self.video > 1 or self.audio > 1
        iv = ia = 0
        for codec in self.codecs:
            if multimode and len(codec) >= 5:
                if codec[:5] == "-c:v ":
                    codec = "-map 0:v:0? " + codec.replace(":v ", f":v:{iv} ")
                    iv += 1
                elif codec[:5] == "-c:a ":
                    codec = "-map 0:a:0? " + codec.replace(":a ", f":a:{ia} ")
                    ia += 1
            parts.append(codec)

        if self.filters:
            parts.append("-vf " + ",".join(self.filters))

        parts.append(self.output)
        return " ".join(parts)


def parse_query(s: str) -> Query:
    """Parse ``key=value#key#...`` into a mapping of value lists."""
    query: Query = {}
    for key in s.split("#"):
        value = ""
        i = key.find("=")
        if i > 0:
            key, value = key[:i], key[i + 1:]
        query.setdefault(key, []).append(value)
    return query


def _get(query: Query | None, key: str) -> str:
    if not query:
        return ""
    values = query.get(key)
    return values[0] if values else ""


def input_template(
    name: str, s: str, query: Query | None, defaults: Mapping[str, str] | None = None
) -> str:
    """Fill an input template with ``s``.

    The template is ``name`` from the defaults, unless the query has an
    ``input`` param: then the template of that name, or the param itself.
    """
    defaults = DEFAULTS if defaults is None else defaults
    custom = _get(query, "input")
    if custom:
        template = defaults.get(custom, "") or custom
    else:
        template = defaults.get(name, "")
    return template.replace("{input}", s, 1)


def _codec(defaults: Mapping[str, str], value: str, copy: str) -> str:
    if value == "copy":
        return copy
    return defaults.get(value, "") or value


def parse_args(
    s: str,
    defaults: Mapping[str, str] | None = None,
    stream_exists: Callable[[str], bool] | None = None,
    rtsp_port: str = "8554",
    device_input: Callable[[str], str] | None = None,
    probe: Callable[[str], str] | None = None,
) -> FFmpegArgs:
    """Build FFmpeg arguments from a source string without the ``ffmpeg:`` prefix.

    Raises ValueError when a device input cannot be generated.
    """
    defaults = DEFAULTS if defaults is None else defaults
    args = FFmpegArgs(
        binary=defaults.get("bin", ""),
        global_args=defaults.get("global", ""),
        output=defaults.get("output", ""),
    )

    query: Query | None = None
    i = s.find("#")
    if i > 0:
        query = parse_query(s[i + 1:])
        args.video = len(query.get("video", []))
        args.audio = len(query.get("audio", []))
        s = s[:i]

    # input as a link, a stream name, a local device or a file
    i = s.find("://")
    if i > 0:
        scheme = s[:i]
        if scheme in ("http", "https", "rtmp"):
            args.input = input_template("http", s, query, defaults)
        elif scheme in ("rtsp", "rtsps"):
            # skip unnecessary input tracks
            if (args.video > 0) == (args.audio > 0):
                args.input = "-allowed_media_types video+audio "
            elif args.video > 0:
                args.input = "-allowed_media_types video "
            else:
                args.input = "-allowed_media_types audio "
            args.input += input_template("rtsp", s, query, defaults)
        else:
            args.input = "-i " + s
    elif stream_exists is not None and stream_exists(s):
        s = f"rtsp://localhost:{rtsp_port}/{s}"
        if args.video > 0 and args.audio == 0:
            s += "?video"
        elif args.audio > 0 and args.video == 0:
            s += "?audio"
        else:
            s += "?video&audio"
        args.input = input_template("rtsp", s, query, defaults)
    elif s.startswith("device?"):
        if device_input is None:
            raise ValueError("can't generate ffmpeg command")
        try:
            args.input = device_input(s)
        except ValueError as exc:
            raise ValueError("can't generate ffmpeg command") from exc
    else:
        args.input = input_template("file", s, query, defaults)

    if query is not None and "async" in query:
        args.input = "-use_wallclock_as_timestamps 1 -async 1 " + args.input

    if query is not None:
        for raw in query.get("raw", []):
            args.add_codec(raw)

        if "width" in query or "height" in query:
            width = query["width"][0] if "width" in query else "-1"
            height = query["height"][0] if "height" in query else "-1"
            args.add_filter(f"scale={width}:{height}")

        if "rotate" in query:
            rotation = _ROTATIONS.get(query["rotate"][0])
            if rotation:
                args.add_filter(rotation)

        if args.video > 0:
            for video in query["video"]:
                args.add_codec(_codec(defaults, video, "-c:v copy"))
        else:
            args.add_codec("-vn")

        if args.audio > 0:
            for audio in query["audio"]:
                args.add_codec(_codec(defaults, audio, "-c:a copy"))
        else:
            args.add_codec("-an")

        if "hardware" in query:
            make_hardware(args, query["hardware"][0], defaults, probe)

    if not args.codecs:
        args.add_codec("-c copy")

    return args