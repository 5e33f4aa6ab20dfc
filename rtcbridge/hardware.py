"""Switching FFmpeg encoders to hardware engines, and probing for them."""

from __future__ import annotations

import logging
import platform
import subprocess
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from functools import partial
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .ffmpeg import FFmpegArgs

log = logging.getLogger(__name__)


class Engine(str, Enum):
    """Encoding engines FFmpeg can use."""

    SOFTWARE = "software"
    VAAPI = "vaapi"  # Intel iGPU and AMD GPU
    V4L2M2M = "v4l2m2m"  # Raspberry Pi 3 and 4
    CUDA = "cuda"  # NVidia on Windows and Linux
    DXVA2 = "dxva2"  # Intel on Windows
    VIDEOTOOLBOX = "videotoolbox"  # macOS

    def __str__(self) -> str:
        return self.value


_cache: dict[str, str] = {}


def cut(s: str, sep: str, pos: int) -> str:
    """Return the field at ``pos`` of ``s`` split by ``sep``, or ""."""
    for _ in range(pos):
        i = s.find(sep)
        if i <= 0:
            return ""
        s = s[i + 1:]
    i = s.find(sep)
    return s[:i] if i > 0 else s


def _replace_scale(filters: list[str], scale: str) -> list[str]:
    return [scale + f[6:] if f.startswith("scale=") else f for f in filters]


def _probe_engine(
    name: str, defaults: Mapping[str, str], probe: Callable[[str], str] | None
) -> str:
    if probe is not None:
        return str(probe(name))
    engine = _cache.get(name, "")
    if not engine:
        engine = str(probe_hardware(name, defaults.get("bin", "ffmpeg")))
        _cache[name] = engine
    return engine


def make_hardware(
    args: FFmpegArgs,
    engine: str,
    defaults: Mapping[str, str],
    probe: Callable[[str], str] | None = None,
) -> None:
    """Convert software encoders in ``args`` to ``engine``; "" picks one by probing."""
    engine = str(engine)
    for i, codec in enumerate(args.codecs):
        if len(codec) < 12:
            continue  # too short to be an encoder line

        name = cut(codec, " ", 1)
        if name == "libx264":
            name = "h264"
        elif name == "libx265":
            name = "h265"
        elif name != "mjpeg":
            continue

        # probing is only done for H264
        if not engine and name == "h264":
            engine = _probe_engine(name, defaults, probe)

        key = f"{name}/{engine}"

        if engine == Engine.VAAPI:
            args.input = "-hwaccel vaapi -hwaccel_output_format vaapi " + args.input
            args.codecs[i] = defaults.get(key, "")
            args.filters = _replace_scale(args.filters, "scale_vaapi=")
            # harmless when the input already supports hwaccel
            args.insert_filter("format=vaapi|nv12,hwupload")
        elif engine == Engine.CUDA:
            args.input = (
                "-hwaccel cuda -hwaccel_output_format cuda -extra_hw_frames 2 " + args.input
            )
            args.codecs[i] = defaults.get(key, "")
            args.filters = _replace_scale(args.filters, "scale_cuda=")
        elif engine == Engine.DXVA2:
            args.input = "-hwaccel dxva2 -hwaccel_output_format dxva2_vld " + args.input
            args.codecs[i] = defaults.get(key, "")
            args.filters = _replace_scale(args.filters, "scale_qsv=")
            args.insert_filter("hwmap=derive_device=qsv,format=qsv")
        elif engine == Engine.VIDEOTOOLBOX:
            args.input = (
                "-hwaccel videotoolbox -hwaccel_output_format videotoolbox_vld " + args.input
            )
            args.codecs[i] = defaults.get(key, "")
        elif engine == Engine.V4L2M2M:
            args.codecs[i] = defaults.get(key, "")


def _run(binary: str, args: Sequence[str]) -> bool:
    try:
        result = subprocess.run(
            [binary, *args],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
        )
    except OSError as exc:
        log.info("%s %s", list(args), exc)
        return False
    log.info("%s exit=%d", list(args), result.returncode)
    return result.returncode == 0


def _test(encoder: str, device: str | None = None, upload: bool = False) -> list[str]:
    args = ["-init_hw_device", device] if device else []
    args += ["-f", "lavfi", "-i", "testsrc2", "-t", "1"]
    if upload:
        args += ["-vf", "format=nv12,hwupload"]
    args += ["-c", encoder, "-f", "null", "-"]
    return args


_Probes = dict[str, list[tuple[Engine, list[str]]]]

_DARWIN: _Probes = {
    "h264": [(Engine.VIDEOTOOLBOX, _test("h264_videotoolbox"))],
    "h265": [(Engine.VIDEOTOOLBOX, _test("hevc_videotoolbox"))],
}

_LINUX_ARM: _Probes = {
    "h264": [(Engine.V4L2M2M, _test("h264_v4l2m2m"))],
    "h265": [(Engine.V4L2M2M, _test("hevc_v4l2m2m"))],
}

_LINUX: _Probes = {
    "h264": [
        (Engine.CUDA, _test("h264_nvenc", "cuda")),
        (Engine.VAAPI, _test("h264_vaapi", "vaapi", upload=True)),
    ],
    "h265": [
        (Engine.CUDA, _test("hevc_nvenc", "cuda")),
        (Engine.VAAPI, _test("hevc_vaapi", "vaapi", upload=True)),
    ],
    "mjpeg": [(Engine.VAAPI, _test("mjpeg_vaapi", "vaapi", upload=True))],
}

_WINDOWS: _Probes = {
    "h264": [
        (Engine.CUDA, _test("h264_nvenc", "cuda")),
        (Engine.DXVA2, _test("h264_qsv", "dxva2")),
    ],
    "h265": [
        (Engine.CUDA, _test("hevc_nvenc", "cuda")),
        (Engine.DXVA2, _test("hevc_qsv", "dxva2")),
    ],
    "mjpeg": [(Engine.DXVA2, _test("mjpeg_qsv", "dxva2"))],
}


def _is_arm(machine: str) -> bool:
    machine = machine.lower()
    return machine.startswith("arm") or machine.startswith("aarch64")


def probe_hardware(
    name: str,
    binary: str = "ffmpeg",
    system: str | None = None,
    machine: str | None = None,
    runner: Callable[[list[str]], bool] | None = None,
) -> Engine:
    """Find a working hardware engine for codec ``name`` by test encoding."""
    system = (platform.system() if system is None else system).lower()
    machine = platform.machine() if machine is None else machine
    run = runner if runner is not None else partial(_run, binary)

    if system == "darwin":
        probes = _DARWIN
    elif system == "linux":
        probes = _LINUX_ARM if _is_arm(machine) else _LINUX
    elif system == "windows":
        probes = _WINDOWS
    else:
        probes = {}

    for engine, args in probes.get(name, []):
        if run(list(args)):
            return engine
    return Engine.SOFTWARE