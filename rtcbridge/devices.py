"""Local capture devices (webcams, microphones) as FFmpeg inputs."""

from __future__ import annotations

import logging
import os
import platform
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from urllib.parse import parse_qs

log = logging.getLogger(__name__)

KIND_VIDEO = "video"
KIND_AUDIO = "audio"

_INPUT_PREFIX = {
    "darwin": "-f avfoundation",
    "linux": "-f v4l2",
    "windows": "-f dshow",
}

# "[AVFoundation indev @ 0x7fad54604380] [0] " before the device name
_AVFOUNDATION_NAME_OFFSET = 42
# '[dshow @ 00000181e8d028c0] "' before and '" (video)' after the device name
_DSHOW_NAME_START = 28
_DSHOW_NAME_END = 9


@dataclass(frozen=True)
class DeviceMedia:
    """A capture device: its kind ("video" or "audio") and its identifier."""

    kind: str
    mid: str


def _system(system: str | None) -> str:
    name = (platform.system() if system is None else system).lower()
    if name not in _INPUT_PREFIX:
        raise ValueError(f"unsupported system: {name}")
    return name


def _atoi(s: str) -> int:
    try:
        return int(s)
    except ValueError:
        return 0


def parse_avfoundation_devices(output: str) -> list[DeviceMedia]:
    """Parse the device list that FFmpeg prints for avfoundation."""
    medias: list[DeviceMedia] = []
    kind = ""
    for line in output.split("\n"):
        if line.endswith("video devices:"):
            kind = KIND_VIDEO
            continue
        if line.endswith("audio devices:"):
            kind = KIND_AUDIO
            continue
        if line.startswith("dummy"):
            break
        medias.append(DeviceMedia(kind, line[_AVFOUNDATION_NAME_OFFSET:]))
    return medias


def parse_dshow_devices(output: str) -> list[DeviceMedia]:
    """Parse the device list that FFmpeg prints for DirectShow."""
    medias: list[DeviceMedia] = []
    for line in output.split("\r\n"):
        if line.endswith("(video)"):
            kind = KIND_VIDEO
        elif line.endswith("(audio)"):
            kind = KIND_AUDIO
        else:
            continue
        medias.append(DeviceMedia(kind, line[_DSHOW_NAME_START:-_DSHOW_NAME_END]))
    return medias


def find_media(
    medias: Sequence[DeviceMedia], kind: str, index: int
) -> DeviceMedia | None:
    """Return the ``index``-th device of ``kind``, or None."""
    matching = [media for media in medias if media.kind == kind]
    if 0 <= index < len(matching):
        return matching[index]
    return None


def device_input_suffix(
    medias: Sequence[DeviceMedia],
    video_idx: int,
    audio_idx: int,
    system: str | None = None,
) -> str:
    """Return the ``-i`` value that selects the chosen devices."""
    system = _system(system)
    video = find_media(medias, KIND_VIDEO, video_idx)

    if system == "linux":
        if video is None:
            raise ValueError(f"video device not found: {video_idx}")
        return video.mid

    audio = find_media(medias, KIND_AUDIO, audio_idx)

    if system == "darwin":
        if video is not None and audio is not None:
            return f'"{video.mid}:{audio.mid}"'
        if video is not None:
            return f'"{video.mid}"'
        if audio is not None:
            return f'"{audio.mid}"'
        return ""

    if video is not None and audio is not None:
        return f'video="{video.mid}":audio={audio.mid}"'
    if video is not None:
        return f'video="{video.mid}"'
    if audio is not None:
        return f'audio="{audio.mid}"'
    return ""


def get_input(
    src: str,
    medias: Sequence[DeviceMedia] | None = None,
    system: str | None = None,
) -> str:
    """Build FFmpeg input args from ``device?video=0&audio=0&framerate=..&resolution=..``."""
    system = _system(system)
    if medias is None:
        medias = list_devices(system=system)

    result = _INPUT_PREFIX[system]
    video_idx = audio_idx = 0

    i = src.find("?")
    if i > 0:
        query = parse_qs(src[i + 1:], keep_blank_values=True)
        for key, values in query.items():
            value = values[0]
            if key == "video":
                video_idx = _atoi(value)
            elif key == "audio":
                audio_idx = _atoi(value)
            elif key == "framerate":
                result += " -framerate " + value
            elif key == "resolution":
                result += " -video_size " + value

    return result + " -i " + device_input_suffix(medias, video_idx, audio_idx, system)


def _stderr_of(cmd: list[str]) -> str:
    try:
        result = subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        log.warning("%s: %s", cmd[0], exc)
        return ""
    stderr = result.stderr or b""
    if isinstance(stderr, bytes):
        return stderr.decode("utf-8", errors="replace")
    return stderr


def _list_v4l2(binary: str) -> list[DeviceMedia]:
    try:
        names = sorted(os.listdir("/dev"))
    except OSError:
        return []
    medias: list[DeviceMedia] = []
    for name in names:
        log.debug("device %s", name)
        if not name.startswith(KIND_VIDEO):
            continue
        path = "/dev/" + name
        stderr = _stderr_of(
            [binary, "-hide_banner", "-f", "v4l2", "-list_formats", "all", "-i", path]
        )
        if "Raw" in stderr:
            medias.append(DeviceMedia(KIND_VIDEO, path))
    return medias


def list_devices(binary: str = "ffmpeg", system: str | None = None) -> list[DeviceMedia]:
    """Ask FFmpeg for the capture devices of this system."""
    system = _system(system)
    if system == "linux":
        return _list_v4l2(binary)
    if system == "darwin":
        stderr = _stderr_of(
            [binary, "-hide_banner", "-list_devices", "true", "-f", "avfoundation", "-i", "dummy"]
        )
        return parse_avfoundation_devices(stderr)
    stderr = _stderr_of(
        [binary, "-hide_banner", "-list_devices", "true", "-f", "dshow", "-i", ""]
    )
    return parse_dshow_devices(stderr)