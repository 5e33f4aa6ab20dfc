import subprocess
from unittest.mock import patch

import pytest

from rtcbridge.devices import (
    KIND_AUDIO,
    KIND_VIDEO,
    DeviceMedia,
    device_input_suffix,
    find_media,
    get_input,
    list_devices,
    parse_avfoundation_devices,
    parse_dshow_devices,
)

AVFOUNDATION_OUTPUT = (
    "[AVFoundation indev @ 0x7fad54604380] AVFoundation video devices:\n"
    "[AVFoundation indev @ 0x7fad54604380] [0] FaceTime HD Camera\n"
    "[AVFoundation indev @ 0x7fad54604380] AVFoundation audio devices:\n"
    "[AVFoundation indev @ 0x7fad54604380] [0] Built-in Microphone\n"
    "dummy: Input/output error\n"
)

DSHOW_OUTPUT = (
    "[dshow @ 00000181e8d028c0] DirectShow devices\r\n"
    '[dshow @ 00000181e8d028c0] "VMware Virtual USB Video Device" (video)\r\n'
    '[dshow @ 00000181e8d028c0] "Microphone Array" (audio)\r\n'
)

MEDIAS = [
    DeviceMedia(KIND_VIDEO, "cam0"),
    DeviceMedia(KIND_AUDIO, "mic0"),
    DeviceMedia(KIND_VIDEO, "cam1"),
]


def test_parse_avfoundation_devices():
    medias = parse_avfoundation_devices(AVFOUNDATION_OUTPUT)
    assert medias == [
        DeviceMedia(KIND_VIDEO, "FaceTime HD Camera"),
        DeviceMedia(KIND_AUDIO, "Built-in Microphone"),
    ]


def test_parse_dshow_devices():
    medias = parse_dshow_devices(DSHOW_OUTPUT)
    assert medias == [
        DeviceMedia(KIND_VIDEO, "VMware Virtual USB Video Device"),
        DeviceMedia(KIND_AUDIO, "Microphone Array"),
    ]


def test_find_media_counts_within_kind():
    assert find_media(MEDIAS, KIND_VIDEO, 0) == MEDIAS[0]
    assert find_media(MEDIAS, KIND_VIDEO, 1) == MEDIAS[2]
    assert find_media(MEDIAS, KIND_AUDIO, 0) == MEDIAS[1]
    assert find_media(MEDIAS, KIND_AUDIO, 1) is None


def test_suffix_darwin():
    assert device_input_suffix(MEDIAS, 0, 0, "Darwin") == '"cam0:mic0"'
    only_video = [MEDIAS[0]]
    assert device_input_suffix(only_video, 0, 0, "darwin") == '"cam0"'
    assert device_input_suffix([], 0, 0, "darwin") == ""


def test_suffix_windows():
    assert device_input_suffix(MEDIAS, 1, 0, "windows") == 'video="cam1":audio=mic0"'
    assert device_input_suffix([MEDIAS[1]], 0, 0, "windows") == 'audio="mic0"'


def test_suffix_linux_requires_video():
    assert device_input_suffix(MEDIAS, 1, 0, "linux") == "cam1"
    with pytest.raises(ValueError):
        device_input_suffix([MEDIAS[1]], 0, 0, "linux")


def test_unsupported_system():
    with pytest.raises(ValueError):
        device_input_suffix(MEDIAS, 0, 0, "plan9")


def test_get_input_linux_with_params():
    medias = [DeviceMedia(KIND_VIDEO, "/dev/video0"), DeviceMedia(KIND_VIDEO, "/dev/video1")]
    result = get_input("device?video=1&resolution=1280x720", medias, "linux")
    assert result == "-f v4l2 -video_size 1280x720 -i /dev/video1"


def test_get_input_framerate_and_defaults():
    medias = [DeviceMedia(KIND_VIDEO, "/dev/video0")]
    result = get_input("device?framerate=30", medias, "linux")
    assert result == "-f v4l2 -framerate 30 -i /dev/video0"


def test_get_input_bad_index_is_zero():
    result = get_input("device?video=abc&audio=0", MEDIAS, "darwin")
    assert result == '-f avfoundation -i "cam0:mic0"'


@patch("rtcbridge.devices.subprocess.run")
def test_list_devices_darwin(run):
    run.return_value = subprocess.CompletedProcess(
        args=[], returncode=1, stderr=AVFOUNDATION_OUTPUT.encode()
    )
    medias = list_devices("ffmpeg", "darwin")
    assert medias == parse_avfoundation_devices(AVFOUNDATION_OUTPUT)
    cmd = run.call_args.args[0]
    assert cmd[0] == "ffmpeg"
    assert "avfoundation" in cmd


@patch("rtcbridge.devices.subprocess.run")
def test_list_devices_windows(run):
    run.return_value = subprocess.CompletedProcess(
        args=[], returncode=1, stderr=DSHOW_OUTPUT.encode()
    )
    medias = list_devices("ffmpeg", "windows")
    assert [m.kind for m in medias] == [KIND_VIDEO, KIND_AUDIO]
    assert "dshow" in run.call_args.args[0]


@patch("rtcbridge.devices.subprocess.run")
@patch("rtcbridge.devices.os.listdir")
def test_list_devices_linux_keeps_raw_devices(listdir, run):
    listdir.return_value = ["video1", "sda", "video0"]

    def fake_run(cmd, **kwargs):
        stderr = b"Raw : yuyv422" if cmd[-1] == "/dev/video0" else b"Compressed: mjpeg"
        return subprocess.CompletedProcess(args=cmd, returncode=1, stderr=stderr)

    run.side_effect = fake_run
    medias = list_devices("ffmpeg", "linux")
    assert medias == [DeviceMedia(KIND_VIDEO, "/dev/video0")]
    assert run.call_count == 2


@patch("rtcbridge.devices.subprocess.run")
def test_list_devices_missing_binary(run):
    run.side_effect = FileNotFoundError("ffmpeg")
    assert list_devices("ffmpeg", "darwin") == []