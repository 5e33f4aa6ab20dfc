"""Camera streaming building blocks: H.264 and AAC over RTP, FFmpeg command lines, DVRIP, configuration."""

__version__ = "1.2.0"

__all__ = [
    "aac",
    "config",
    "devices",
    "dvrip",
    "ffmpeg",
    "golomb",
    "h264",
    "handlers",
    "hardware",
    "payloader",
    "ps",
    "rtp",
    "store",
    "transport",
]