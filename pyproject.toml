[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rtcbridge"
version = "1.2.0"
description = "Building blocks for a camera streaming bridge: H.264 bitstream tools, RTP packetizers, FFmpeg command generation, a DVRIP client and configuration helpers"
requires-python = ">=3.10"
keywords = [
    "h264",
    "rtp",
    "aac",
    "ffmpeg",
    "dvrip",
    "streaming",
    "camera",
    "sps",
    "pps",
    "exp-golomb",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video",
    "Topic :: Multimedia :: Sound/Audio",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["rtcbridge"]

[tool.hatch.build.targets.sdist]
include = [
    "rtcbridge",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
