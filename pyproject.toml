[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ttyreplay"
version = "0.1.0"
description = "Terminal emulator and recording formats for replaying terminal sessions"
requires-python = ">=3.10"
dependencies = []
keywords = ["terminal", "vt100", "ttyrec", "recording", "playback", "ansi"]
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
    "Topic :: Terminals :: Terminal Emulators/X Terminals",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["ttyreplay"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
