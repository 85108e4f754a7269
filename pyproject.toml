[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "v4l2latency"
version = "0.1.0"
description = "Measure V4L2 camera frame delays and show a frame-accurate on-screen timer"
requires-python = ">=3.10"
dependencies = []
keywords = ["v4l2", "video4linux", "camera", "latency", "capture", "timer"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Environment :: X11 Applications",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Video :: Capture",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
v4l2latency-capture = "v4l2latency.capture_cli:main"
v4l2latency-timer = "v4l2latency.timer:main"

[tool.hatch.build.targets.wheel]
packages = ["v4l2latency"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
