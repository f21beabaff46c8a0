[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lidarbase"
version = "0.1.0"
description = "Networking and event-loop building blocks for lidar host software: I/O multiplexing, wake-up pipes, UDP sockets, command callbacks and NMEA RMC time sync."
requires-python = ">=3.10"
keywords = ["lidar", "udp", "event-loop", "selectors", "nmea", "gprmc", "serial"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Operating System :: Microsoft :: Windows",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "psutil",
    "pyserial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["lidarbase"]

[tool.pytest.ini_options]
addopts = "-ra"
