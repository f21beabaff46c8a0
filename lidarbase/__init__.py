"""Event loop, I/O multiplexing, UDP socket, callback, logging and NMEA time-sync helpers for lidar host software."""

__version__ = "0.1.0"

__all__ = [
    "backends",
    "callbacks",
    "io_loop",
    "log",
    "multiple_io",
    "network",
    "nmea_sync",
    "wake_up",
]