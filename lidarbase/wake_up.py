"""A self-signalling channel used to wake a blocked poller."""

from __future__ import annotations

import socket

DRAIN_CHUNK = 512


class WakeUpPipe:
    """A connected socket pair: writing to one end makes the other readable."""

    def __init__(self) -> None:
        self._reader: socket.socket | None = None
        self._writer: socket.socket | None = None

    def create(self) -> None:
        """Open both ends. Raises ``OSError`` if the pair cannot be created."""
        self.destroy()
        reader, writer = socket.socketpair()
        try:
            reader.setblocking(False)
            writer.setblocking(False)
        except OSError:
            reader.close()
            writer.close()
            raise
        self._reader, self._writer = reader, writer

    def destroy(self) -> None:
        """Close both ends; safe to call more than once."""
        for end in (self._writer, self._reader):
            if end is not None:
                end.close()
        self._reader = None
        self._writer = None

    def wake_up(self) -> None:
        """Make the read end readable. Does nothing if the pipe is not open."""
        if self._writer is None:
            return
        try:
            self._writer.send(b"1")
        except BlockingIOError:
            # The buffer is full, so a wake-up is already pending.
            pass

    def drain(self) -> int:
        """Consume up to 512 pending bytes and return how many were read."""
        if self._reader is None:
            return 0
        try:
            return len(self._reader.recv(DRAIN_CHUNK))
        except BlockingIOError:
            return 0

    def fileno(self) -> int:
        """Descriptor of the read end, or -1 when the pipe is not open."""
        return self._reader.fileno() if self._reader is not None else -1

    def __enter__(self) -> "WakeUpPipe":
        self.create()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()