"""Concrete descriptor multiplexers built on ``selectors`` and ``select``."""

from __future__ import annotations

import select
import selectors
import time

from .multiple_io import FdEvent, MultipleIOBase, PollFd


def _timeout_seconds(timeout: int) -> float | None:
    """Convert a millisecond timeout to seconds; a negative one means block."""
    if timeout < 0:
        return None
    return timeout / 1000.0


def _selector_mask(event: FdEvent) -> int:
    mask = 0
    if event & FdEvent.READABLE:
        mask |= selectors.EVENT_READ
    if event & FdEvent.WRITABLE:
        mask |= selectors.EVENT_WRITE
    return mask


class SelectorMultipleIO(MultipleIOBase):
    """Multiplexer on the platform's best selector (epoll, kqueue, poll, ...)."""

    def __init__(self) -> None:
        super().__init__()
        self._selector: selectors.BaseSelector | None = None
        self._max_poll_size = 0

    def poll_create(self, size: int) -> bool:
        """Open the selector and register the wake-up channel."""
        self._max_poll_size = size + 1
        try:
            self._selector = selectors.DefaultSelector()
        except OSError:
            self._selector = None
            return False
        self._wake_up_init()
        return True

    def poll_destroy(self) -> None:
        """Unregister the wake-up channel and close the selector."""
        self._wake_up_uninit()
        if self._selector is not None:
            self._selector.close()
            self._selector = None

    def poll_set_add(self, poll_fd: PollFd) -> bool:
        """Watch ``poll_fd``; False if the set is full or registration fails."""
        if self._selector is None or self._max_poll_size <= len(self.descriptors):
            return False
        try:
            self._selector.register(poll_fd.fd, _selector_mask(FdEvent(poll_fd.event)))
        except (KeyError, ValueError, OSError):
            return False
        self.descriptors[poll_fd.fd] = poll_fd
        return True

    def poll_set_remove(self, poll_fd: PollFd) -> bool:
        """Stop watching the descriptor of ``poll_fd``."""
        if self._selector is not None:
            try:
                self._selector.unregister(poll_fd.fd)
            except (KeyError, ValueError, OSError):
                pass
        self.descriptors.pop(poll_fd.fd, None)
        return True

    def poll(self, timeout: int) -> None:
        """Wait up to ``timeout`` ms, dispatch ready events, then check timers."""
        if self._selector is not None:
            ready = self._selector.select(_timeout_seconds(timeout))
            for key, mask in ready:
                fd_event = FdEvent.NONE
                if mask & selectors.EVENT_READ:
                    fd_event |= FdEvent.READABLE
                if mask & selectors.EVENT_WRITE:
                    fd_event |= FdEvent.WRITABLE
                poll_fd = self.descriptors.get(key.fd)
                if poll_fd is not None and poll_fd.event_callback is not None:
                    poll_fd.event_callback(fd_event)
        self.check_timer()


class SelectMultipleIO(MultipleIOBase):
    """Multiplexer on plain ``select.select``."""

    def __init__(self) -> None:
        super().__init__()
        self._read_fds: set[int] = set()
        self._write_fds: set[int] = set()
        self._max_poll_size = 0

    def poll_create(self, size: int) -> bool:
        """Reset the watched sets and register the wake-up channel."""
        self._read_fds.clear()
        self._write_fds.clear()
        self._max_poll_size = size + 1
        self._wake_up_init()
        return True

    def poll_destroy(self) -> None:
        """Unregister the wake-up channel and forget every watched descriptor."""
        self._wake_up_uninit()
        self._read_fds.clear()
        self._write_fds.clear()

    def poll_set_add(self, poll_fd: PollFd) -> bool:
        """Watch ``poll_fd``; False if the set is full."""
        if self._max_poll_size <= len(self.descriptors):
            return False
        fd = poll_fd.fd
        self.descriptors[fd] = poll_fd
        event = FdEvent(poll_fd.event)
        if event & FdEvent.READABLE:
            self._read_fds.add(fd)
        if event & FdEvent.WRITABLE:
            self._write_fds.add(fd)
        return True

    def poll_set_remove(self, poll_fd: PollFd) -> bool:
        """Stop watching the descriptor of ``poll_fd``."""
        fd = poll_fd.fd
        self.descriptors.pop(fd, None)
        self._read_fds.discard(fd)
        self._write_fds.discard(fd)
        return True

    def poll(self, timeout: int) -> None:
        """Wait up to ``timeout`` ms, dispatch ready events, then check timers.

        With nothing watched it only sleeps for ``timeout`` ms.
        """
        if not self.descriptors:
            if timeout > 0:
                time.sleep(timeout / 1000.0)
            return

        seconds = _timeout_seconds(timeout)
        if not self._read_fds and not self._write_fds:
            if seconds:
                time.sleep(seconds)
            self.check_timer()
            return

        readable, writable, _ = select.select(
            sorted(self._read_fds), sorted(self._write_fds), [], seconds
        )
        ready_read = set(readable)
        ready_write = set(writable)
        if ready_read or ready_write:
            for fd in sorted(self.descriptors):
                fd_event = FdEvent.NONE
                if fd in ready_read:
                    fd_event |= FdEvent.READABLE
                if fd in ready_write:
                    fd_event |= FdEvent.WRITABLE
                if fd_event == FdEvent.NONE:
                    continue
                poll_fd = self.descriptors.get(fd)
                if poll_fd is not None and poll_fd.event_callback is not None:
                    poll_fd.event_callback(fd_event)
        self.check_timer()


def create_multiple_io(prefer_select: bool = False) -> MultipleIOBase:
    """Return the best multiplexer available, or the ``select`` one if asked."""
    if prefer_select:
        return SelectMultipleIO()
    return SelectorMultipleIO()