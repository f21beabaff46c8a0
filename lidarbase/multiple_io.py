"""Common base for descriptor multiplexers with timer and wake-up support."""

from __future__ import annotations

import enum
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from .wake_up import WakeUpPipe

TIMER_INTERVAL = 0.05


class FdEvent(enum.IntFlag):
    """Events a descriptor can be watched for."""

    NONE = 0
    READABLE = 1
    WRITABLE = 2


@dataclass
class PollFd:
    """A watched descriptor and the callbacks attached to it."""

    fd: int
    event: FdEvent = FdEvent.READABLE
    event_callback: Callable[[FdEvent], None] | None = None
    timer_callback: Callable[[float], None] | None = None
    wake_callback: Callable[[], None] | None = None


class MultipleIOBase(ABC):
    """Watches descriptors and dispatches read/write, timer and wake-up events.

    Time points passed to timer callbacks are ``time.monotonic()`` values.
    """

    def __init__(self) -> None:
        self.descriptors: dict[int, PollFd] = {}
        self.last_timeout: float | None = None
        self._wake_up_pipe: WakeUpPipe | None = None

    @abstractmethod
    def poll_create(self, size: int) -> bool:
        """Prepare to watch up to ``size`` descriptors plus the wake-up channel."""

    @abstractmethod
    def poll_destroy(self) -> None:
        """Release the poller and the wake-up channel."""

    @abstractmethod
    def poll_set_add(self, poll_fd: PollFd) -> bool:
        """Start watching ``poll_fd``; return False if the set is full."""

    @abstractmethod
    def poll_set_remove(self, poll_fd: PollFd) -> bool:
        """Stop watching the descriptor of ``poll_fd``."""

    @abstractmethod
    def poll(self, timeout: int) -> None:
        """Wait up to ``timeout`` milliseconds and dispatch ready events."""

    def poll_wake_up(self) -> None:
        """Interrupt a pending ``poll`` and trigger every wake callback."""
        if self._wake_up_pipe is not None:
            self._wake_up_pipe.wake_up()

    def check_timer(self) -> None:
        """Fire timer callbacks if more than 50 ms passed since they last fired."""
        now = time.monotonic()
        if self.last_timeout is not None and now - self.last_timeout <= TIMER_INTERVAL:
            return
        self.last_timeout = now
        for poll_fd in list(self.descriptors.values()):
            if poll_fd.timer_callback is not None:
                poll_fd.timer_callback(now)

    def _wake_up_init(self) -> None:
        pipe = WakeUpPipe()
        pipe.create()
        self._wake_up_pipe = pipe

        def on_wake(event: FdEvent) -> None:
            if not event & FdEvent.READABLE:
                return
            if self._wake_up_pipe is not None:
                self._wake_up_pipe.drain()
            for poll_fd in list(self.descriptors.values()):
                if poll_fd.wake_callback is not None:
                    poll_fd.wake_callback()

        self.poll_set_add(PollFd(fd=pipe.fileno(), event=FdEvent.READABLE, event_callback=on_wake))

    def _wake_up_uninit(self) -> None:
        pipe = self._wake_up_pipe
        if pipe is None:
            return
        self.poll_set_remove(
            PollFd(fd=pipe.fileno(), event=FdEvent.READABLE | FdEvent.WRITABLE)
        )
        pipe.destroy()
        self._wake_up_pipe = None