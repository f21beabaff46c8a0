"""Event loop dispatching socket, timer and wake-up events, and its thread."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from typing import Any, Callable

from .backends import create_multiple_io
from .log import get_logger
from .multiple_io import FdEvent, MultipleIOBase, PollFd

OPEN_MAX_POLL = 48
POLL_TIMEOUT = 50  # milliseconds

IOLoopTask = Callable[[], None]


class _NonCopyable:
    """Mixin that forbids copying."""

    def __copy__(self) -> Any:
        raise TypeError(f"{type(self).__name__} cannot be copied")

    def __deepcopy__(self, memo: dict) -> Any:
        raise TypeError(f"{type(self).__name__} cannot be copied")


def _fileno(sock: Any) -> int:
    return sock.fileno() if hasattr(sock, "fileno") else int(sock)


class IOLoopDelegate:
    """Receives events for a socket registered with an :class:`IOLoop`.

    Subclasses may override the ``on_*`` methods; alternatively handlers can
    be passed to the constructor and are then called by the default methods.
    """

    _data_handler: Callable[[Any, Any], None] | None = None
    _timer_handler: Callable[[float], None] | None = None
    _wake_handler: Callable[[], None] | None = None

    def __init__(
        self,
        on_data: Callable[[Any, Any], None] | None = None,
        on_timer: Callable[[float], None] | None = None,
        on_wake: Callable[[], None] | None = None,
    ) -> None:
        self._data_handler = on_data
        self._timer_handler = on_timer
        self._wake_handler = on_wake

    def on_data(self, sock: Any, data: Any) -> None:
        """Called when ``sock`` is readable; ``data`` is what was registered."""
        handler = self._data_handler
        if handler is not None:
            handler(sock, data)

    def on_timer(self, time_point: float) -> None:
        """Called roughly every 50 ms with a ``time.monotonic()`` value."""
        handler = self._timer_handler
        if handler is not None:
            handler(time_point)

    def on_wake(self) -> None:
        """Called whenever the loop is woken up."""
        handler = self._wake_handler
        if handler is not None:
            handler()


class IOLoop(_NonCopyable):
    """Polls registered sockets and runs tasks posted from any thread."""

    def __init__(self, enable_timer: bool = True, enable_wake: bool = True) -> None:
        self.enable_timer = enable_timer
        self.enable_wake = enable_wake
        self._lock = threading.Lock()
        self._pending_tasks: list[IOLoopTask] = []
        self._multiple_io: MultipleIOBase | None = None

    def init(self) -> None:
        """Create the poller. Raises ``RuntimeError`` if it cannot be created."""
        multiple_io = create_multiple_io()
        if not multiple_io.poll_create(OPEN_MAX_POLL):
            get_logger().error("Poll Create Failed!")
            raise RuntimeError("poll create failed")
        self._multiple_io = multiple_io

    def uninit(self) -> None:
        """Release the poller."""
        if self._multiple_io is not None:
            self._multiple_io.poll_destroy()
            self._multiple_io = None

    def add_delegate(self, sock: Any, delegate: IOLoopDelegate | None, data: Any = None) -> None:
        """Register ``sock`` with ``delegate``; takes effect on the loop thread."""
        self.post_task(lambda: self._add_delegate_async(sock, delegate, data))

    def remove_delegate(self, sock: Any, delegate: IOLoopDelegate | None = None) -> None:
        """Unregister ``sock``; takes effect on the loop thread."""
        self.post_task(lambda: self._remove_delegate_async(sock))

    def loop(self) -> None:
        """Poll once for up to 50 ms, then run every task posted so far."""
        if self._multiple_io is not None:
            self._multiple_io.poll(POLL_TIMEOUT)
        with self._lock:
            tasks, self._pending_tasks = self._pending_tasks, []
        for task in tasks:
            task()

    def wakeup(self) -> None:
        """Interrupt a pending poll."""
        if self._multiple_io is not None:
            self._multiple_io.poll_wake_up()

    def post_task(self, task: IOLoopTask) -> None:
        """Queue ``task`` to run on the next :meth:`loop` and wake the loop."""
        with self._lock:
            self._pending_tasks.append(task)
        self.wakeup()

    def _add_delegate_async(self, sock: Any, delegate: IOLoopDelegate | None, data: Any) -> None:
        if self._multiple_io is None:
            return

        def on_event(event: FdEvent) -> None:
            if event & FdEvent.READABLE and delegate is not None:
                delegate.on_data(sock, data)

        poll_fd = PollFd(fd=_fileno(sock), event=FdEvent.READABLE, event_callback=on_event)
        if delegate is not None:
            if self.enable_timer:
                poll_fd.timer_callback = delegate.on_timer
            if self.enable_wake:
                poll_fd.wake_callback = delegate.on_wake
        self._multiple_io.poll_set_add(poll_fd)

    def _remove_delegate_async(self, sock: Any) -> None:
        if self._multiple_io is None:
            return
        self._multiple_io.poll_set_remove(PollFd(fd=_fileno(sock), event=FdEvent.READABLE))

    def __enter__(self) -> "IOLoop":
        self.init()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.uninit()


class ThreadBase(_NonCopyable, ABC):
    """Runs :meth:`thread_func` on a thread until asked to quit."""

    def __init__(self) -> None:
        self._quit = threading.Event()
        self._thread: threading.Thread | None = None

    @abstractmethod
    def thread_func(self) -> None:
        """Body of the thread; should return once :meth:`is_quit` is true."""

    def start(self) -> None:
        """Start the thread."""
        self._quit.clear()
        self._thread = threading.Thread(target=self.thread_func, daemon=True)
        self._thread.start()

    def join(self) -> None:
        """Ask the thread to quit and wait for it to finish."""
        self._quit.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def is_quit(self) -> bool:
        """True once the thread has been asked to quit."""
        return self._quit.is_set()


class IOThread(ThreadBase):
    """A thread that runs an :class:`IOLoop` until joined."""

    def __init__(self) -> None:
        super().__init__()
        self._loop: IOLoop | None = None

    def init(self, enable_timer: bool = True, enable_wake: bool = True) -> None:
        """Create and initialise the loop. Raises ``RuntimeError`` on failure."""
        loop = IOLoop(enable_timer, enable_wake)
        loop.init()
        self._loop = loop

    def get_loop(self) -> IOLoop | None:
        """The loop run by this thread, or None before :meth:`init`."""
        return self._loop

    def thread_func(self) -> None:
        loop = self._loop
        if loop is None:
            return
        while not self.is_quit():
            loop.loop()

    def close(self) -> None:
        """Stop the thread and release the loop."""
        self.join()
        if self._loop is not None:
            self._loop.uninit()
            self._loop = None

    def __enter__(self) -> "IOThread":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()