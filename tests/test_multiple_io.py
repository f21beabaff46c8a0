import select
import socket
import time

import pytest

from lidarbase.multiple_io import TIMER_INTERVAL, FdEvent, MultipleIOBase, PollFd


class _SelectIO(MultipleIOBase):
    def poll_create(self, size):
        self.max_size = size + 1
        self._wake_up_init()
        return True

    def poll_destroy(self):
        self._wake_up_uninit()

    def poll_set_add(self, poll_fd):
        if len(self.descriptors) >= self.max_size:
            return False
        self.descriptors[poll_fd.fd] = poll_fd
        return True

    def poll_set_remove(self, poll_fd):
        self.descriptors.pop(poll_fd.fd, None)
        return True

    def poll(self, timeout):
        readable, _, _ = select.select(list(self.descriptors), [], [], timeout / 1000)
        for fd in readable:
            poll_fd = self.descriptors.get(fd)
            if poll_fd is not None and poll_fd.event_callback is not None:
                poll_fd.event_callback(FdEvent.READABLE)
        self.check_timer()


@pytest.fixture
def io():
    backend = _SelectIO()
    backend.poll_create(4)
    yield backend
    backend.poll_destroy()


def test_base_is_abstract():
    with pytest.raises(TypeError):
        MultipleIOBase()


def test_poll_create_registers_wake_descriptor():
    backend = _SelectIO()
    assert backend.poll_create(4) is True
    a, b = socket.socketpair()
    try:
        assert len(backend.descriptors) == 1
        (wake_fd,) = backend.descriptors.values()
        assert wake_fd.event == FdEvent.READABLE
        assert wake_fd.event_callback is not None
        assert backend.poll_set_add(PollFd(fd=a.fileno())) is True
        assert len(backend.descriptors) == 2
    finally:
        backend.poll_destroy()
        a.close()
        b.close()


def test_wake_up_triggers_every_wake_callback(io):
    calls = []
    a, b = socket.socketpair()
    try:
        io.poll_set_add(PollFd(fd=a.fileno(), wake_callback=lambda: calls.append("a")))
        io.poll_set_add(PollFd(fd=b.fileno(), wake_callback=lambda: calls.append("b")))
        io.poll_wake_up()
        io.poll(1000)
        assert sorted(calls) == ["a", "b"]
    finally:
        a.close()
        b.close()


def test_wake_up_is_drained(io):
    calls = []
    a, b = socket.socketpair()
    try:
        io.poll_set_add(PollFd(fd=a.fileno(), wake_callback=lambda: calls.append(1)))
        io.poll_wake_up()
        io.poll(1000)
        io.poll(10)
        assert calls == [1]
    finally:
        a.close()
        b.close()


def test_readable_descriptor_dispatches_event(io):
    events = []
    a, b = socket.socketpair()
    try:
        io.poll_set_add(PollFd(fd=a.fileno(), event_callback=events.append))
        b.send(b"x")
        io.poll(1000)
        assert events == [FdEvent.READABLE]
    finally:
        a.close()
        b.close()


def test_check_timer_fires_then_throttles(io):
    ticks = []
    a, b = socket.socketpair()
    try:
        io.poll_set_add(PollFd(fd=a.fileno(), timer_callback=ticks.append))
        io.check_timer()
        io.check_timer()
        assert len(ticks) == 1
        time.sleep(TIMER_INTERVAL + 0.02)
        io.check_timer()
        assert len(ticks) == 2
        assert ticks[1] > ticks[0]
        assert io.last_timeout == ticks[1]
    finally:
        a.close()
        b.close()


def test_poll_destroy_removes_wake_descriptor():
    backend = _SelectIO()
    backend.poll_create(2)
    a, b = socket.socketpair()
    try:
        user_fd = PollFd(fd=a.fileno())
        backend.poll_set_add(user_fd)
        backend.poll_destroy()
        assert backend.descriptors == {a.fileno(): user_fd}
        backend.poll_wake_up()
        assert backend.descriptors == {a.fileno(): user_fd}
    finally:
        a.close()
        b.close()


def test_set_full_rejects_add(io):
    socks = [socket.socketpair() for _ in range(5)]
    try:
        results = [io.poll_set_add(PollFd(fd=a.fileno())) for a, _ in socks]
        assert results == [True, True, True, True, False]
    finally:
        for a, b in socks:
            a.close()
            b.close()