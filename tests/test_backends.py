import socket
import time

import pytest

from lidarbase.backends import SelectMultipleIO, SelectorMultipleIO, create_multiple_io
from lidarbase.multiple_io import FdEvent, PollFd


@pytest.fixture(params=[False, True], ids=["selector", "select"])
def mio(request):
    io = create_multiple_io(prefer_select=request.param)
    assert io.poll_create(4) is True
    yield io
    io.poll_destroy()


@pytest.fixture
def pair():
    a, b = socket.socketpair()
    a.setblocking(False)
    b.setblocking(False)
    yield a, b
    a.close()
    b.close()


def test_factory_choice_and_wake_registration():
    selector_io = create_multiple_io(prefer_select=False)
    select_io = create_multiple_io(prefer_select=True)
    assert isinstance(selector_io, SelectorMultipleIO)
    assert isinstance(select_io, SelectMultipleIO)
    for io in (selector_io, select_io):
        assert io.poll_create(2) is True
        assert len(io.descriptors) == 1
        io.poll_destroy()
        assert io.descriptors == {}


def test_readable_event_dispatched(mio, pair):
    reader, writer = pair
    events = []
    assert mio.poll_set_add(PollFd(fd=reader.fileno(), event=FdEvent.READABLE,
                                   event_callback=events.append))
    writer.send(b"x")
    mio.poll(200)
    assert events == [FdEvent.READABLE]


def test_no_event_without_data(mio, pair):
    reader, _ = pair
    events = []
    mio.poll_set_add(PollFd(fd=reader.fileno(), event=FdEvent.READABLE,
                            event_callback=events.append))
    mio.poll(0)
    assert events == []


def test_writable_event_dispatched(mio, pair):
    sock, _ = pair
    events = []
    assert mio.poll_set_add(PollFd(fd=sock.fileno(), event=FdEvent.WRITABLE,
                                   event_callback=events.append))
    mio.poll(200)
    assert events == [FdEvent.WRITABLE]


def test_capacity_limit(pair):
    for io in (SelectorMultipleIO(), SelectMultipleIO()):
        io.poll_create(1)
        a, b = pair
        assert io.poll_set_add(PollFd(fd=a.fileno())) is True
        assert io.poll_set_add(PollFd(fd=b.fileno())) is False
        assert b.fileno() not in io.descriptors
        io.poll_destroy()


def test_remove_stops_dispatch(mio, pair):
    reader, writer = pair
    events = []
    poll_fd = PollFd(fd=reader.fileno(), event=FdEvent.READABLE, event_callback=events.append)
    mio.poll_set_add(poll_fd)
    assert mio.poll_set_remove(poll_fd) is True
    assert reader.fileno() not in mio.descriptors
    writer.send(b"x")
    mio.poll(50)
    assert events == []


def test_remove_unknown_descriptor(mio, pair):
    reader, _ = pair
    assert mio.poll_set_remove(PollFd(fd=reader.fileno())) is True
    assert len(mio.descriptors) == 1


def test_wake_up_calls_wake_callbacks_once(mio, pair):
    reader, _ = pair
    wakes = []
    mio.poll_set_add(PollFd(fd=reader.fileno(), event=FdEvent.READABLE,
                            wake_callback=lambda: wakes.append(1)))
    mio.poll_wake_up()
    mio.poll(200)
    assert wakes == [1]
    mio.poll(0)
    assert wakes == [1]


def test_timer_fires_with_monotonic_time(mio, pair):
    reader, _ = pair
    ticks = []
    mio.poll_set_add(PollFd(fd=reader.fileno(), event=FdEvent.READABLE,
                            timer_callback=ticks.append))
    before = time.monotonic()
    mio.poll(0)
    assert len(ticks) == 1
    assert ticks[0] >= before
    time.sleep(0.06)
    mio.poll(0)
    assert len(ticks) == 2
    assert ticks[1] > ticks[0]


def test_selector_rejects_duplicate(pair):
    io = SelectorMultipleIO()
    io.poll_create(4)
    reader, _ = pair
    assert io.poll_set_add(PollFd(fd=reader.fileno())) is True
    assert io.poll_set_add(PollFd(fd=reader.fileno())) is False
    io.poll_destroy()


def test_select_empty_poll_sleeps():
    io = SelectMultipleIO()
    io.poll_create(2)
    io.poll_destroy()
    assert io.descriptors == {}
    start = time.monotonic()
    io.poll(30)
    assert time.monotonic() - start >= 0.025
    assert io.descriptors == {}