# lidarbase

Building blocks for host-side lidar software. The package provides:

- a small I/O event loop with two multiplexing back ends;
- a wake-up channel for signalling between threads;
- UDP socket helpers;
- wrappers for command-response callbacks;
- logging set-up;
- a reader for serial NMEA `$GPRMC`/`$GNRMC` sentences, used for time
  synchronisation.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

### `lidarbase.log`

- `init_logger(console_enabled=False, save_to_file=False, file_path="lidar_log.txt")`
  configures the shared `logging` logger named `lidarbase` and returns it.
  - It can log to stdout.
  - It can log to a rotating file of 5 MiB with 2 backups.
  - A second call returns the logger that already exists and ignores its
    arguments.
- `get_logger()` returns the shared logger. If none has been configured yet,
  it configures a silent one.
- `uninit_logger()` removes and closes all of the logger's handlers.

### `lidarbase.callbacks`

`CommandCallback` is the abstract base. Its subclasses are callables that
take `(status, handle, data)`:

- `FunctionStatusCallback(func, client_data)` calls
  `func(status, handle, data, client_data)`.
- `ByteStatusCallback(func, client_data)` is the same, except that it first
  reduces `data` to one byte:
  - `None` gives 0;
  - a byte string gives its first byte;
  - an integer is masked to 8 bits.
- `MessageCallback(func)` calls `func(status, handle, data)`.

If `func` is `None`, these callbacks do nothing.

Factories:

- `make_command_callback(func, client_data=None, byte_response=False)`
- `make_message_callback(func)`

### `lidarbase.wake_up`

`WakeUpPipe` is a non-blocking socket pair.

- `create()` and `destroy()` open and close it. It is also a context manager.
- `wake_up()` makes the read end readable.
- `drain()` consumes up to 512 pending bytes and returns how many were read.
- `fileno()` returns the read end's descriptor, or -1 when the pipe is closed.

### `lidarbase.network`

- `create_socket(port, nonblock=True, reuse_port=True, is_broadcast=False, netif="", multicast_ip="")`
  returns a bound UDP socket with a 200 MiB receive buffer.
  - With `netif` empty, it binds to all interfaces. Otherwise it binds to
    `multicast_ip` if one is given, else to `netif`.
  - With `multicast_ip` given, it joins that group. A failure to join is
    logged and does not raise.
  - Any other setup failure raises `OSError`.
- `find_local_ip(client_ip, interfaces=None)` returns the first local IPv4
  address that is on the same subnet as `client_ip`, or `None` if there is
  none.
  - `interfaces` is an iterable of `(address, netmask)` pairs.
  - By default it uses the host's interfaces, found through `psutil`.
- `recv_from(sock, buf_size)` returns `(payload, (host, port))`.
- `close_sock(sock)` closes the socket. It accepts `None`.

### `lidarbase.multiple_io`

- `FdEvent` is an `IntFlag`: `NONE`, `READABLE`, `WRITABLE`.
- `PollFd` is a dataclass holding a descriptor, the events to watch, and
  optional event, timer and wake callbacks.
- `MultipleIOBase` is the abstract multiplexer. It provides:
  - `poll_wake_up()`, which interrupts `poll` and runs every wake callback;
  - `check_timer()`, which runs the timer callbacks with a `time.monotonic()`
    value at most once every 50 ms.

### `lidarbase.backends`

- `SelectorMultipleIO` uses `selectors.DefaultSelector`, which is epoll,
  kqueue, poll, etc. depending on the platform.
- `SelectMultipleIO` uses plain `select.select`.
- `create_multiple_io(prefer_select=False)` returns one of the two.

Both back ends:

- take `poll_create(size)`, which sets a capacity of `size + 1`, including the
  wake-up channel;
- return `False` from `poll_set_add` when the set is full;
- take timeouts in milliseconds, where a negative timeout blocks.

### `lidarbase.io_loop`

- `IOLoop(enable_timer=True, enable_wake=True)`:
  - `init()` creates the poller, which holds 48 descriptors. It raises
    `RuntimeError` on failure. `IOLoop` is also a context manager.
  - `add_delegate(sock, delegate, data)` and `remove_delegate(sock)` queue the
    change as a task.
  - `post_task(task)` queues any callable and wakes the loop.
  - `loop()` polls for up to 50 ms, then runs the queued tasks.
- `IOLoopDelegate` receives `on_data(sock, data)`, `on_timer(time_point)` and
  `on_wake()`. You can subclass it, or pass handlers to its constructor.
- `ThreadBase` runs the abstract `thread_func()` on a daemon thread.
  - `start()` starts the thread.
  - `join()` asks the thread to quit and waits for it.
  - `is_quit()` tells whether quitting has been requested.
- `IOThread`:
  - `init()` creates its loop and `get_loop()` returns it.
  - It runs the loop until `close()`, which also releases the loop.
  - It is a context manager that closes on exit.

### `lidarbase.nmea_sync`

- `BaudRate` and `Parity` are enums. `serial_settings(baud_rate, parity)`
  returns the matching `pyserial` keyword arguments. `P_7S1` is set up the
  same as `P_8N1`.
- `RmcParser(callback=None)` picks out `$GPRMC`/`$GNRMC` sentences with valid
  checksums from a byte stream.
  - `feed(byte)` takes one byte.
  - `decode(data)` takes a block of bytes and returns a list of the complete
    sentences found in it.
  - The callback receives `(sentence, length)` for each sentence.
  - Sentences longer than 128 bytes are discarded.
- `Synchro(port_name, baud_rate, parity, callback)` reads a serial port on a
  background thread and feeds the bytes to an `RmcParser`.
  - `start()` raises `serial.SerialException` if the port cannot be opened.
  - `stop()` stops reading and closes the port.
  - It is also a context manager.

## Example

```python
from lidarbase.io_loop import IOLoopDelegate, IOThread
from lidarbase.network import create_socket, recv_from


class Printer(IOLoopDelegate):
    def on_data(self, sock, data):
        payload, addr = recv_from(sock, 1500)
        print(addr, len(payload))


thread = IOThread()
thread.init(True, True)
thread.start()

sock = create_socket(56000)
thread.get_loop().add_delegate(sock, Printer(), None)

# ... later
thread.close()
```

RMC time sync from a GPS receiver on a serial port:

```python
from lidarbase.nmea_sync import BaudRate, Parity, Synchro

with Synchro("/dev/ttyUSB0", BaudRate.BR9600, Parity.P_8N1,
             lambda sentence, length: print(sentence.decode())) as sync:
    ...
```

Parsing sentences without a serial port:

```python
from lidarbase.nmea_sync import RmcParser

sentences = RmcParser().decode(raw_bytes)
```

## What it does not do

This package contains only transport and infrastructure. It does not include:

- a lidar device protocol;
- discovery;
- command encoding;
- point-cloud or IMU decoding;
- a command-line program.

You supply those on top of the loop, socket and callback pieces above.