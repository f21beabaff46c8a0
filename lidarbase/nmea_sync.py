"""Reading GPRMC/GNRMC sentences from a serial GPS for lidar time sync."""

from __future__ import annotations

import enum
import re
import threading
from typing import Any, Callable

import serial

from .log import get_logger

READ_BUF = 256
RMC_HEADERS = (b"$GPRMC", b"$GNRMC")
HEADER_LEN = len(RMC_HEADERS[0])
RMC_BUFFER_SIZE = 128
READ_TIMEOUT = 0.1  # seconds

RmcCallback = Callable[[bytes, int], Any]

_HEX_PREFIX = re.compile(rb"\s*([+-]?)(?:0[xX])?([0-9a-fA-F]+)")


class Parity(enum.Enum):
    """Character framing of the serial line."""

    P_8N1 = "8N1"  # No parity
    P_7E1 = "7E1"  # Even parity
    P_7O1 = "7O1"  # Odd parity
    P_7S1 = "7S1"  # Space parity, set up the same as no parity


class BaudRate(enum.IntEnum):
    """Supported serial line speeds."""

    BR2400 = 2400
    BR4800 = 4800
    BR9600 = 9600
    BR19200 = 19200
    BR38400 = 38400
    BR57600 = 57600
    BR115200 = 115200
    BR230400 = 230400
    BR460800 = 460800
    BR500000 = 500000
    BR576000 = 576000
    BR921600 = 921600
    BR1152000 = 1152000
    BR1500000 = 1500000
    BR2000000 = 2000000
    BR2500000 = 2500000
    BR3000000 = 3000000
    BR3500000 = 3500000
    BR4000000 = 4000000


def serial_settings(baud_rate: BaudRate = BaudRate.BR9600, parity: Parity = Parity.P_8N1) -> dict:
    """Return the serial port keyword settings for ``baud_rate`` and ``parity``."""
    framing = {
        Parity.P_8N1: (serial.EIGHTBITS, serial.PARITY_NONE),
        Parity.P_7E1: (serial.SEVENBITS, serial.PARITY_EVEN),
        Parity.P_7O1: (serial.SEVENBITS, serial.PARITY_ODD),
        Parity.P_7S1: (serial.EIGHTBITS, serial.PARITY_NONE),
    }
    try:
        bytesize, parity_code = framing[Parity(parity)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"unsupported parity: {parity!r}") from exc
    return {
        "baudrate": int(BaudRate(baud_rate)),
        "bytesize": bytesize,
        "parity": parity_code,
        "stopbits": serial.STOPBITS_ONE,
    }


def _scan_hex(text: bytes) -> int:
    """Parse a leading hexadecimal number the way ``%x`` does; 0 if none."""
    match = _HEX_PREFIX.match(text)
    if match is None:
        return 0
    value = int(match.group(2), 16)
    if match.group(1) == b"-":
        value = -value
    return value & 0xFF


class RmcParser:
    """Incremental recogniser of checksummed ``$GPRMC``/``$GNRMC`` sentences.

    Bytes before a recognised header are skipped; a sentence longer than the
    128-byte buffer is discarded.
    """

    def __init__(self, callback: RmcCallback | None = None) -> None:
        self.callback = callback
        self._buf = bytearray(RMC_BUFFER_SIZE)
        self._len = 0

    @property
    def sentence(self) -> bytes:
        """The sentence accepted by the last :meth:`feed` that returned True."""
        return bytes(self._buf[: self._len + 1])

    def clear(self) -> None:
        """Forget any partial sentence."""
        self._len = 0
        self._buf[:] = bytes(RMC_BUFFER_SIZE)

    def feed(self, byte: int) -> bool:
        """Consume one byte; True when it completes a sentence with a valid checksum."""
        if self._len < HEADER_LEN:
            self._buf[0 : HEADER_LEN - 1] = self._buf[1:HEADER_LEN]
            self._buf[HEADER_LEN - 1] = byte
            self._len += 1
            if self._len == HEADER_LEN and bytes(self._buf[:HEADER_LEN]) not in RMC_HEADERS:
                self._len -= 1
            return False

        if self._len >= RMC_BUFFER_SIZE:
            self.clear()
            return False

        cur = self._len
        self._buf[cur] = byte
        if self._buf[cur - 2] == ord("*"):
            result = 0
            for value in self._buf[1 : cur - 2]:
                result ^= value
            result ^= _scan_hex(bytes(self._buf[cur - 1 : cur + 1]))
            if result == 0:
                return True
        self._len += 1
        return False

    def decode(self, data: bytes) -> list[bytes]:
        """Consume ``data`` and return every complete sentence found in it.

        Each sentence is also passed to the callback, if any, together with
        its length excluding the final checksum digit.
        """
        found: list[bytes] = []
        for byte in data:
            if self.feed(byte):
                sentence = self.sentence
                found.append(sentence)
                if self.callback is not None:
                    self.callback(sentence, self._len)
                self.clear()
        return found


class Synchro:
    """Reads a serial GPS on a background thread and reports RMC sentences."""

    def __init__(
        self,
        port_name: str,
        baud_rate: BaudRate = BaudRate.BR9600,
        parity: Parity = Parity.P_8N1,
        callback: RmcCallback | None = None,
    ) -> None:
        self.port_name = port_name
        self.baud_rate = baud_rate
        self.parity = parity
        self.parser = RmcParser(callback)
        self._port: Any = None
        self._quit = threading.Event()
        self._listener: threading.Thread | None = None

    @property
    def callback(self) -> RmcCallback | None:
        return self.parser.callback

    @callback.setter
    def callback(self, callback: RmcCallback | None) -> None:
        self.parser.callback = callback

    def start(self) -> None:
        """Open the port and start reading. Raises ``serial.SerialException`` on failure."""
        if self._listener is not None and self._listener.is_alive():
            return
        try:
            self._port = serial.serial_for_url(
                self.port_name,
                timeout=READ_TIMEOUT,
                **serial_settings(self.baud_rate, self.parity),
            )
        except serial.SerialException:
            get_logger().error("Open %s serials fail!", self.port_name)
            raise
        self._quit.clear()
        self._listener = threading.Thread(target=self._io_loop, daemon=True)
        self._listener.start()

    def stop(self) -> None:
        """Stop reading and close the port."""
        self._quit.set()
        listener, self._listener = self._listener, None
        if listener is not None and listener is not threading.current_thread():
            listener.join()
        port, self._port = self._port, None
        if port is not None:
            try:
                port.reset_input_buffer()
                port.reset_output_buffer()
            except (serial.SerialException, OSError, AttributeError):
                pass
            port.close()

    def _io_loop(self) -> None:
        port = self._port
        while not self._quit.is_set() and port is not None:
            try:
                data = port.read(READ_BUF)
            except (serial.SerialException, OSError) as exc:
                get_logger().error("reading %s failed: %s", self.port_name, exc)
                break
            if data:
                self.parser.decode(data)

    def __enter__(self) -> "Synchro":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()