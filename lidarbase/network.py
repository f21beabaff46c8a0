"""UDP socket helpers: creation, local address discovery and receiving."""

from __future__ import annotations

import ipaddress
import socket
from collections.abc import Iterable

import psutil

from .log import get_logger

RECV_BUFFER_SIZE = 1024 * 1024 * 200


def create_socket(
    port: int,
    nonblock: bool = True,
    reuse_port: bool = True,
    is_broadcast: bool = False,
    netif: str = "",
    multicast_ip: str = "",
) -> socket.socket:
    """Create and bind a UDP socket on ``port``.

    With ``netif`` empty the socket binds to every interface; otherwise it
    binds to ``multicast_ip`` when given, else to ``netif``.  When
    ``multicast_ip`` is given the socket joins that group on ``netif``.
    Raises ``OSError`` if the socket cannot be set up or bound.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        if nonblock:
            sock.setblocking(False)
        if reuse_port:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, RECV_BUFFER_SIZE)

        if not netif:
            bind_address = ""
        elif multicast_ip:
            bind_address = multicast_ip
        else:
            bind_address = netif
        sock.bind((bind_address, port))

        if is_broadcast:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    except OSError:
        sock.close()
        raise

    if multicast_ip:
        _join_multicast(sock, multicast_ip, netif)
    return sock


def _join_multicast(sock: socket.socket, multicast_ip: str, netif: str) -> None:
    try:
        membership = socket.inet_aton(multicast_ip) + socket.inet_aton(netif or "0.0.0.0")
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
    except OSError as exc:
        get_logger().warning("joining multicast group %s failed: %s", multicast_ip, exc)


def close_sock(sock: socket.socket | None) -> None:
    """Close ``sock`` if there is one."""
    if sock is not None:
        sock.close()


def _system_interfaces() -> list[tuple[str, str | None]]:
    return [
        (addr.address, addr.netmask)
        for addrs in psutil.net_if_addrs().values()
        for addr in addrs
        if addr.family == socket.AF_INET
    ]


def find_local_ip(
    client_ip: str,
    interfaces: Iterable[tuple[str, str | None]] | None = None,
) -> str | None:
    """Return the first local IPv4 address on the same subnet as ``client_ip``.

    ``interfaces`` is an iterable of ``(address, netmask)`` pairs; by default
    the host's own IPv4 interfaces are used.  Returns ``None`` if none match.
    """
    client = int(ipaddress.IPv4Address(client_ip))
    if interfaces is None:
        interfaces = _system_interfaces()
    for address, netmask in interfaces:
        if not netmask:
            continue
        local = int(ipaddress.IPv4Address(address))
        if local == 0:
            continue
        mask = int(ipaddress.IPv4Address(netmask))
        if local & mask == client & mask:
            return address
    return None


def recv_from(sock: socket.socket, buf_size: int) -> tuple[bytes, tuple[str, int]]:
    """Receive one datagram of at most ``buf_size`` bytes and its sender."""
    return sock.recvfrom(buf_size)