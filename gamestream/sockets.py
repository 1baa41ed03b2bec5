"""Socket helpers: creation, connecting with a deadline, UDP receive and name resolution."""

from __future__ import annotations

import enum
import errno
import ipaddress
import logging
import os
import select
import socket
import sys
from typing import Any, Optional, Tuple

from gamestream.netaddr import is_private_v4

logger = logging.getLogger(__name__)

TEST_PORT_TIMEOUT_SEC = 3

RCV_BUFFER_SIZE_MIN = 32767
RCV_BUFFER_SIZE_STEP = 16384

TCPV4_MSS = 536
TCPV6_MSS = 1220

# How long a select-based UDP receive waits for the socket to become readable.
UDP_RECV_POLL_TIMEOUT_MS = 100

TCP_PORT_MASK = 0xFFFF
TCP_PORT_FLAG_ALWAYS_TEST = 0x10000

_CONNECT_PENDING = {errno.EWOULDBLOCK, errno.EAGAIN, errno.EINPROGRESS}

# Errors left behind by an earlier ICMP port unreachable; reading just goes on.
_STALE_UDP_ERRORS = (
    (ConnectionResetError,) if sys.platform == "win32" else (ConnectionRefusedError,)
)


class QosType(enum.IntEnum):
    """Traffic classes that a UDP socket can be marked with."""

    BEST_EFFORT = 0
    AUDIO = 1
    VIDEO = 2


# SO_PRIORITY values for each traffic class.
_SO_PRIORITY_VALUES = {
    QosType.BEST_EFFORT: 0,
    QosType.AUDIO: 6,
    QosType.VIDEO: 5,
}


def _target(address: Any, port: int) -> Tuple[int, tuple]:
    """Return the family and a socket address for ``address`` with ``port``.

    ``address`` may be an IP string, an ``ipaddress`` object or a socket
    address tuple; an IPv6 tuple keeps its flow info and scope id.
    """
    if isinstance(address, (tuple, list)):
        if not address:
            raise ValueError("empty socket address")
        host, rest = address[0], tuple(address[2:])
    else:
        host, rest = address, ()
    host = str(host)
    ip = ipaddress.ip_address(host)
    if isinstance(ip, ipaddress.IPv6Address):
        flowinfo, scope_id = (tuple(rest) + (0, 0))[:2]
        return socket.AF_INET6, (host, port, flowinfo, scope_id)
    return socket.AF_INET, (host, port)


def _wait_for(sock: socket.socket, *, read: bool = False, write: bool = False,
              timeout_ms: int) -> Tuple[bool, bool]:
    """Wait for the socket to become ready; return (ready, error)."""
    if hasattr(select, "poll"):
        poller = select.poll()
        mask = (select.POLLIN if read else 0) | (select.POLLOUT if write else 0)
        poller.register(sock, mask)
        revents = 0
        for _, events in poller.poll(None if timeout_ms < 0 else timeout_ms):
            revents |= events
        return revents != 0, bool(revents & select.POLLERR)

    timeout = None if timeout_ms < 0 else timeout_ms / 1000
    readable, writable, failed = select.select(
        [sock] if read else [],
        [sock] if write else [],
        # Failed connections are reported as exceptions rather than as writable.
        [sock] if write else [],
        timeout,
    )
    ready = bool(readable or writable or failed)
    return ready, bool(failed)


def create_socket(family: int, sock_type: int, protocol: int = 0,
                  non_blocking: bool = False) -> socket.socket:
    """Create a socket, optionally in non-blocking mode."""
    try:
        sock = socket.socket(family, sock_type, protocol)
    except OSError as exc:
        logger.error("socket() failed: %s", exc.errno)
        raise

    nosigpipe = getattr(socket, "SO_NOSIGPIPE", None)
    if nosigpipe is not None:
        try:
            sock.setsockopt(socket.SOL_SOCKET, nosigpipe, 1)
        except OSError:
            pass

    if non_blocking:
        set_socket_non_blocking(sock, True)
    return sock


def set_socket_non_blocking(sock: socket.socket, enabled: bool) -> None:
    """Switch the socket between blocking and non-blocking I/O."""
    sock.setblocking(not enabled)


def set_non_fatal_recv_timeout_ms(sock: socket.socket, timeout_ms: int) -> None:
    """Make receives give up after ``timeout_ms`` instead of blocking forever."""
    sock.settimeout(timeout_ms / 1000)


def _limit_mss(sock: socket.socket, family: int) -> None:
    if sys.platform == "win32":
        level = socket.IPPROTO_IP if family == socket.AF_INET else socket.IPPROTO_IPV6
        option = getattr(
            socket, "IP_MTU_DISCOVER" if family == socket.AF_INET else "IPV6_MTU_DISCOVER", None
        )
        dont = getattr(socket, "IP_PMTUDISC_DONT", 0)
        if option is not None:
            try:
                sock.setsockopt(level, option, dont)
            except OSError as exc:
                logger.warning("setsockopt(MTU_DISCOVER, DONT) failed: %s", exc.errno)
        return

    noopt = getattr(socket, "TCP_NOOPT", None)
    if noopt is not None:
        try:
            sock.setsockopt(socket.IPPROTO_TCP, noopt, 1)
        except OSError as exc:
            logger.warning("setsockopt(TCP_NOOPT, 1) failed: %s", exc.errno)
        return

    maxseg = getattr(socket, "TCP_MAXSEG", None)
    if maxseg is not None:
        value = TCPV4_MSS if family == socket.AF_INET else TCPV6_MSS
        try:
            sock.setsockopt(socket.IPPROTO_TCP, maxseg, value)
        except OSError as exc:
            logger.warning("setsockopt(TCP_MAXSEG, %d) failed: %s", value, exc.errno)


def connect_tcp_socket(address: Any, port: int, timeout_sec: int) -> socket.socket:
    """Open a TCP connection to ``address`` on ``port`` within ``timeout_sec`` seconds.

    The returned socket is in blocking mode. The MSS is capped at the
    protocol minimum to avoid black-hole routes. Raises ``OSError`` (a
    ``TimeoutError`` when the deadline passes) if the connection fails.
    """
    family, target = _target(address, port)
    sock = create_socket(family, socket.SOCK_STREAM, socket.IPPROTO_TCP, True)
    try:
        _limit_mss(sock, family)

        err = sock.connect_ex(target)
        if err != 0 and err not in _CONNECT_PENDING:
            logger.error("connect() failed: %d", err)
            raise OSError(err, os.strerror(err))

        ready, failed = _wait_for(sock, write=True, timeout_ms=timeout_sec * 1000)
        if not ready:
            logger.error(
                "Connection timed out after %d seconds (TCP port %d)", timeout_sec, port
            )
            raise TimeoutError(errno.ETIMEDOUT, os.strerror(errno.ETIMEDOUT))

        err = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
        if err != 0:
            logger.error("connect() failed: %d", err)
            raise OSError(err, os.strerror(err))
        if failed:
            logger.error("connect() failed")
            raise OSError("connection attempt failed")

        set_socket_non_blocking(sock, False)
        return sock
    except BaseException:
        sock.close()
        raise


def _set_qos(sock: socket.socket, qos_type: QosType) -> None:
    priority = getattr(socket, "SO_PRIORITY", None)
    if priority is None:
        return
    value = _SO_PRIORITY_VALUES[qos_type]
    try:
        sock.setsockopt(socket.SOL_SOCKET, priority, value)
    except OSError as exc:
        logger.warning("setsockopt(SO_PRIORITY, %d) failed: %s", value, exc.errno)


def bind_udp_socket(family: int, local_address: Any = None, buffer_size: int = 0,
                    qos_type: QosType = QosType.BEST_EFFORT) -> socket.socket:
    """Create a UDP socket bound to an ephemeral port.

    With ``local_address`` the socket binds to that address, otherwise to the
    wildcard address of ``family``. A non-zero ``buffer_size`` asks for that
    receive buffer, stepping down until the system accepts a size.
    """
    qos_type = QosType(qos_type)
    if family not in (socket.AF_INET, socket.AF_INET6):
        raise ValueError(f"unsupported address family: {family!r}")

    sock = create_socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP, False)
    try:
        if local_address:
            _, bind_address = _target(local_address, 0)
        elif family == socket.AF_INET6:
            bind_address = ("::", 0, 0, 0)
        else:
            bind_address = ("0.0.0.0", 0)

        try:
            sock.bind(bind_address)
        except OSError as exc:
            logger.error("bind() failed: %s", exc.errno)
            raise

        if qos_type is not QosType.BEST_EFFORT:
            _set_qos(sock, qos_type)

        if buffer_size:
            while True:
                try:
                    sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, buffer_size)
                    logger.debug("Selected receive buffer size: %d", buffer_size)
                    break
                except OSError as exc:
                    if buffer_size <= RCV_BUFFER_SIZE_MIN:
                        logger.warning("Set rcv buffer size failed: %s", exc.errno)
                        break
                    if buffer_size - RCV_BUFFER_SIZE_STEP <= RCV_BUFFER_SIZE_MIN:
                        buffer_size = RCV_BUFFER_SIZE_MIN
                    else:
                        buffer_size -= RCV_BUFFER_SIZE_STEP
        return sock
    except BaseException:
        sock.close()
        raise


def recv_udp_socket(sock: socket.socket, size: int, use_select: bool) -> Optional[bytes]:
    """Receive one datagram of up to ``size`` bytes, or ``None`` on timeout.

    With ``use_select`` the call waits up to ``UDP_RECV_POLL_TIMEOUT_MS`` for
    data; otherwise it relies on a timeout set with
    ``set_non_fatal_recv_timeout_ms``. Errors left over from earlier ICMP
    port-unreachable messages are skipped.
    """
    while True:
        if use_select:
            ready, _ = _wait_for(sock, read=True, timeout_ms=UDP_RECV_POLL_TIMEOUT_MS)
            if not ready:
                return None
            try:
                return sock.recv(size)
            except _STALE_UDP_ERRORS:
                continue
        else:
            try:
                return sock.recv(size)
            except _STALE_UDP_ERRORS:
                continue
            except (BlockingIOError, InterruptedError, TimeoutError):
                return None
            except OSError as exc:
                if exc.errno == errno.ETIMEDOUT:
                    return None
                raise


def is_socket_readable(sock: socket.socket) -> bool:
    """Return whether a read from the socket would not block."""
    try:
        ready, _ = _wait_for(sock, read=True, timeout_ms=0)
    except (OSError, ValueError):
        return False
    return ready


def send_mtu_safe(sock: socket.socket, data: bytes) -> int:
    """Send ``data`` in chunks no larger than the minimum IPv4 MSS.

    The socket should have ``TCP_NODELAY`` enabled so each chunk goes out as
    its own segment. Returns the number of bytes sent.
    """
    view = memoryview(bytes(data))
    for start in range(0, len(view), TCPV4_MSS):
        sock.sendall(view[start:start + TCPV4_MSS])
    return len(view)


def enable_no_delay(sock: socket.socket) -> None:
    """Turn off Nagle's algorithm on a TCP socket."""
    sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)


def shutdown_tcp_socket(sock: socket.socket) -> None:
    """Shut down both directions, waking any thread blocked on the socket."""
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError:
        pass


def get_local_address_by_udp_connect(target_address: Any, target_port: int) -> tuple:
    """Return the local socket address the system would use to reach the target."""
    if target_port == 0:
        raise ValueError("target port must not be zero")
    family, target = _target(target_address, target_port)
    with create_socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP, False) as sock:
        try:
            sock.connect(target)
        except OSError as exc:
            logger.error("UDP connect() failed: %s", exc.errno)
            raise
        try:
            return sock.getsockname()
        except OSError as exc:
            logger.error("getsockname() failed: %s", exc.errno)
            raise


def resolve_host_name(host: str, family: int = socket.AF_UNSPEC,
                      tcp_test_port: int = 0) -> tuple:
    """Resolve ``host`` to a socket address that is expected to work.

    When ``tcp_test_port`` is non-zero, candidates are checked with a TCP
    connection if several were found, if ``TCP_PORT_FLAG_ALWAYS_TEST`` is
    set, or if a private IPv4 literal came back as a single (likely
    synthesized) IPv6 address; in that last case an IPv4-only lookup is
    tried when no candidate works. Raises ``OSError`` if none does.
    """
    try:
        results = socket.getaddrinfo(
            host, None, family, socket.SOCK_STREAM, socket.IPPROTO_TCP, socket.AI_ADDRCONFIG
        )
    except socket.gaierror as exc:
        logger.error("getaddrinfo(%s) failed: %s", host, exc.errno)
        raise
    if not results:
        logger.error("getaddrinfo(%s) returned success without addresses", host)
        raise OSError(f"no addresses returned for {host}")

    needs_fallback_v4 = False
    if family == socket.AF_UNSPEC and results[0][0] == socket.AF_INET6 and len(results) == 1:
        try:
            literal = ipaddress.IPv4Address(host)
        except ValueError:
            literal = None
        needs_fallback_v4 = literal is not None and is_private_v4(literal, True)

    must_test = tcp_test_port != 0 and (
        len(results) > 1 or bool(tcp_test_port & TCP_PORT_FLAG_ALWAYS_TEST) or needs_fallback_v4
    )

    for _, _, _, _, sockaddr in results:
        if must_test:
            try:
                test_socket = connect_tcp_socket(
                    sockaddr, tcp_test_port & TCP_PORT_MASK, TEST_PORT_TIMEOUT_SEC
                )
            except (OSError, ValueError):
                continue
            test_socket.close()
        return sockaddr

    if needs_fallback_v4:
        return resolve_host_name(host, socket.AF_INET, tcp_test_port)

    logger.error("No working addresses found for host: %s", host)
    raise OSError(f"no working addresses found for host: {host}")