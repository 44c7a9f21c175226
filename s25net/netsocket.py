"""TCP and UDP sockets with connection set-up, SOCKS4 proxying and UPnP forwarding."""

from __future__ import annotations

import contextlib
import enum
import errno
import logging
import os
import select
import socket
import struct
import time
from typing import Optional

from .addresses import HostAddr, PeerAddr, ResolvedAddr, host_to_ip, ip_to_string
from .proxy import ProxySettings, ProxyType
from .upnp import UPnPError, close_port, open_port

try:
    import fcntl as _fcntl
    import termios as _termios
except ImportError:  # pragma: no cover - platform dependent
    _fcntl = None
    _termios = None

logger = logging.getLogger(__name__)

SOCKS4_USER_ID = b"s25net"
LISTEN_BACKLOG = 10

_LOCALHOST = "localhost"
_CONNECT_POLLS = 9
_CONNECT_POLL_DELAY = 0.05
_PROXY_POLLS = 8
_PROXY_POLL_DELAY = 0.25
_SOCKS4_REPLY_SIZE = 8
_SOCKS4_GRANTED = 90
_IN_PROGRESS = {
    code
    for code in (
        errno.EINPROGRESS,
        errno.EWOULDBLOCK,
        errno.EAGAIN,
        getattr(errno, "WSAEWOULDBLOCK", None),
    )
    if code is not None
}


class SocketStatus(enum.Enum):
    INVALID = "invalid"
    VALID = "valid"
    LISTEN = "listen"
    CONNECTED = "connected"


def _ipv4_bytes(host: str) -> Optional[bytes]:
    try:
        return socket.inet_pton(socket.AF_INET, host)
    except OSError:
        return None


class Socket:
    """A stream or datagram socket that tracks its connection state."""

    def __init__(
        self,
        sock: Optional[socket.socket] = None,
        status: Optional[SocketStatus] = None,
    ) -> None:
        self._sock = sock
        if status is None:
            status = SocketStatus.INVALID if sock is None else SocketStatus.VALID
        self._status = status
        self._broadcast = False
        self._upnp_port = 0

    @property
    def status(self) -> SocketStatus:
        return self._status

    def _require(self) -> socket.socket:
        if self._sock is None or not self.is_valid():
            raise OSError(errno.EBADF, "socket is not valid")
        return self._sock

    def create(self, family: int = socket.AF_INET, as_udp_broadcast: bool = False) -> None:
        """Open a fresh socket, closing any previous one.

        Stream sockets get Nagle disabled and address reuse enabled;
        datagram sockets are allowed to broadcast.
        """
        self.close()
        try:
            if as_udp_broadcast:
                sock = socket.socket(family, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
            else:
                sock = socket.socket(family, socket.SOCK_STREAM)
        except OSError:
            self._status = SocketStatus.INVALID
            raise
        self._sock = sock
        self._status = SocketStatus.VALID
        self._broadcast = as_udp_broadcast
        with contextlib.suppress(OSError):
            if as_udp_broadcast:
                self.set_sock_opt(socket.SO_BROADCAST, 1, socket.SOL_SOCKET)
            else:
                self.set_sock_opt(socket.TCP_NODELAY, 1, socket.IPPROTO_TCP)
                self.set_sock_opt(socket.SO_REUSEADDR, 1, socket.SOL_SOCKET)

    def close(self) -> None:
        """Close the socket and remove any UPnP forwarding it opened."""
        if self._sock is not None:
            self._sock.close()
        if self._upnp_port:
            try:
                close_port(self._upnp_port)
            except UPnPError as err:
                logger.warning("Failed to remove UPnP port forwarding: %s", err)
            self._upnp_port = 0
        self._sock = None
        self._status = SocketStatus.INVALID

    def bind(self, port: int, use_ipv6: bool = False) -> None:
        """Bind to ``port`` on all local addresses."""
        sock = self._require()
        sock.bind(("::", port) if use_ipv6 else ("0.0.0.0", port))

    def listen(self, port: int, use_ipv6: bool = False, use_upnp: bool = True) -> None:
        """Listen on ``port``, retrying once with the other address family.

        For IPv4 a UPnP port forwarding is attempted if ``use_upnp`` is set;
        its failure is only logged.
        """
        ipv6 = use_ipv6
        last_error: Optional[OSError] = None
        for _ in range(2):
            try:
                self.create(socket.AF_INET6 if ipv6 else socket.AF_INET)
                self.bind(port, ipv6)
                self._require().listen(LISTEN_BACKLOG)
                break
            except OSError as err:
                last_error = err
                ipv6 = not ipv6
        else:
            self.close()
            assert last_error is not None
            raise last_error

        if use_upnp and not ipv6:
            try:
                open_port(port)
                self._upnp_port = port
            except UPnPError as err:
                logger.warning("Failed to forward port via UPnP: %s", err)

        self._status = SocketStatus.LISTEN

    def accept(self) -> "Socket":
        """Accept an incoming connection on a listening socket."""
        if self._status is not SocketStatus.LISTEN or self._sock is None:
            raise OSError(errno.EINVAL, "socket is not listening")
        conn, _ = self._sock.accept()
        with contextlib.suppress(OSError):
            conn.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return Socket(conn, SocketStatus.CONNECTED)

    def connect(
        self,
        hostname: str,
        port: int,
        use_ipv6: bool = False,
        proxy: Optional[ProxySettings] = None,
    ) -> None:
        """Connect to ``hostname``:``port``, optionally through a proxy.

        Connections to localhost never use the proxy. Raises ConnectionError
        if no address could be connected to or the proxy refused.
        """
        proxy = proxy if proxy is not None else ProxySettings()
        use_proxy = proxy.type is not ProxyType.NONE
        if proxy.type is ProxyType.SOCKS4:
            use_ipv6 = False

        proxy_ips: list[HostAddr] = []
        if use_proxy:
            proxy_ips = host_to_ip(proxy.hostname, proxy.port, use_ipv6)
            if not proxy_ips:
                raise ConnectionError(f"Could not resolve proxy {proxy.hostname}")

        ips = host_to_ip(hostname, port, use_ipv6)
        if not ips:
            raise ConnectionError(f"Could not resolve {hostname}")

        proxied = use_proxy and hostname != _LOCALHOST
        candidates = proxy_ips if proxied else ips
        active_proxy = proxy if proxied else ProxySettings()

        for candidate in candidates:
            if candidate.is_udp:
                raise ValueError("Cannot connect to UDP (yet)")
            if self._try_connect(candidate, port, active_proxy, ips):
                break
        else:
            logger.info("Error connection to %s:%d", hostname, port)
            raise ConnectionError(f"Error connection to {hostname}:{port}")

        logger.info("Successfully connected to %s:%d", hostname, port)
        self._require().setblocking(True)
        self._status = SocketStatus.CONNECTED

    def _try_connect(
        self, candidate: HostAddr, port: int, proxy: ProxySettings, ips: list[HostAddr]
    ) -> bool:
        try:
            self.create(socket.AF_INET6 if candidate.ipv6 else socket.AF_INET)
        except OSError:
            return False
        sock = self._require()
        sock.setblocking(False)

        resolved = ResolvedAddr(candidate)
        if not resolved.is_valid():
            logger.info("Could not resolve %s. Skipping...", candidate.host)
            return False
        target = resolved.addr.sockaddr
        via_proxy = proxy.type is not ProxyType.NONE
        logger.info(
            "Connection to %s%s:%d",
            "Proxy " if via_proxy else "",
            ip_to_string(target),
            proxy.port if via_proxy else port,
        )

        result = sock.connect_ex(target)
        if result == 0:
            self._proxy_handshake(proxy, port, ips)
            return True
        if result in _IN_PROGRESS and self._await_connection(proxy, port, ips):
            return True
        if result not in _IN_PROGRESS:
            logger.info("Connection failed: %s", os.strerror(result))
        return False

    def _await_connection(
        self, proxy: ProxySettings, port: int, ips: list[HostAddr]
    ) -> bool:
        sock = self._require()
        for _ in range(_CONNECT_POLLS):
            _, writable, errored = select.select([], [sock], [sock], 0)
            if writable or errored:
                error = sock.getsockopt(socket.SOL_SOCKET, socket.SO_ERROR)
                if error:
                    logger.info("Connection failed: %s", os.strerror(error))
                    return False
                self._proxy_handshake(proxy, port, ips)
                return True
            time.sleep(_CONNECT_POLL_DELAY)
        logger.info("Connection failed: %s", os.strerror(errno.ETIMEDOUT))
        return False

    def _proxy_handshake(self, proxy: ProxySettings, port: int, ips: list[HostAddr]) -> None:
        if proxy.type is ProxyType.SOCKS5:
            raise ConnectionError("SOCKS5 proxies are not supported")
        if proxy.type is not ProxyType.SOCKS4:
            return
        destination = next(
            (
                packed
                for addr in ips
                if not addr.ipv6 and (packed := _ipv4_bytes(addr.host)) is not None
            ),
            bytes(4),
        )
        request = struct.pack(">BBH4s", 4, 1, port, destination) + SOCKS4_USER_ID + b"\0"
        self.send(request)

        for _ in range(_PROXY_POLLS):
            if self.bytes_waiting() >= _SOCKS4_REPLY_SIZE:
                break
            time.sleep(_PROXY_POLL_DELAY)
        else:
            logger.info("Proxy error: connection timed out")
            raise ConnectionError("Proxy error: connection timed out")

        reply = self._require().recv(_SOCKS4_REPLY_SIZE)
        if len(reply) < 2 or reply[0] != 0 or reply[1] != _SOCKS4_GRANTED:
            code = reply[1] if len(reply) > 1 else -1
            logger.info("Proxy error: got %d: connection rejected or failed or other error", code)
            raise ConnectionError(f"Proxy error: got {code}: connection rejected or failed")

    def recv(self, length: int, block: bool = True) -> bytes:
        """Read up to ``length`` bytes; with ``block`` false the data is only peeked."""
        return self._require().recv(length, 0 if block else socket.MSG_PEEK)

    def recv_from(self, length: int) -> tuple[bytes, PeerAddr]:
        """Read a datagram and return it with the sender's address."""
        sock = self._require()
        data, sockaddr = sock.recvfrom(length)
        return data, PeerAddr(sock.family, sockaddr)

    def send(self, data: bytes) -> int:
        """Send ``data``; return the number of bytes sent."""
        return self._require().send(data)

    def send_to(self, data: bytes, addr: PeerAddr) -> int:
        """Send a datagram to ``addr``; return the number of bytes sent."""
        return self._require().sendto(data, addr.sockaddr)

    def set_sock_opt(self, option: int, value, level: int = socket.IPPROTO_TCP) -> None:
        self._require().setsockopt(level, option, value)

    def bytes_waiting(self) -> int:
        """Return the number of bytes that can be read without blocking."""
        sock = self._require()
        if _fcntl is not None and _termios is not None:
            raw = _fcntl.ioctl(sock.fileno(), _termios.FIONREAD, b"\0\0\0\0")
            return struct.unpack("i", raw)[0]
        timeout = sock.gettimeout()
        sock.setblocking(False)
        try:
            return len(sock.recv(65536, socket.MSG_PEEK))
        except BlockingIOError:
            return 0
        finally:
            sock.settimeout(timeout)

    def peer_ip(self) -> str:
        """IP of the remote end, or an empty string if there is none."""
        if self._sock is None:
            return ""
        try:
            return ip_to_string(self._sock.getpeername())
        except (OSError, ValueError, IndexError):
            return ""

    def sock_ip(self) -> str:
        """Local IP of the socket, or an empty string if unavailable."""
        if self._sock is None:
            return ""
        try:
            return ip_to_string(self._sock.getsockname())
        except (OSError, ValueError, IndexError):
            return ""

    def fileno(self) -> int:
        """The descriptor of the socket, or -1 if there is none."""
        return -1 if self._sock is None else self._sock.fileno()

    def is_valid(self) -> bool:
        return self._status is not SocketStatus.INVALID

    def is_broadcast(self) -> bool:
        """True for broadcast datagram sockets (meaningful only when valid)."""
        return self._broadcast

    def __enter__(self) -> "Socket":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()