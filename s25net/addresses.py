"""Host addresses, name resolution and address formatting."""

from __future__ import annotations

import socket
import sys
from dataclasses import dataclass, field
from typing import NamedTuple

_LOCALHOST = "localhost"
_BROADCAST = "255.255.255.255"


@dataclass
class HostAddr:
    """A host name or IP together with port and transport."""

    host: str = ""
    port: int = 0
    ipv6: bool = False
    is_udp: bool = False


class AddrInfo(NamedTuple):
    """One result of address resolution."""

    family: int
    socktype: int
    proto: int
    canonname: str
    sockaddr: tuple


def _check_port(port: int) -> int:
    port = int(port)
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")
    return port


def _resolve_flags(resolve_all: bool) -> int:
    if not resolve_all:
        return socket.AI_NUMERICHOST
    flags = getattr(socket, "AI_ADDRCONFIG", 0)
    # FreeBSD rejects AI_ALL / AI_V4MAPPED with getaddrinfo.
    if not sys.platform.startswith("freebsd"):
        flags |= getattr(socket, "AI_ALL", 0) | getattr(socket, "AI_V4MAPPED", 0)
    return flags


class ResolvedAddr:
    """Resolved form of a :class:`HostAddr`.

    ``localhost`` is never looked up but mapped to the loopback address.
    Failed lookups are reported on stderr and leave the result invalid.
    """

    def __init__(self, host_addr: HostAddr, resolve_all: bool = False) -> None:
        self.lookup = host_addr.host != _LOCALHOST
        socktype = socket.SOCK_DGRAM if host_addr.is_udp else socket.SOCK_STREAM
        family = socket.AF_INET6 if host_addr.ipv6 else socket.AF_INET
        self.entries: list[AddrInfo] = []
        if self.lookup:
            try:
                results = socket.getaddrinfo(
                    host_addr.host,
                    str(host_addr.port),
                    family,
                    socktype,
                    0,
                    _resolve_flags(resolve_all),
                )
            except socket.gaierror as err:
                print(f"getaddrinfo: {err.strerror}", file=sys.stderr)
                return
            self.entries = [AddrInfo(*result) for result in results]
        else:
            port = _check_port(host_addr.port)
            sockaddr: tuple = ("::1", port, 0, 0) if host_addr.ipv6 else ("127.0.0.1", port)
            self.entries = [AddrInfo(family, socktype, 0, "", sockaddr)]

    def is_valid(self) -> bool:
        return bool(self.entries)

    @property
    def addr(self) -> AddrInfo:
        """The first resolved address."""
        if not self.entries:
            raise LookupError("address could not be resolved")
        return self.entries[0]


def ip_to_string(sockaddr: tuple) -> str:
    """Return the IP of a socket address tuple as text, without port or scope."""
    host = str(sockaddr[0])
    if len(sockaddr) == 2:
        return socket.inet_ntop(socket.AF_INET, socket.inet_pton(socket.AF_INET, host))
    host = host.partition("%")[0]
    return socket.inet_ntop(socket.AF_INET6, socket.inet_pton(socket.AF_INET6, host))


@dataclass
class PeerAddr:
    """Address of a datagram peer."""

    family: int = socket.AF_INET
    sockaddr: tuple = field(default=("0.0.0.0", 0))

    @classmethod
    def broadcast(cls, port: int) -> "PeerAddr":
        """Address for an IPv4 broadcast on ``port``."""
        return cls(socket.AF_INET, (_BROADCAST, _check_port(port)))

    def ip(self) -> str:
        return ip_to_string(self.sockaddr)


def host_to_ip(
    hostname: str, port: int, get_ipv6: bool, use_udp: bool = False
) -> list[HostAddr]:
    """Resolve ``hostname`` to all of its IP addresses."""
    if hostname == _LOCALHOST:
        return [HostAddr(hostname, port, get_ipv6, use_udp)]
    resolved = ResolvedAddr(HostAddr(hostname, port, get_ipv6, use_udp), resolve_all=True)
    return [
        HostAddr(
            host=ip_to_string(entry.sockaddr),
            port=port,
            ipv6=entry.family == socket.AF_INET6,
            is_udp=entry.socktype == socket.SOCK_DGRAM,
        )
        for entry in resolved.entries
    ]