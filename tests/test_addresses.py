import socket
from unittest import mock

import pytest

from s25net.addresses import (
    HostAddr,
    PeerAddr,
    ResolvedAddr,
    host_to_ip,
    ip_to_string,
)


def test_host_addr_defaults():
    h = HostAddr()
    assert (h.host, h.port, h.ipv6, h.is_udp) == ("", 0, False, False)


def test_localhost_ipv4_is_loopback():
    r = ResolvedAddr(HostAddr("localhost", 1234))
    assert r.lookup is False
    assert r.is_valid()
    assert r.addr.family == socket.AF_INET
    assert r.addr.socktype == socket.SOCK_STREAM
    assert r.addr.sockaddr == ("127.0.0.1", 1234)


def test_localhost_ipv6_udp_is_loopback():
    r = ResolvedAddr(HostAddr("localhost", 99, ipv6=True, is_udp=True))
    assert r.addr.family == socket.AF_INET6
    assert r.addr.socktype == socket.SOCK_DGRAM
    assert ip_to_string(r.addr.sockaddr) == "::1"
    assert r.addr.sockaddr[1] == 99


def test_localhost_bad_port_raises():
    with pytest.raises(ValueError):
        ResolvedAddr(HostAddr("localhost", 70000))


def test_numeric_host_resolves():
    r = ResolvedAddr(HostAddr("127.0.0.1", 80))
    assert r.lookup is True
    assert r.is_valid()
    assert ip_to_string(r.addr.sockaddr) == "127.0.0.1"


def test_non_numeric_host_fails_without_resolve_all(capsys):
    r = ResolvedAddr(HostAddr("not-a-numeric-host", 80))
    assert not r.is_valid()
    assert "getaddrinfo" in capsys.readouterr().err
    with pytest.raises(LookupError):
        r.addr


def test_ip_to_string_strips_port_and_scope():
    assert ip_to_string(("10.1.2.3", 80)) == "10.1.2.3"
    assert ip_to_string(("fe80::1%eth0", 0, 0, 2)) == "fe80::1"


def test_ip_to_string_invalid_raises():
    with pytest.raises(OSError):
        ip_to_string(("not-an-ip", 80))


def test_peer_addr_broadcast():
    p = PeerAddr.broadcast(5000)
    assert p.family == socket.AF_INET
    assert p.sockaddr[1] == 5000
    assert p.ip() == "255.255.255.255"


def test_peer_addr_broadcast_bad_port():
    with pytest.raises(ValueError):
        PeerAddr.broadcast(-1)


def test_host_to_ip_localhost_unchanged():
    result = host_to_ip("localhost", 3665, True, True)
    assert result == [HostAddr("localhost", 3665, True, True)]


def test_host_to_ip_maps_results():
    fake = [
        (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.5", 3665)),
        (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("fe80::5%1", 3665, 0, 1)),
    ]
    with mock.patch("s25net.addresses.socket.getaddrinfo", return_value=fake) as gai:
        result = host_to_ip("example.com", 3665, False)
    assert result == [
        HostAddr("10.0.0.5", 3665, False, False),
        HostAddr("fe80::5", 3665, True, False),
    ]
    args = gai.call_args[0]
    assert args[0] == "example.com"
    assert args[1] == "3665"
    assert args[2] == socket.AF_INET


def test_host_to_ip_failure_gives_empty_list():
    err = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
    with mock.patch("s25net.addresses.socket.getaddrinfo", side_effect=err):
        assert host_to_ip("example.com", 80, False) == []