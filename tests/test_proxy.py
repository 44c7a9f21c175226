import pytest

from s25net.proxy import ProxySettings, ProxyType


def test_type_values():
    assert ProxyType(0) is ProxyType.NONE
    assert ProxyType(4) is ProxyType.SOCKS4
    assert ProxyType(5) is ProxyType.SOCKS5


def test_defaults():
    settings = ProxySettings()
    assert settings.type is ProxyType.NONE
    assert settings.hostname == ""
    assert settings.port == 0


def test_explicit_values():
    settings = ProxySettings(ProxyType.SOCKS4, "proxy.example.com", 1080)
    assert settings.type is ProxyType.SOCKS4
    assert settings.hostname == "proxy.example.com"
    assert settings.port == 1080


def test_type_from_number():
    assert ProxySettings(5, "h", 1).type is ProxyType.SOCKS5


def test_unknown_type_rejected():
    with pytest.raises(ValueError):
        ProxySettings(3, "h", 1)


@pytest.mark.parametrize("port", [-1, 65536])
def test_port_range(port):
    with pytest.raises(ValueError):
        ProxySettings(ProxyType.SOCKS4, "h", port)