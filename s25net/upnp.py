"""Port forwarding on an Internet gateway device via UPnP."""

from __future__ import annotations

import ipaddress
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Iterable, Optional
from xml.sax.saxutils import escape

from .ip import make_ip

MAPPING_DESCRIPTION = "s25net"
DISCOVERY_DELAY_MS = 2000

_SSDP_ADDR = ("239.255.255.250", 1900)
_SSDP_TTL = 2
_SEARCH_TARGETS = (
    "urn:schemas-upnp-org:device:InternetGatewayDevice:1",
    "urn:schemas-upnp-org:service:WANIPConnection:1",
    "urn:schemas-upnp-org:service:WANPPPConnection:1",
    "upnp:rootdevice",
)
_WAN_SERVICES = ("WANIPConnection", "WANPPPConnection")
_HTTP_TIMEOUT = 3.0
_HTTP_ERROR = -3

_ERROR_MESSAGES = {
    402: "Invalid Args",
    501: "Action Failed",
    606: "Action not authorized",
    714: "NoSuchEntryInArray",
    715: "WildCardNotPermittedInSrcIP",
    716: "WildCardNotPermittedInExtPort",
    718: "ConflictInMappingEntry",
    724: "SamePortValuesRequired",
    725: "OnlyPermanentLeasesSupported",
    726: "RemoteHostOnlySupportsWildcard",
    727: "ExternalPortOnlySupportsWildcard",
    728: "NoPortMapsAvailable",
    729: "ConflictWithOtherMechanisms",
    732: "WildCardNotPermittedInIntPort",
}

_PRIVATE_NETWORKS = (
    (0xFF000000, make_ip(10, 0, 0, 0)),
    (0xFF000000, make_ip(127, 0, 0, 0)),
    (0xFFF00000, make_ip(172, 16, 0, 0)),
    (0xFFFF0000, make_ip(192, 168, 0, 0)),
)

# Gateways live on the local network; never route requests through a proxy.
_OPENER = urllib.request.build_opener(urllib.request.ProxyHandler({}))


class UPnPError(RuntimeError):
    """A UPnP port forwarding operation failed."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.code = code


def error_message(code: int) -> str:
    """Describe a UPnP error code."""
    return _ERROR_MESSAGES.get(code, "Unknown error")


def is_private_ipv4(address: str) -> bool:
    """Return True for addresses in 10/8, 127/8, 172.16/12 or 192.168/16."""
    ip = int(ipaddress.IPv4Address(address))
    return any((ip & mask) == net for mask, net in _PRIVATE_NETWORKS)


def choose_local_address(addresses: Iterable[str]) -> str:
    """Pick the local address to forward to from the host's IPv4 addresses.

    With several addresses the last private one (in sorted order) wins;
    otherwise the first address is used.
    """
    candidates = sorted({addr for addr in addresses if addr != "0.0.0.0"})
    local = ""
    if len(candidates) > 1:
        for addr in candidates:
            if is_private_ipv4(addr):
                local = addr
    if not local and candidates:
        local = candidates[0]
    if not local:
        raise UPnPError("Local IP not found")
    return local


@dataclass(frozen=True)
class _Gateway:
    control_url: str
    service_type: str
    lan_address: str


def _check_port(port: int) -> None:
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"port out of range: {port}")


def _msearch(search_target: str, delay_ms: int) -> bytes:
    return (
        "M-SEARCH * HTTP/1.1\r\n"
        f"HOST: {_SSDP_ADDR[0]}:{_SSDP_ADDR[1]}\r\n"
        f"ST: {search_target}\r\n"
        'MAN: "ssdp:discover"\r\n'
        f"MX: {max(1, delay_ms // 1000)}\r\n\r\n"
    ).encode("ascii")


def _parse_location(data: bytes) -> Optional[str]:
    for line in data.decode("latin-1").splitlines():
        name, sep, value = line.partition(":")
        if sep and name.strip().lower() == "location":
            return value.strip()
    return None


def _discover(delay_ms: int) -> list[str]:
    """Search the network for gateways; return description URLs."""
    locations: list[str] = []
    deadline = time.monotonic() + delay_ms / 1000
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP) as sock:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, _SSDP_TTL)
            for target in _SEARCH_TARGETS:
                sock.sendto(_msearch(target, delay_ms), _SSDP_ADDR)
            while (remaining := deadline - time.monotonic()) > 0:
                sock.settimeout(remaining)
                try:
                    data, _ = sock.recvfrom(2048)
                except TimeoutError:
                    break
                location = _parse_location(data)
                if location and location not in locations:
                    locations.append(location)
    except OSError:
        pass
    return locations


def _soap(control_url: str, service_type: str, action: str, args: dict) -> ET.Element:
    params = "".join(f"<{key}>{escape(str(value))}</{key}>" for key, value in args.items())
    body = (
        '<?xml version="1.0"?>\r\n'
        '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/" '
        's:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
        f'<s:Body><u:{action} xmlns:u="{service_type}">{params}</u:{action}></s:Body>'
        "</s:Envelope>"
    ).encode("utf-8")
    request = urllib.request.Request(
        control_url,
        data=body,
        method="POST",
        headers={
            "Content-Type": 'text/xml; charset="utf-8"',
            "SOAPAction": f'"{service_type}#{action}"',
        },
    )
    try:
        with _OPENER.open(request, timeout=_HTTP_TIMEOUT) as response:
            return ET.fromstring(response.read())
    except urllib.error.HTTPError as err:
        code = _fault_code(err.read())
        raise UPnPError(f"{action} failed with: {error_message(code)}", code) from err
    except (OSError, ET.ParseError) as err:
        raise UPnPError(f"{action} failed with: {error_message(_HTTP_ERROR)}", _HTTP_ERROR) from err


def _fault_code(body: bytes) -> int:
    try:
        text = ET.fromstring(body).findtext(".//{*}errorCode")
        return int(text) if text else _HTTP_ERROR
    except (ET.ParseError, ValueError):
        return _HTTP_ERROR


def _wan_services(location: str) -> list[tuple[str, str]]:
    with _OPENER.open(location, timeout=_HTTP_TIMEOUT) as response:
        root = ET.fromstring(response.read())
    base = (root.findtext("{*}URLBase") or "").strip() or location
    services = []
    for service in root.iterfind(".//{*}service"):
        service_type = (service.findtext("{*}serviceType") or "").strip()
        control = (service.findtext("{*}controlURL") or "").strip()
        if control and any(name in service_type for name in _WAN_SERVICES):
            services.append((urllib.parse.urljoin(base, control), service_type))
    return services


def _is_connected(control_url: str, service_type: str) -> bool:
    try:
        reply = _soap(control_url, service_type, "GetStatusInfo", {})
    except UPnPError:
        return False
    return (reply.findtext(".//{*}NewConnectionStatus") or "").strip() == "Connected"


def _lan_address(control_url: str) -> str:
    parts = urllib.parse.urlsplit(control_url)
    try:
        with socket.create_connection((parts.hostname, parts.port or 80), timeout=_HTTP_TIMEOUT) as conn:
            return conn.getsockname()[0]
    except OSError:
        pass
    try:
        addresses = socket.gethostbyname_ex(socket.gethostname())[2]
    except OSError as err:
        raise UPnPError("Local IP not found") from err
    return choose_local_address(addresses)


def _find_gateway() -> _Gateway:
    locations = _discover(DISCOVERY_DELAY_MS)
    if not locations:
        raise UPnPError("Could not get devices")
    for location in locations:
        try:
            services = _wan_services(location)
        except (OSError, ET.ParseError, ValueError):
            continue
        for control_url, service_type in services:
            if _is_connected(control_url, service_type):
                return _Gateway(control_url, service_type, _lan_address(control_url))
    raise UPnPError("No gateway found")


def open_port(port: int) -> None:
    """Forward TCP ``port`` on the gateway to this host."""
    _check_port(port)
    gateway = _find_gateway()
    _soap(
        gateway.control_url,
        gateway.service_type,
        "AddPortMapping",
        {
            "NewRemoteHost": "",
            "NewExternalPort": port,
            "NewProtocol": "TCP",
            "NewInternalPort": port,
            "NewInternalClient": gateway.lan_address,
            "NewEnabled": 1,
            "NewPortMappingDescription": MAPPING_DESCRIPTION,
            "NewLeaseDuration": 0,
        },
    )


def close_port(port: int) -> None:
    """Remove the TCP forwarding of ``port`` from the gateway."""
    _check_port(port)
    gateway = _find_gateway()
    _soap(
        gateway.control_url,
        gateway.service_type,
        "DeletePortMapping",
        {"NewRemoteHost": "", "NewExternalPort": port, "NewProtocol": "TCP"},
    )


class UPnP:
    """Holds a port forwarding open until closed or the context ends."""

    def __init__(self, port: int) -> None:
        self._port = 0
        self.open(port)

    @property
    def port(self) -> int:
        return self._port

    def open(self, port: int) -> None:
        self.close()
        open_port(port)
        self._port = port

    def close(self) -> None:
        if self._port:
            close_port(self._port)
            self._port = 0

    def __enter__(self) -> "UPnP":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()