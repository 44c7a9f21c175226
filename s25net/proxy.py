"""Proxy configuration for outgoing connections."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ProxyType(enum.Enum):
    NONE = 0
    SOCKS4 = 4
    SOCKS5 = 5


@dataclass
class ProxySettings:
    """Which proxy to use, and where it is."""

    type: ProxyType = ProxyType.NONE
    hostname: str = ""
    port: int = 0

    def __post_init__(self) -> None:
        self.type = ProxyType(self.type)
        if not 0 <= self.port <= 0xFFFF:
            raise ValueError(f"port out of range: {self.port}")