"""IPv4 addresses as 32-bit integers in host byte order."""

from __future__ import annotations


def make_ip(a: int, b: int, c: int, d: int) -> int:
    """Combine four octets into a 32-bit address value."""
    for octet in (a, b, c, d):
        if not 0 <= octet <= 0xFF:
            raise ValueError(f"octet out of range: {octet}")
    return (a << 24) + (b << 16) + (c << 8) + d