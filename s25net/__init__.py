"""Sockets, select sets, address resolution, network message types and UPnP port forwarding."""

__version__ = "0.1.0"