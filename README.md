# s25net

A small networking toolkit for applications that talk over TCP and UDP.
It uses only the standard library.

## What it contains

- `s25net.netsocket`
  - `Socket` wraps a TCP socket or a UDP broadcast socket and tracks its
    state as a `SocketStatus`: `INVALID`, `VALID`, `LISTEN` or `CONNECTED`.
  - `create`, `bind`, `listen`, `accept` and `connect` raise `OSError` or
    `ConnectionError` when they fail. They do not return status codes.
  - `listen` retries once with the other address family. For IPv4 it can
    also ask the gateway for a UPnP port forwarding. A failed forwarding is
    only logged, and `close` removes the forwarding again.
  - `connect` can go through a SOCKS4 proxy (`ProxyType.SOCKS4`).
    Connections to `localhost` never use the proxy. SOCKS5 is rejected with
    `ConnectionError`.
  - Data methods: `recv`, `recv_from`, `send`, `send_to` and
    `bytes_waiting`.
  - Information methods: `peer_ip`, `sock_ip`, `fileno`, `is_valid` and
    `is_broadcast`.
  - The class is a context manager.
- `s25net.socket_set`
  - `SocketSet` collects sockets (anything with `fileno()`) and waits on
    them with `select`.
  - The kind of readiness is given as a `SelectKind`: `READ`, `WRITE` or
    `ERROR`, with `ERROR` as the default.
  - After `select`, the set holds only the ready sockets, so `in_set`
    reports readiness.
  - `select` on a set to which nothing was added raises `ValueError`.
- `s25net.addresses`
  - `HostAddr` is a host together with its port and transport.
  - `ResolvedAddr` resolves a `HostAddr` with `getaddrinfo`. It maps
    `localhost` straight to the loopback address. A failed lookup leaves it
    invalid.
  - `PeerAddr` is a datagram peer address. `PeerAddr.broadcast(port)` gives
    an IPv4 broadcast address.
  - `host_to_ip` lists every address of a host name.
  - `ip_to_string` formats the IP of a socket address tuple.
- `s25net.messages`
  - `Message` is an abstract base with a 16-bit id and the methods `clone`,
    `serialize`, `deserialize` and `run`.
  - `serialize` and `deserialize` write and read the attributes named in
    `PAYLOAD_FIELDS` through any object with `write` and `read` methods.
  - `NullMessage` (id `NMS_NULL_MSG`, 0) and `DeadMessage` (id
    `NMS_DEAD_MSG`, 0xFFFF) dispatch to a `MessageInterface` through
    `on_null` and `on_dead`.
  - `MessageInterface` reports a message as unhandled unless a subclass
    overrides those methods or fills its `handlers` mapping.
- `s25net.proxy`: `ProxyType` (`NONE`, `SOCKS4`, `SOCKS5`) and the
  `ProxySettings` dataclass.
- `s25net.upnp`
  - `open_port` and `close_port` find the gateway by SSDP and add or remove
    a TCP port mapping over SOAP.
  - `UPnP` keeps a mapping open until `close` is called or its context ends.
  - The module also has the helpers `error_message`, `is_private_ipv4` and
    `choose_local_address`.
  - Failures raise `UPnPError`, which carries the UPnP error code when there
    is one.
- Small helpers:
  - `s25net.ip.make_ip` packs four octets into a 32-bit value.
  - `s25net.str_algos.to_lower` and `to_upper` change the case of ASCII
    letters only.
  - `s25net.enum_utils` has the flag helpers `clear`, `set_flag`, `toggle`
    and `is_set`.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Example

```python
from s25net.netsocket import Socket
from s25net.proxy import ProxySettings

with Socket() as server:
    server.listen(9000, False, False)  # IPv4, no UPnP

    with Socket() as client:
        client.connect("localhost", 9000, False, ProxySettings())
        with server.accept() as peer:
            client.send(b"hello")
            print(peer.recv(5, True))
```

To handle a message, subclass `MessageInterface` and override its handler:

```python
from s25net.messages import MessageInterface, NullMessage

class Handler(MessageInterface):
    def on_null(self, msg_id):
        print("null message from", msg_id)
        return True

NullMessage().run(Handler(), 1)
```

## What it does not do

The package defines message types, but it does not include:

- a serializer;
- a framing layer that sends or receives messages over a `Socket`;
- a message queue;
- LAN service discovery.

It provides no command-line program.