"""A set of sockets that can be waited on with ``select``."""

from __future__ import annotations

import enum
import select
import time
from typing import Optional, Protocol, Union


class SelectKind(enum.IntEnum):
    """Which readiness a select waits for."""

    READ = 0
    WRITE = 1
    ERROR = 2


class _HasFileno(Protocol):
    def fileno(self) -> int: ...


class SocketSet:
    """Collects sockets and waits until some of them become ready.

    Like an ``fd_set``, the set is narrowed by :meth:`select` to the sockets
    that are ready, so :meth:`in_set` afterwards reports readiness.
    """

    def __init__(self) -> None:
        self._fds: set[int] = set()
        self._highest: Optional[int] = None

    def clear(self) -> None:
        """Remove every socket from the set."""
        self._fds.clear()
        self._highest = None

    def add(self, sock: _HasFileno) -> None:
        """Add ``sock``; invalid or closed sockets are ignored."""
        fd = sock.fileno()
        if fd < 0:
            return
        self._fds.add(fd)
        if self._highest is None or fd > self._highest:
            self._highest = fd

    def select(
        self, timeout_ms: int, which: Union[SelectKind, int] = SelectKind.ERROR
    ) -> int:
        """Wait up to ``timeout_ms`` milliseconds; return the number of ready sockets.

        Raises ValueError if no socket was ever added since the last clear.
        """
        if self._highest is None:
            raise ValueError("no sockets in the set")
        try:
            kind = SelectKind(which)
        except ValueError:
            kind = SelectKind.ERROR
        timeout = max(timeout_ms, 0) / 1000
        fds = sorted(self._fds)
        if not fds:
            time.sleep(timeout)
            return 0
        lists: list[list[int]] = [[], [], []]
        lists[kind] = fds
        ready = select.select(lists[0], lists[1], lists[2], timeout)[kind]
        self._fds = set(ready)
        return len(self._fds)

    def in_set(self, sock: _HasFileno) -> bool:
        """Return True if ``sock`` is (still) in the set."""
        fd = sock.fileno()
        if fd < 0:
            return False
        return fd in self._fds