"""Base network message types and the callback interface they dispatch to."""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Callable, ClassVar, Mapping

NMS_NULL_MSG = 0x0000
NMS_DEAD_MSG = 0xFFFF


class MessageInterface:
    """Receiver of messages; each handler returns True if it handled one.

    Subclasses either override the ``on_*`` methods or fill ``handlers``
    with a mapping from message type id to a callable taking the sender id.
    Message types without a handler are reported as not handled.
    """

    handlers: ClassVar[Mapping[int, Callable[[int], bool]]] = MappingProxyType({})

    def _dispatch(self, msg_type: int, msg_id: int) -> bool:
        handler = self.handlers.get(msg_type)
        if handler is None:
            return False
        return bool(handler(msg_id))

    def on_null(self, msg_id: int) -> bool:
        return self._dispatch(NMS_NULL_MSG, msg_id)

    def on_dead(self, msg_id: int) -> bool:
        return self._dispatch(NMS_DEAD_MSG, msg_id)


class Message(ABC):
    """A network message identified by a 16-bit id.

    ``PAYLOAD_FIELDS`` names the attributes written and read, in order, by
    ``serialize`` and ``deserialize``; the base message carries none.
    """

    PAYLOAD_FIELDS: ClassVar[tuple[str, ...]] = ()

    def __init__(self, msg_id: int) -> None:
        if not 0 <= msg_id <= 0xFFFF:
            raise ValueError(f"message id out of range: {msg_id}")
        self._msg_id = msg_id

    @property
    def msg_id(self) -> int:
        return self._msg_id

    def serialize(self, ser: Any) -> None:
        """Write each payload field to ``ser`` via ``ser.write``."""
        for name in self.PAYLOAD_FIELDS:
            ser.write(getattr(self, name))

    def deserialize(self, ser: Any) -> None:
        """Read each payload field from ``ser`` via ``ser.read``."""
        for name in self.PAYLOAD_FIELDS:
            setattr(self, name, ser.read())

    def clone(self) -> "Message":
        return copy.copy(self)

    @abstractmethod
    def run(self, callback: MessageInterface, msg_id: int) -> bool:
        """Dispatch to ``callback``; return True if handled."""


class NullMessage(Message):
    """Empty message."""

    def __init__(self) -> None:
        super().__init__(NMS_NULL_MSG)

    def run(self, callback: MessageInterface, msg_id: int) -> bool:
        return callback.on_null(msg_id)


class DeadMessage(Message):
    """Message announcing a dead connection."""

    def __init__(self) -> None:
        super().__init__(NMS_DEAD_MSG)

    def run(self, callback: MessageInterface, msg_id: int) -> bool:
        return callback.on_dead(msg_id)