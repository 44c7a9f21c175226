import pytest

from s25net.messages import (
    NMS_DEAD_MSG,
    NMS_NULL_MSG,
    DeadMessage,
    Message,
    MessageInterface,
    NullMessage,
)


class Recorder(MessageInterface):
    def __init__(self):
        self.calls = []

    def on_null(self, msg_id):
        self.calls.append(("null", msg_id))
        return True

    def on_dead(self, msg_id):
        self.calls.append(("dead", msg_id))
        return True


def test_protocol_ids():
    assert NMS_NULL_MSG == 0x0000
    assert NMS_DEAD_MSG == 0xFFFF
    assert NullMessage().msg_id == NMS_NULL_MSG
    assert DeadMessage().msg_id == NMS_DEAD_MSG


def test_default_interface_does_not_handle():
    iface = MessageInterface()
    assert NullMessage().run(iface, 3) is False
    assert DeadMessage().run(iface, 3) is False


def test_run_dispatches_to_matching_handler():
    rec = Recorder()
    assert NullMessage().run(rec, 7) is True
    assert DeadMessage().run(rec, 9) is True
    assert rec.calls == [("null", 7), ("dead", 9)]


def test_clone_is_independent_copy():
    msg = DeadMessage()
    dup = msg.clone()
    assert dup is not msg
    assert type(dup) is DeadMessage
    assert dup.msg_id == msg.msg_id


def test_base_message_is_abstract():
    with pytest.raises(TypeError):
        Message(1)


class Custom(Message):
    def run(self, callback, msg_id):
        return False


@pytest.mark.parametrize("bad", [-1, 0x10000])
def test_message_id_range(bad):
    msg = Custom(0x0001)
    with pytest.raises(ValueError):
        Message.__init__(msg, bad)


def test_custom_message_keeps_id():
    msg = Custom(0x1234)
    dup = Message.clone(msg)
    assert type(dup) is Custom
    assert dup.msg_id == 0x1234
    assert msg.msg_id == 0x1234