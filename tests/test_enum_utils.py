import enum

import pytest

from s25net.enum_utils import clear, is_set, set_flag, toggle


class Perm(enum.Flag):
    NONE = 0
    READ = enum.auto()
    WRITE = enum.auto()
    EXEC = enum.auto()


def test_clear_removes_only_given_flag():
    val = Perm.READ | Perm.WRITE
    assert clear(val, Perm.READ) == Perm.WRITE


def test_clear_of_unset_flag_keeps_value():
    assert clear(Perm.WRITE, Perm.EXEC) == Perm.WRITE


def test_set_flag_adds_flag():
    assert set_flag(Perm.READ, Perm.EXEC) == Perm.READ | Perm.EXEC


def test_set_flag_false_clears():
    assert set_flag(Perm.READ | Perm.EXEC, Perm.EXEC, False) == Perm.READ


@pytest.mark.parametrize("flag", [Perm.READ, Perm.WRITE, Perm.EXEC])
def test_toggle_twice_is_identity(flag):
    val = Perm.READ | Perm.EXEC
    assert toggle(toggle(val, flag), flag) == val


def test_toggle_flips_bit_state():
    val = Perm.READ
    assert is_set(toggle(val, Perm.WRITE), Perm.WRITE)
    assert not is_set(toggle(val, Perm.READ), Perm.READ)


def test_is_set_requires_all_bits():
    val = Perm.READ | Perm.WRITE
    assert is_set(val, Perm.READ | Perm.WRITE)
    assert not is_set(val, Perm.READ | Perm.EXEC)


def test_works_with_plain_integers():
    assert clear(0b110, 0b010) == 0b100
    assert set_flag(0b100, 0b001) == 0b101
    assert toggle(0b101, 0b101) == 0
    assert is_set(0b111, 0b011)


def test_preserves_enum_type():
    result = set_flag(Perm.NONE, Perm.WRITE)
    assert isinstance(result, Perm) and result == Perm.WRITE