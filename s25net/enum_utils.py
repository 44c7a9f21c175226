"""Helpers for treating flag enums (or plain integers) as bitsets."""

from __future__ import annotations

from typing import TypeVar

FlagT = TypeVar("FlagT")


def clear(val: FlagT, flag: FlagT) -> FlagT:
    """Return ``val`` with every bit of ``flag`` removed."""
    return val & ~flag


def set_flag(val: FlagT, flag: FlagT, state: bool = True) -> FlagT:
    """Return ``val`` with ``flag`` set, or cleared when ``state`` is false."""
    return (val | flag) if state else clear(val, flag)


def toggle(val: FlagT, flag: FlagT) -> FlagT:
    """Return ``val`` with the bits of ``flag`` inverted."""
    return val ^ flag


def is_set(val: FlagT, flag: FlagT) -> bool:
    """Return True if all bits of ``flag`` are set in ``val``."""
    return (val & flag) == flag