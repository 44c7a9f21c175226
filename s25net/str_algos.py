"""ASCII-only case conversion, independent of locale and Unicode rules."""

from __future__ import annotations

import string

_TO_LOWER = str.maketrans(string.ascii_uppercase, string.ascii_lowercase)
_TO_UPPER = str.maketrans(string.ascii_lowercase, string.ascii_uppercase)


def to_lower(s: str) -> str:
    """Lower-case the ASCII letters of ``s``; other characters are kept."""
    return s.translate(_TO_LOWER)


def to_upper(s: str) -> str:
    """Upper-case the ASCII letters of ``s``; other characters are kept."""
    return s.translate(_TO_UPPER)