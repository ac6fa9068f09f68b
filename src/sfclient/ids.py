from __future__ import annotations

from typing import Any

from .exceptions import InvalidIdError

_SUFFIX_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ012345"


def _is_ascii_alnum(c: str) -> bool:
    return c.isascii() and c.isalnum()


def canonicalize(value: str) -> str:
    """Return the 18-character, case-insensitive form of a Salesforce Id.

    The first 15 characters are case-sensitive. Each one that is an uppercase
    letter sets bit *i* of a 15-bit string, which is split into three 5-bit
    groups (bits 0-4, 5-9, 10-14); each group indexes ``A-Z0-5`` to give one
    suffix character. An 18-character input is re-derived from its first 15
    characters, so canonicalizing is idempotent.
    """
    if not isinstance(value, str) or len(value) not in (15, 18):
        raise InvalidIdError(value)
    if not all(_is_ascii_alnum(c) for c in value):
        raise InvalidIdError(value)

    bits = 0
    for i, c in enumerate(value[:15]):
        if "A" <= c <= "Z":
            bits |= 1 << i

    suffix = "".join(_SUFFIX_ALPHABET[(bits >> shift) & 0x1F] for shift in (0, 5, 10))
    return value[:15] + suffix


class SalesforceId:
    """An 18-character Salesforce record Id.

    Accepts the 15-character (case-sensitive) or 18-character form. Equality and
    hashing use the canonical 18-character value, so ``SalesforceId("001...")``
    built from either form compares equal, and also compares equal to a plain
    string holding either form of the same Id.
    """

    __slots__ = ("_id",)

    def __init__(self, value: Any):
        if isinstance(value, SalesforceId):
            self._id = value._id
        else:
            self._id = canonicalize(value)

    @property
    def key_prefix(self) -> str:
        """The three-character prefix identifying the object type."""
        return self._id[:3]

    @property
    def short(self) -> str:
        """The 15-character case-sensitive form."""
        return self._id[:15]

    def __str__(self) -> str:
        return self._id

    def __repr__(self) -> str:
        return f"SalesforceId({self._id!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SalesforceId):
            return self._id == other._id
        if isinstance(other, str):
            try:
                return self._id == canonicalize(other)
            except InvalidIdError:
                return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._id)

    @classmethod
    def is_valid(cls, value: Any) -> bool:
        try:
            canonicalize(value)
        except InvalidIdError:
            return False
        return True
