"""Lexicographic sort keys for parent/child issue links.

Keys are lowercase ``a``-``z`` strings compared with plain string ordering, so
a child can be inserted between two siblings by minting a key that sorts
between theirs; no sibling ever has to be renumbered.

Auto-assigned keys come from a base-26 counter seeded at ``"aaa"``
(``aaa``, ``aab``, ... ``aaz``, ``aba``, ...). After ``zzz`` the sequence
continues with ``zzzaaa`` so later keys still sort after earlier ones.
"""

from __future__ import annotations

from .models import ParentIssueRef

ALPHABET = "abcdefghijklmnopqrstuvwxyz"
KEY_WIDTH = 3
FIRST_KEY = "aaa"
_BASE = len(ALPHABET)
_BLOCK = _BASE**KEY_WIDTH


def key_at(index: int) -> str:
    """Return the ``index``-th auto-assigned key (0 -> ``"aaa"``)."""
    if index < 0:
        raise ValueError(f"key index must be non-negative, got {index}")
    prefix = ""
    while index >= _BLOCK:
        prefix += ALPHABET[-1] * KEY_WIDTH
        index -= _BLOCK
    chars = []
    for _ in range(KEY_WIDTH):
        index, digit = divmod(index, _BASE)
        chars.append(ALPHABET[digit])
    return prefix + "".join(reversed(chars))


def generate_keys(count: int) -> list[str]:
    return [key_at(i) for i in range(count)]


def parse_one(token: str, fallback_key: str | None = None) -> ParentIssueRef:
    """Parse ``"<id>"`` or ``"<id>:<key>"``; a bare id takes ``fallback_key``."""
    parent, sep, key = token.partition(":")
    sort_order = key.strip() if sep else (fallback_key or FIRST_KEY)
    return ParentIssueRef(parent_issue=parent.strip(), sort_order=sort_order)


def parse_many(text: str | None) -> list[ParentIssueRef]:
    """Parse a comma-separated token list, keying bare ids in order of appearance."""
    if text is None or not text.strip():
        return []
    tokens = [t for t in text.split(",") if t.strip()]
    refs: list[ParentIssueRef] = []
    auto_index = 0
    for token in tokens:
        if ":" in token:
            refs.append(parse_one(token))
        else:
            refs.append(parse_one(token, key_at(auto_index)))
            auto_index += 1
    return refs


def _digit(key: str, pos: int) -> int:
    return ALPHABET.index(key[pos]) if pos < len(key) else 0


def _between(low: str, high: str | None) -> str:
    # ``high`` of None is an open upper bound.
    prefix = ""
    pos = 0
    while True:
        lo = _digit(low, pos)
        if high is None:
            hi = _BASE
        elif pos < len(high):
            hi = ALPHABET.index(high[pos])
        elif pos < len(low):
            hi = 0
        else:
            raise ValueError(f"no key sorts between {low!r} and {high!r}")
        if lo == hi:
            prefix += ALPHABET[lo]
            pos += 1
            continue
        if hi - lo > 1:
            return prefix + ALPHABET[(lo + hi) // 2]
        # Adjacent digits: keep ``low``'s digit and open the upper bound.
        return prefix + ALPHABET[lo] + _between(low[pos + 1 :], None)


def rank_between(before: str | None, after: str | None) -> str:
    """Return a key sorting strictly between ``before`` and ``after``.

    Either bound may be ``None`` to insert at the start or end of a sibling
    list. When ``after`` is all ``a`` characters the only keys below it are
    its shorter prefixes, so ``rank_between(None, "aaa")`` returns ``"aa"``.
    Raises ``ValueError`` when ``before >= after``, when a key holds a
    character outside ``a``-``z``, or when no key fits (nothing sorts before
    ``"a"``).
    """
    for key in (before, after):
        if key is not None and (not key or any(c not in ALPHABET for c in key)):
            raise ValueError(f"invalid sort key {key!r}")
    if before is None and after is None:
        return "n" * KEY_WIDTH
    if before is not None and after is not None and before >= after:
        raise ValueError(f"'before' ({before}) must sort before 'after' ({after})")
    try:
        result = _between(before or "", after)
    except ValueError:
        result = None
    if result is None or (before is not None and result <= before) or (after is not None and result >= after):
        # A proper prefix of ``after`` sorts below it.
        shorter = after[:-1] if after else ""
        if shorter and (before is None or shorter > before):
            return shorter
        raise ValueError(f"no key sorts between {before!r} and {after!r}")
    return result


__all__ = [
    "ALPHABET",
    "FIRST_KEY",
    "generate_keys",
    "key_at",
    "parse_many",
    "parse_one",
    "rank_between",
]
