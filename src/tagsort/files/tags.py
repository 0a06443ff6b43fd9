"""Tag validation helpers."""

from __future__ import annotations

from typing import Iterable

MAX_TAGS = 8
"""Maximum number of tag slots a single file can hold."""

_ALLOWED = frozenset("abcdefghijklmnopqrstuvwxyz-")


def is_valid_tag(tag: str) -> bool:
    """Return True when ``tag`` is non-empty and made of lowercase letters and hyphens."""
    return bool(tag) and all(character in _ALLOWED for character in tag)


def unique_tags(tags: Iterable[str], limit: int = MAX_TAGS) -> list[str]:
    """Return the sorted, de-duplicated view of ``tags`` capped at ``limit`` entries."""
    ordered = sorted(tags)
    result: list[str] = []
    for tag in ordered:
        if result and result[-1] == tag:
            continue
        result.append(tag)
    return result[:limit]


__all__ = ["MAX_TAGS", "is_valid_tag", "unique_tags"]
