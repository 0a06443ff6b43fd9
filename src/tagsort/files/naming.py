"""Deterministic target-name generation for indexed files."""

from __future__ import annotations

from datetime import timezone

from .models import IndexedFile

MIN_INDEX_WIDTH = 3


def generate_name(file: IndexedFile, sequence_index: int) -> str:
    """Return the canonical target name for ``file``.

    The name has the form ``YYYY-MM-DD_NNN[_tag...][.ext]`` where the date is
    the file's override timestamp in UTC, ``NNN`` is the sequence index padded
    to at least three digits, and tags are the file's sorted unique tags.

    Args:
        file: Indexed file to name.
        sequence_index: Zero-based position of the file within its transaction.

    Returns:
        str: Generated file name without any directory component.
    """
    if sequence_index < 0:
        raise ValueError("sequence_index must not be negative")

    timestamp = file.override_timestamp or file.real_timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    parts = [
        timestamp.astimezone(timezone.utc).strftime("%Y-%m-%d"),
        f"{sequence_index:0{MIN_INDEX_WIDTH}d}",
    ]
    parts.extend(file.unique_tags())

    name = "_".join(parts)
    extension = file.extension
    if extension:
        name = f"{name}.{extension}"
    return name


def generate_name_bounded(
    file: IndexedFile,
    sequence_index: int,
    capacity: int,
) -> tuple[int, str]:
    """Generate a name that fits a fixed-size buffer.

    Args:
        file: Indexed file to name.
        sequence_index: Zero-based position of the file within its transaction.
        capacity: Buffer size, including one slot reserved for a terminator.

    Returns:
        tuple[int, str]: Full length of the untruncated name and the prefix that
            fits in ``capacity - 1`` characters. The name was truncated when the
            length is greater than or equal to ``capacity``.
    """
    name = generate_name(file, sequence_index)
    if capacity <= 0:
        return len(name), ""
    return len(name), name[: capacity - 1]


__all__ = ["MIN_INDEX_WIDTH", "generate_name", "generate_name_bounded"]
