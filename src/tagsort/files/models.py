"""Data models for indexed files and prepared transaction operations."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import InvalidTagError, TooManyTagsError
from .tags import MAX_TAGS, is_valid_tag, unique_tags


class FileAction(str, Enum):
    """Action the caller wants applied to an indexed file."""

    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"
    IGNORE = "ignore"


class PreparedState(str, Enum):
    """Outcome recorded for a file during the prepare phase."""

    NONE = "none"
    COPY = "copy"
    MOVE = "move"
    DELETE = "delete"
    IGNORE = "ignore"

    @classmethod
    def for_action(cls, action: FileAction) -> "PreparedState":
        """Return the prepared state mirroring ``action``."""
        return cls(action.value)


class IndexedFile(BaseModel):
    """A regular file discovered in the source directory.

    Attributes:
        path: Source path of the file.
        real_timestamp: Filesystem change time captured at discovery.
        override_timestamp: Timestamp used when generating the target name.
        tags: Raw tag slots attached to the file; duplicates are allowed here.
        pending_action: Action to apply when the transaction is prepared.
    """

    model_config = ConfigDict(validate_assignment=True)

    path: Path = Field(frozen=True)
    real_timestamp: datetime = Field(frozen=True)
    override_timestamp: datetime | None = None
    tags: List[str] = Field(default_factory=list, max_length=MAX_TAGS)
    pending_action: FileAction = FileAction.COPY

    def model_post_init(self, __context: Any) -> None:
        if self.override_timestamp is None:
            self.override_timestamp = self.real_timestamp

    @field_validator("path")
    @classmethod
    def _path_not_empty(cls, value: Path) -> Path:
        if not str(value) or str(value) == ".":
            raise ValueError("path must not be empty")
        return value

    @property
    def extension(self) -> str | None:
        """Return the text after the last dot of the final path component, if any."""
        text = str(self.path)
        last_dot = text.rfind(".")
        last_slash = text.rfind("/")
        if last_dot < 0 or last_dot < last_slash:
            return None
        return text[last_dot + 1 :] or None

    def add_tag(self, tag: str) -> None:
        """Attach ``tag`` to the file.

        Raises:
            InvalidTagError: If the tag is empty or has characters outside ``[a-z-]``.
            TooManyTagsError: If every tag slot is already occupied.
        """
        if not is_valid_tag(tag):
            raise InvalidTagError(f"Invalid tag {tag!r}", path=self.path)
        if len(self.tags) >= MAX_TAGS:
            raise TooManyTagsError(
                f"{self.path} already has {MAX_TAGS} tags; cannot add {tag!r}", path=self.path
            )
        self.tags.append(tag)

    def remove_tag(self, tag: str) -> int:
        """Remove every occurrence of ``tag`` and return how many slots were freed."""
        remaining = [existing for existing in self.tags if existing != tag]
        removed = len(self.tags) - len(remaining)
        self.tags = remaining
        return removed

    def clear_tags(self) -> None:
        self.tags = []

    def unique_tags(self) -> list[str]:
        """Return the sorted, duplicate-free tags used for naming."""
        return unique_tags(self.tags)


class PreparedOperation(BaseModel):
    """Result of preparing a single indexed file.

    Attributes:
        source_file: File the operation was prepared for.
        target_path: Destination path inside the target directory.
        state: Action recorded during prepare.
        method: How a copy/move target was materialized (``hardlink`` or ``copy``).
    """

    source_file: IndexedFile
    target_path: Path = Field(frozen=True)
    state: PreparedState = PreparedState.NONE
    method: Literal["hardlink", "copy"] | None = None


class TransactionOptions(BaseModel):
    """Flags controlling how a transaction runs.

    Attributes:
        dry_run: Simulate every phase without touching the filesystem.
        verbose: Narrate each step at INFO level instead of DEBUG.
        force: Allow overwriting files that already exist in the target directory.
    """

    dry_run: bool = False
    verbose: bool = False
    force: bool = False


class OperationEvent(BaseModel):
    """History entry describing a committed operation."""

    timestamp: datetime
    operation: Literal["copy", "move", "delete", "ignore"]
    source: str
    destination: str | None = None
    method: str | None = None
    notes: List[str] = Field(default_factory=list)


__all__ = [
    "FileAction",
    "PreparedState",
    "IndexedFile",
    "PreparedOperation",
    "TransactionOptions",
    "OperationEvent",
]
