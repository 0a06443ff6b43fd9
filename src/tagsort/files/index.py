"""Ordered index of files discovered in a source directory."""

from __future__ import annotations

import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Sequence

from .errors import (
    AccessDeniedError,
    InvalidTagError,
    InvalidValueError,
    TooManyTagsError,
    from_os_error,
)
from .models import FileAction, IndexedFile
from .tags import MAX_TAGS, is_valid_tag

LOGGER = logging.getLogger(__name__)


class FileIndex:
    """Own a collection of indexed files ordered by their real timestamp.

    Files with equal timestamps keep the order in which they were inserted.
    """

    def __init__(self, override_timestamp: datetime | None = None) -> None:
        """Initialize an empty index.

        Args:
            override_timestamp: Optional timestamp applied to every inserted file
                for naming purposes; ordering still uses the real timestamp.
        """
        self._files: list[IndexedFile] = []
        self._override_timestamp = override_timestamp

    @property
    def override_timestamp(self) -> datetime | None:
        return self._override_timestamp

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self) -> Iterator[IndexedFile]:
        return iter(self._files)

    def __getitem__(self, position: int) -> IndexedFile:
        return self._files[position]

    def insert(self, path: Path | str) -> IndexedFile:
        """Add the file at ``path`` to the index.

        Args:
            path: Path of a readable regular file.

        Returns:
            IndexedFile: Newly indexed file.

        Raises:
            InvalidValueError: If the path is empty or not a regular file.
            NotFoundError: If the path does not exist.
            AccessDeniedError: If the file cannot be read or stat'ed.
        """
        if not str(path):
            raise InvalidValueError("Path must not be empty")
        file_path = Path(path)

        try:
            file_stat = file_path.stat()
        except OSError as exc:
            raise from_os_error(exc, file_path, action="stat") from exc
        if not stat.S_ISREG(file_stat.st_mode):
            raise InvalidValueError(f"Not a regular file: {file_path}", path=file_path)
        if not os.access(file_path, os.R_OK):
            raise AccessDeniedError(f"File is not readable: {file_path}", path=file_path)

        real_timestamp = datetime.fromtimestamp(file_stat.st_ctime, tz=timezone.utc)
        indexed = IndexedFile(
            path=file_path,
            real_timestamp=real_timestamp,
            override_timestamp=self._override_timestamp,
        )
        self._insert_sorted(indexed)
        LOGGER.debug("Indexed %s (ctime %s)", file_path, real_timestamp.isoformat())
        return indexed

    def add_tags_to_all(self, tags: Sequence[str]) -> None:
        """Attach every tag in ``tags`` to every indexed file, or to none of them.

        Tag slots are counted raw: duplicates occupy a slot even though the
        generated name lists each tag once.

        Raises:
            TooManyTagsError: If more than the allowed number of tags is given or
                any file lacks free slots for all of them.
            InvalidTagError: If any tag is empty or has invalid characters.
        """
        tags = list(tags)
        if len(tags) > MAX_TAGS:
            raise TooManyTagsError(f"Cannot add {len(tags)} tags; the limit is {MAX_TAGS}")

        for tag in tags:
            if not is_valid_tag(tag):
                raise InvalidTagError(
                    f"Invalid tag {tag!r}: only lowercase letters and '-' are allowed"
                )

        for file in self._files:
            if len(file.tags) + len(tags) > MAX_TAGS:
                raise TooManyTagsError(
                    f"{file.path} has {len(file.tags)} tags; adding {len(tags)} "
                    f"would exceed the limit of {MAX_TAGS}",
                    path=file.path,
                )

        for file in self._files:
            for tag in tags:
                file.add_tag(tag)
        if tags:
            LOGGER.debug("Applied tags %s to %d files", ", ".join(tags), len(self._files))

    def set_action_for_all(self, action: FileAction) -> None:
        """Assign ``action`` as the pending action of every indexed file."""
        for file in self._files:
            file.pending_action = action

    def clear(self) -> None:
        """Drop every indexed file."""
        self._files.clear()

    def _insert_sorted(self, file: IndexedFile) -> None:
        position = len(self._files)
        while position > 0 and self._files[position - 1].real_timestamp > file.real_timestamp:
            position -= 1
        self._files.insert(position, file)


__all__ = ["FileIndex"]
