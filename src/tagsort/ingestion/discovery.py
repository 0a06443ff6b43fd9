"""Source directory discovery."""

from __future__ import annotations

import logging
import stat
from pathlib import Path
from typing import Iterator

from tagsort.files.errors import AccessDeniedError, FileOperationError, InvalidValueError
from tagsort.files.index import FileIndex

LOGGER = logging.getLogger(__name__)


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


class DirectoryScanner:
    """Discover regular files directly inside a source directory."""

    def __init__(self, *, include_hidden: bool = True) -> None:
        self.include_hidden = include_hidden

    def scan(self, root: Path) -> Iterator[Path]:
        """Yield regular files found in ``root`` in name order.

        Subdirectories are not descended into and non-regular entries are
        skipped.

        Raises:
            InvalidValueError: If ``root`` is missing or not a directory.
            AccessDeniedError: If ``root`` or one of its entries cannot be inspected.
        """
        try:
            entries = sorted(root.iterdir(), key=lambda entry: entry.name)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise InvalidValueError(f"Source directory not found: {root}", path=root) from exc
        except OSError as exc:
            raise AccessDeniedError(
                f"Cannot read source directory {root}: {exc.strerror}", path=root
            ) from exc

        for path in entries:
            if not self.include_hidden and _is_hidden(path):
                continue
            try:
                mode = path.stat().st_mode
            except OSError as exc:
                raise AccessDeniedError(f"Cannot stat {path}: {exc.strerror}", path=path) from exc
            if not stat.S_ISREG(mode):
                LOGGER.debug("Skipping non-regular entry %s", path)
                continue
            yield path

    def populate(self, index: FileIndex, root: Path) -> int:
        """Insert every discovered file into ``index``.

        Population is all-or-nothing: on the first failure the index is cleared
        before the error propagates.

        Returns:
            int: Number of files inserted.
        """
        inserted = 0
        try:
            for path in self.scan(root):
                index.insert(path)
                inserted += 1
        except FileOperationError:
            index.clear()
            raise
        LOGGER.debug("Indexed %d files from %s", inserted, root)
        return inserted


__all__ = ["DirectoryScanner"]
