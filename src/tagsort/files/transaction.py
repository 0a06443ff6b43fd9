"""Two-phase relocation of indexed files into a target directory.

Prepare materializes every target file (copies and hard links) without
touching the sources. Commit then removes the sources of moves and deletions,
which cannot be undone. Rollback, valid only before commit, deletes the
targets written during prepare.
"""

from __future__ import annotations

import errno
import logging
import os
import stat
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Literal

from .errors import (
    AccessDeniedError,
    AlreadyExistsError,
    FileOperationError,
    InvalidOperationError,
    InvalidValueError,
    NotFoundError,
    from_os_error,
)
from .index import FileIndex
from .models import (
    FileAction,
    IndexedFile,
    OperationEvent,
    PreparedOperation,
    PreparedState,
    TransactionOptions,
)
from .naming import generate_name_bounded

LOGGER = logging.getLogger(__name__)

NAME_CAPACITY = 256
COPY_CHUNK_SIZE = 64 * 1024

Phase = Literal["new", "prepared", "failed", "committed", "rolled_back"]


def _narrate(options: TransactionOptions, message: str, *args: object) -> None:
    LOGGER.log(logging.INFO if options.verbose else logging.DEBUG, message, *args)


def create_directory(path: Path) -> Path:
    """Create ``path`` and any missing parents.

    Raises:
        InvalidValueError: If the path is empty or exists but is not a directory.
        AccessDeniedError: If the directory cannot be inspected or created.
    """
    if _existing_directory(path):
        return path
    try:
        path.mkdir(parents=True, exist_ok=True)
    except (FileExistsError, NotADirectoryError) as exc:
        raise InvalidValueError(
            f"Cannot create {path}: a parent path is not a directory", path=path
        ) from exc
    except PermissionError as exc:
        raise AccessDeniedError(f"Cannot create {path}: {exc.strerror}", path=path) from exc
    except OSError as exc:
        raise InvalidValueError(f"Cannot create {path}: {exc.strerror}", path=path) from exc
    return path


def _existing_directory(path: Path) -> bool:
    """Return True if ``path`` is a directory, False if it is absent."""
    if not str(path):
        raise InvalidValueError("Target directory must not be empty")
    try:
        mode = path.stat().st_mode
    except FileNotFoundError:
        return False
    except PermissionError as exc:
        raise AccessDeniedError(f"Cannot access {path}: {exc.strerror}", path=path) from exc
    except OSError as exc:
        raise InvalidValueError(f"Cannot access {path}: {exc.strerror}", path=path) from exc
    if not stat.S_ISDIR(mode):
        raise InvalidValueError(f"{path} exists and is not a directory", path=path)
    return True


def copy_file(source: Path, target: Path, *, overwrite: bool = False) -> None:
    """Stream the bytes of ``source`` into ``target``.

    A partially written target is removed before the error propagates.

    Args:
        source: File to read.
        target: File to create, or truncate when ``overwrite`` is set.
        overwrite: Replace an existing target instead of failing.

    Raises:
        AlreadyExistsError: If the target exists and ``overwrite`` is unset.
        FileOperationError: For any other read or write failure.
    """
    try:
        source_handle = source.open("rb")
    except OSError as exc:
        raise from_os_error(exc, source, action="open") from exc

    with source_handle:
        try:
            target_handle = target.open("wb" if overwrite else "xb")
        except OSError as exc:
            raise from_os_error(exc, target, action="create") from exc
        try:
            with target_handle:
                while True:
                    try:
                        chunk = source_handle.read(COPY_CHUNK_SIZE)
                    except OSError as exc:
                        raise from_os_error(exc, source, action="read") from exc
                    if not chunk:
                        break
                    try:
                        target_handle.write(chunk)
                    except OSError as exc:
                        raise from_os_error(exc, target, action="write") from exc
        except FileOperationError:
            _discard_partial(target)
            raise
        except OSError as exc:
            _discard_partial(target)
            raise from_os_error(exc, target, action="write") from exc


def link_or_copy_file(
    source: Path,
    target: Path,
    *,
    overwrite: bool = False,
) -> Literal["hardlink", "copy"]:
    """Hard-link ``source`` to ``target``, copying bytes when linking is not possible.

    Only cross-device and permission failures fall back to a copy; any other
    link failure is raised.

    Returns:
        str: ``"hardlink"`` or ``"copy"`` depending on how the target was created.
    """
    if overwrite:
        _remove_if_present(target)
    try:
        os.link(source, target)
    except OSError as exc:
        if exc.errno not in (errno.EXDEV, errno.EPERM):
            raise from_os_error(exc, source, action=f"link {target} to") from exc
        LOGGER.debug("Hard link %s -> %s failed (%s); copying instead", source, target, exc)
        copy_file(source, target, overwrite=overwrite)
        return "copy"
    return "hardlink"


def _discard_partial(target: Path) -> None:
    try:
        target.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        LOGGER.warning("Could not remove partial file %s: %s", target, exc)


def _remove_if_present(target: Path) -> None:
    try:
        target.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise from_os_error(exc, target, action="replace") from exc


def _refuse_indexed_target(target: Path, index: FileIndex) -> None:
    """Raise if ``target`` already is one of the indexed source files.

    Sources are compared by device and inode, so hard links and symlinks to a
    source are caught as well. The check holds even with ``force``.

    Raises:
        AlreadyExistsError: If writing ``target`` would replace an indexed source.
    """
    try:
        target_stat = target.stat()
    except FileNotFoundError:
        return
    except OSError as exc:
        raise from_os_error(exc, target, action="inspect") from exc

    for file in index:
        try:
            source_stat = file.path.stat()
        except FileNotFoundError:
            continue
        except OSError as exc:
            raise from_os_error(exc, file.path, action="inspect") from exc
        if os.path.samestat(target_stat, source_stat):
            raise AlreadyExistsError(
                f"Target {target} is the indexed source {file.path}; refusing to replace it",
                path=target,
            )


class FileTransaction:
    """Single-use prepare/commit/rollback context for one target directory.

    A transaction is prepared exactly once and then either committed or rolled
    back. A failed prepare leaves the operations prepared so far in place and
    must be followed by ``rollback``.
    """

    def __init__(self, target_directory: Path) -> None:
        self._target_directory: Path | None = target_directory
        self._operations: list[PreparedOperation] = []
        self._events: list[OperationEvent] = []
        self._phase: Phase = "new"

    @classmethod
    def init(cls, target_dir: Path | str, *, create: bool = True) -> "FileTransaction":
        """Open a transaction writing into ``target_dir``.

        Args:
            target_dir: Directory that receives the generated files.
            create: Create the directory and its parents when missing. When False
                the directory is only validated, which keeps dry runs read-only.

        Returns:
            FileTransaction: Empty transaction ready for ``prepare``.

        Raises:
            InvalidValueError: If the path is empty or is not a directory.
            AccessDeniedError: If the directory cannot be created or inspected.
        """
        if not str(target_dir):
            raise InvalidValueError("Target directory must not be empty")
        directory = Path(target_dir)
        if create:
            create_directory(directory)
        else:
            _existing_directory(directory)
        return cls(directory)

    @property
    def target_directory(self) -> Path:
        if self._target_directory is None:
            raise InvalidOperationError("Transaction has been cleaned up")
        return self._target_directory

    @property
    def operations(self) -> tuple[PreparedOperation, ...]:
        return tuple(self._operations)

    @property
    def events(self) -> tuple[OperationEvent, ...]:
        """Operations applied by the last commit, including a partial one."""
        return tuple(self._events)

    @property
    def phase(self) -> Phase:
        return self._phase

    def __len__(self) -> int:
        return len(self._operations)

    # ------------------------------------------------------------------ #
    # Prepare                                                            #
    # ------------------------------------------------------------------ #

    def prepare(self, index: FileIndex, options: TransactionOptions | None = None) -> None:
        """Prepare one operation per indexed file, in index order.

        Args:
            index: Files to process; their position provides the sequence index.
            options: Transaction flags.

        Raises:
            InvalidOperationError: If the transaction was already prepared.
            AlreadyExistsError: If a target is one of the indexed sources, even
                with ``force``.
            FileOperationError: The first failure encountered. Operations prepared
                before it remain in the transaction for ``rollback``.
        """
        options = options or TransactionOptions()
        if self._phase != "new":
            raise InvalidOperationError("Transaction has already been prepared")
        target_directory = self.target_directory

        _narrate(options, "Preparing %d operations...", len(index))
        for sequence_index, file in enumerate(index):
            try:
                operation = self._prepare_single(
                    index, file, sequence_index, target_directory, options
                )
            except FileOperationError as exc:
                self._phase = "failed"
                LOGGER.warning("Failed to prepare operation for %s: %s", file.path, exc)
                raise
            self._operations.append(operation)

        self._phase = "prepared"
        _narrate(options, "All operations prepared successfully.")

    def _prepare_single(
        self,
        index: FileIndex,
        file: IndexedFile,
        sequence_index: int,
        target_directory: Path,
        options: TransactionOptions,
    ) -> PreparedOperation:
        length, name = generate_name_bounded(file, sequence_index, NAME_CAPACITY)
        if length >= NAME_CAPACITY:
            raise InvalidValueError(
                f"Generated name for {file.path} is {length} characters long; "
                f"the limit is {NAME_CAPACITY - 1}",
                path=file.path,
            )

        operation = PreparedOperation(source_file=file, target_path=target_directory / name)
        if file.pending_action in (FileAction.COPY, FileAction.MOVE):
            _refuse_indexed_target(operation.target_path, index)
        if options.dry_run:
            self._prepare_dry_run(operation, options)
            return operation

        handlers: dict[FileAction, Callable[[PreparedOperation, TransactionOptions], None]] = {
            FileAction.IGNORE: self._prepare_ignore,
            FileAction.COPY: self._prepare_copy,
            FileAction.MOVE: self._prepare_move,
            FileAction.DELETE: self._prepare_delete,
        }
        handlers[file.pending_action](operation, options)
        return operation

    def _prepare_dry_run(self, operation: PreparedOperation, options: TransactionOptions) -> None:
        file = operation.source_file
        state = PreparedState.for_action(file.pending_action)
        if state in (PreparedState.COPY, PreparedState.MOVE) and not options.force:
            if operation.target_path.exists():
                raise AlreadyExistsError(
                    f"Target already exists: {operation.target_path}",
                    path=operation.target_path,
                )
        operation.state = state

        label = state.value.capitalize()
        if state in (PreparedState.COPY, PreparedState.MOVE):
            _narrate(options, "  [DRY RUN] %s: %s -> %s", label, file.path, operation.target_path)
        else:
            _narrate(options, "  [DRY RUN] %s: %s", label, file.path)

    def _prepare_ignore(self, operation: PreparedOperation, options: TransactionOptions) -> None:
        operation.state = PreparedState.IGNORE
        _narrate(options, "  Ignoring: %s", operation.source_file.path)

    def _prepare_copy(self, operation: PreparedOperation, options: TransactionOptions) -> None:
        source = operation.source_file.path
        copy_file(source, operation.target_path, overwrite=options.force)
        operation.state = PreparedState.COPY
        operation.method = "copy"
        _narrate(options, "  Prepared copy: %s -> %s", source, operation.target_path)

    def _prepare_move(self, operation: PreparedOperation, options: TransactionOptions) -> None:
        source = operation.source_file.path
        method = link_or_copy_file(source, operation.target_path, overwrite=options.force)
        operation.state = PreparedState.MOVE
        operation.method = method
        _narrate(options, "  Prepared move (%s): %s -> %s", method, source, operation.target_path)

    def _prepare_delete(self, operation: PreparedOperation, options: TransactionOptions) -> None:
        operation.state = PreparedState.DELETE
        _narrate(options, "  Prepared delete: %s", operation.source_file.path)

    # ------------------------------------------------------------------ #
    # Commit / rollback                                                  #
    # ------------------------------------------------------------------ #

    def commit(self, options: TransactionOptions | None = None) -> list[OperationEvent]:
        """Remove the sources of prepared moves and deletions.

        Commit is not reversible. When it fails part way, sources unlinked
        earlier stay removed and the remaining operations are left untouched;
        ``events`` lists what was applied before the failure.

        Returns:
            list[OperationEvent]: One event per committed operation.

        Raises:
            InvalidOperationError: If prepare did not complete successfully.
            NotFoundError: If a file marked for deletion no longer exists.
            AccessDeniedError: If a source cannot be removed.
        """
        options = options or TransactionOptions()
        if self._phase != "prepared":
            raise InvalidOperationError(f"Cannot commit a transaction in phase '{self._phase}'")
        self._phase = "committed"

        if options.dry_run:
            _narrate(options, "Commit phase (dry run) - no actual changes made.")
            return []

        _narrate(options, "Committing %d operations...", len(self._operations))
        for operation in self._operations:
            source = operation.source_file.path
            if operation.state == PreparedState.MOVE:
                try:
                    source.unlink()
                except OSError as exc:
                    LOGGER.error("Failed to remove source %s: %s", source, exc)
                    raise AccessDeniedError(
                        f"Failed to remove source {source}: {exc.strerror}", path=source
                    ) from exc
                _narrate(options, "  Committed move: %s", source)
            elif operation.state == PreparedState.DELETE:
                try:
                    source.unlink()
                except FileNotFoundError as exc:
                    LOGGER.error("No such file: %s", source)
                    raise NotFoundError(f"No such file: {source}", path=source) from exc
                except OSError as exc:
                    LOGGER.error("Failed to delete %s: %s", source, exc)
                    raise AccessDeniedError(
                        f"Failed to delete {source}: {exc.strerror}", path=source
                    ) from exc
                _narrate(options, "  Committed delete: %s", source)
            elif operation.state == PreparedState.COPY:
                _narrate(options, "  Nothing to commit for %s (copied)", source)
            self._events.append(self._event_for(operation))

        _narrate(options, "All operations committed successfully.")
        return list(self._events)

    def rollback(self, options: TransactionOptions | None = None) -> None:
        """Delete every target file written during prepare.

        Every operation is attempted even after a failure; targets that are
        already gone are skipped silently.

        Raises:
            InvalidOperationError: If the transaction was never prepared or has
                already been committed or rolled back.
            FileOperationError: The last removal failure, after all attempts.
        """
        options = options or TransactionOptions()
        if self._phase not in ("prepared", "failed"):
            raise InvalidOperationError(f"Cannot roll back a transaction in phase '{self._phase}'")
        self._phase = "rolled_back"

        if options.dry_run:
            _narrate(options, "Rollback (dry run) - no changes to undo.")
            return

        _narrate(options, "Rolling back %d operations...", len(self._operations))
        last_error: FileOperationError | None = None
        for operation in self._operations:
            if operation.state not in (PreparedState.COPY, PreparedState.MOVE):
                continue
            target = operation.target_path
            try:
                target.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                LOGGER.warning("Failed to remove %s: %s", target, exc)
                last_error = from_os_error(exc, target, action="remove")
                continue
            _narrate(options, "  Removed target file: %s", target)

        if last_error is not None:
            _narrate(options, "Rollback completed with errors.")
            raise last_error
        _narrate(options, "Rollback completed successfully.")

    def cleanup(self) -> None:
        """Release prepared operations and the target directory reference."""
        self._operations.clear()
        self._target_directory = None

    def _event_for(self, operation: PreparedOperation) -> OperationEvent:
        destination: str | None = None
        if operation.state in (PreparedState.COPY, PreparedState.MOVE):
            destination = str(operation.target_path)
        return OperationEvent(
            timestamp=datetime.now(timezone.utc),
            operation=operation.state.value,
            source=str(operation.source_file.path),
            destination=destination,
            method=operation.method,
        )


__all__ = [
    "NAME_CAPACITY",
    "FileTransaction",
    "copy_file",
    "create_directory",
    "link_or_copy_file",
]
