"""Error taxonomy for index and transaction operations."""

from __future__ import annotations

import errno
from enum import Enum
from pathlib import Path


class FileErrorKind(str, Enum):
    """Category of a failed file operation."""

    INVALID_VALUE = "invalid_value"
    NOT_FOUND = "not_found"
    INVALID_TAG = "invalid_tag"
    ACCESS_DENIED = "access_denied"
    INVALID_OPERATION = "invalid_operation"
    TOO_MANY_TAGS = "too_many_tags"
    ALREADY_EXISTS = "already_exists"


_DESCRIPTIONS = {
    FileErrorKind.INVALID_VALUE: "Invalid value",
    FileErrorKind.NOT_FOUND: "No such file or directory",
    FileErrorKind.INVALID_TAG: "Tag contains invalid characters",
    FileErrorKind.ACCESS_DENIED: "Access denied",
    FileErrorKind.INVALID_OPERATION: "Invalid operation",
    FileErrorKind.TOO_MANY_TAGS: "Too many tags",
    FileErrorKind.ALREADY_EXISTS: "File already exists",
}


def describe_error(kind: FileErrorKind) -> str:
    """Return a human-readable description for an error kind."""
    return _DESCRIPTIONS.get(kind, "Unknown error")


class FileOperationError(Exception):
    """Base exception for file index and transaction failures.

    Attributes:
        kind: Category of the failure.
        path: Filesystem path the failure relates to, when known.
    """

    kind: FileErrorKind = FileErrorKind.INVALID_VALUE

    def __init__(self, message: str | None = None, *, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else None
        if message is None:
            message = describe_error(self.kind)
            if self.path is not None:
                message = f"{message}: {self.path}"
        super().__init__(message)


class InvalidValueError(FileOperationError):
    """Raised for bad paths, empty tags, or malformed arguments."""

    kind = FileErrorKind.INVALID_VALUE


class NotFoundError(InvalidValueError):
    """Raised when a source path does not exist."""

    kind = FileErrorKind.NOT_FOUND


class InvalidTagError(InvalidValueError):
    """Raised when a tag contains characters outside ``[a-z-]``."""

    kind = FileErrorKind.INVALID_TAG


class AccessDeniedError(FileOperationError):
    """Raised when a file cannot be read, written, or removed."""

    kind = FileErrorKind.ACCESS_DENIED


class InvalidOperationError(FileOperationError):
    """Raised when an operation is not applicable in the current state."""

    kind = FileErrorKind.INVALID_OPERATION


class TooManyTagsError(InvalidOperationError):
    """Raised when a file would exceed the tag limit."""

    kind = FileErrorKind.TOO_MANY_TAGS


class AlreadyExistsError(FileOperationError):
    """Raised when a target collides with an existing file and overwrite is off."""

    kind = FileErrorKind.ALREADY_EXISTS


def from_os_error(exc: OSError, path: Path | str, *, action: str) -> FileOperationError:
    """Translate an ``OSError`` into the matching ``FileOperationError``.

    Args:
        exc: Error raised by the filesystem call.
        path: Path the call operated on.
        action: Short verb describing the failed call, used in the message.

    Returns:
        FileOperationError: Exception instance ready to be raised.
    """
    reason = exc.strerror or str(exc)
    message = f"Failed to {action} {path}: {reason}"
    if exc.errno in (errno.ENOENT, errno.ENOTDIR):
        return NotFoundError(message, path=path)
    if exc.errno == errno.EEXIST:
        return AlreadyExistsError(message, path=path)
    if exc.errno in (errno.EINVAL, errno.ENAMETOOLONG, errno.EISDIR):
        return InvalidValueError(message, path=path)
    return AccessDeniedError(message, path=path)


__all__ = [
    "FileErrorKind",
    "FileOperationError",
    "InvalidValueError",
    "NotFoundError",
    "InvalidTagError",
    "AccessDeniedError",
    "InvalidOperationError",
    "TooManyTagsError",
    "AlreadyExistsError",
    "describe_error",
    "from_os_error",
]
