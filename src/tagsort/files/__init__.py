"""File indexing, naming, and transactional relocation."""

from .errors import (
    AccessDeniedError,
    AlreadyExistsError,
    FileErrorKind,
    FileOperationError,
    InvalidOperationError,
    InvalidTagError,
    InvalidValueError,
    NotFoundError,
    TooManyTagsError,
    describe_error,
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
from .naming import generate_name, generate_name_bounded
from .tags import MAX_TAGS, is_valid_tag
from .transaction import FileTransaction

__all__ = [
    "AccessDeniedError",
    "AlreadyExistsError",
    "FileAction",
    "FileErrorKind",
    "FileIndex",
    "FileOperationError",
    "FileTransaction",
    "IndexedFile",
    "InvalidOperationError",
    "InvalidTagError",
    "InvalidValueError",
    "MAX_TAGS",
    "NotFoundError",
    "OperationEvent",
    "PreparedOperation",
    "PreparedState",
    "TooManyTagsError",
    "TransactionOptions",
    "describe_error",
    "generate_name",
    "generate_name_bounded",
    "is_valid_tag",
]
