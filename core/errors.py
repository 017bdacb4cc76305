"""Domain error taxonomy shared by use cases and storage collaborators."""

import logging
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Closed set of failure categories surfaced to callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STORAGE = "storage"


class DomainError(Exception):
    """Base class for every error raised on purpose by the core."""

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "kind": self.kind.value,
            "context": self.context,
        }


class InvalidInputError(DomainError):
    """Caller-supplied parameters violate a precondition."""

    kind = ErrorKind.VALIDATION


class NotFoundError(DomainError):
    """A referenced entity id does not resolve."""

    kind = ErrorKind.NOT_FOUND


class ConflictError(DomainError):
    """Operation is invalid for the entity's current state."""

    kind = ErrorKind.CONFLICT


class StorageError(DomainError):
    """The storage collaborator rejected an operation."""

    kind = ErrorKind.STORAGE


@asynccontextmanager
async def storage_guard(
    operation: str,
    log: Optional[logging.Logger] = None,
    **context: Any
):
    """
    Re-raise collaborator failures as StorageError.

    Domain errors pass through untouched. Anything else is logged with its
    traceback and replaced by a StorageError that does not carry the
    storage-specific message.

    Args:
        operation: Short name of the operation, used in the error message
        log: Logger receiving the failure (defaults to this module's logger)
        **context: Structured context attached to the raised error
    """
    log = log or logger
    try:
        yield
    except DomainError:
        raise
    except Exception as e:
        log.exception(
            "Storage failure during %s",
            operation,
            extra={"operation": operation, **context}
        )
        raise StorageError(f"Failed to {operation}", operation=operation, **context) from e
