from __future__ import annotations

from enum import Enum
from typing import Optional


# PUBLIC_INTERFACE
class ErrorKind(str, Enum):
    """Machine-readable error kinds returned as the `error` field of error responses."""

    INVALID_TITLE = "invalid_title"
    INVALID_DESCRIPTION = "invalid_description"
    INVALID_STATUS = "invalid_status"
    INVALID_JSON = "invalid_json"
    NOT_FOUND = "not_found"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    INTERNAL_ERROR = "internal_error"


class TaskError(Exception):
    """Base class for errors raised by validation and the task store."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    default_message = "Task operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class TaskValidationError(TaskError):
    """Input rejected before reaching the store."""


class InvalidTitleError(TaskValidationError):
    kind = ErrorKind.INVALID_TITLE
    default_message = "title must be between 1 and 140 characters"


class InvalidDescriptionError(TaskValidationError):
    kind = ErrorKind.INVALID_DESCRIPTION
    default_message = "description must be at most 1000 characters"


class InvalidStatusError(TaskValidationError):
    kind = ErrorKind.INVALID_STATUS
    default_message = "status must be one of: todo, doing, done"


class TaskNotFoundError(TaskError):
    kind = ErrorKind.NOT_FOUND
    default_message = "Task not found"

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class SnapshotLoadError(Exception):
    """The snapshot file exists but cannot be turned into a task set."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"cannot load tasks from {path}: {reason}")
        self.path = path
        self.reason = reason
