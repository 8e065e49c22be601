"""
Field checks for task input.

These run in the HTTP layer before the store is touched. They are pure: each
returns a normalized copy of its input (title trimmed) or raises a
`TaskValidationError` subclass naming the offending field.
"""
from __future__ import annotations

from typing import Optional

from .errors import InvalidDescriptionError, InvalidStatusError, InvalidTitleError
from .models import DESCRIPTION_MAX_LENGTH, TASK_STATUSES, TITLE_MAX_LENGTH
from .schemas import TaskCreate, TaskUpdate


def _check_title(value: str) -> str:
    s = value.strip()
    if not (1 <= len(s) <= TITLE_MAX_LENGTH):
        raise InvalidTitleError()
    return s


def _check_description(value: Optional[str]) -> None:
    if value is not None and len(value) > DESCRIPTION_MAX_LENGTH:
        raise InvalidDescriptionError()


# PUBLIC_INTERFACE
def validate_status(value: Optional[str]) -> str:
    """Return `value` if it names a board column, else raise InvalidStatusError."""
    if value not in TASK_STATUSES:
        raise InvalidStatusError()
    return value


# PUBLIC_INTERFACE
def validate_new(data: TaskCreate) -> TaskCreate:
    """
    Validate a create payload.

    Raises:
        InvalidTitleError: trimmed title empty or longer than 140 characters.
        InvalidDescriptionError: description longer than 1000 characters.
    """
    title = _check_title(data.title)
    _check_description(data.description)
    return data.model_copy(update={"title": title})


# PUBLIC_INTERFACE
def validate_update(data: TaskUpdate) -> TaskUpdate:
    """
    Validate a partial update payload. Absent fields are not checked.

    Raises:
        InvalidTitleError, InvalidDescriptionError: same bounds as validate_new.
        InvalidStatusError: status present but not todo/doing/done.
    """
    changes = {}
    if data.title is not None:
        changes["title"] = _check_title(data.title)
    _check_description(data.description)
    if data.status is not None:
        validate_status(data.status)
    return data.model_copy(update=changes) if changes else data
