from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Tuple, TypedDict

TaskStatus = Literal["todo", "doing", "done"]

# Board columns, left to right.
TASK_STATUSES: Tuple[str, ...] = ("todo", "doing", "done")

TITLE_MAX_LENGTH = 140
DESCRIPTION_MAX_LENGTH = 1000


# PUBLIC_INTERFACE
class TaskEntity(TypedDict):
    """
    Domain record for a task card as held by the store.

    Fields:
    - id: Opaque unique identifier, immutable after creation
    - title: Trimmed title (1..140 chars)
    - description: Optional description (<= 1000 chars)
    - status: Column the task is in (todo, doing, done)
    - order: 1-based position inside its column
    - created_at: Creation timestamp (UTC), never mutated
    - updated_at: Last mutation timestamp (UTC), reindex touches included
    """

    id: str
    title: str
    description: Optional[str]
    status: str
    order: int
    created_at: datetime
    updated_at: datetime
