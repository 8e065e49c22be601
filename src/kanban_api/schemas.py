from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .models import TaskStatus


# PUBLIC_INTERFACE
class TaskCreate(BaseModel):
    """
    Schema for creating a new task.

    New tasks always land at the bottom of the "todo" column, so there is no
    status field. Bounds on title/description are checked by
    `validation.validate_new` so that violations surface as 400 with a
    specific error kind.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Write release notes",
                "description": "Cover the reorder endpoint",
            }
        }
    )

    title: str = Field(default="", description="Task title, 1..140 characters after trimming")
    description: Optional[str] = Field(default=None, description="Optional description, up to 1000 characters")


# PUBLIC_INTERFACE
class TaskUpdate(BaseModel):
    """
    Schema for updating an existing task.
    All fields are optional; only fields present in the request body are applied.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Write release notes for 1.2",
                "status": "doing",
            }
        }
    )

    title: Optional[str] = Field(default=None, description="Task title, 1..140 characters after trimming")
    description: Optional[str] = Field(default=None, description="Description; explicit null clears it")
    status: Optional[str] = Field(default=None, description="Target column: todo, doing or done")


# PUBLIC_INTERFACE
class TaskReorder(BaseModel):
    """
    Schema for moving a task to a position within a column.
    """

    model_config = ConfigDict(json_schema_extra={"example": {"status": "doing", "index": 0}})

    status: str = Field(..., description="Destination column: todo, doing or done")
    index: int = Field(default=0, description="0-based position in the destination column; clamped to the column size")


# PUBLIC_INTERFACE
class TaskOut(BaseModel):
    """
    Task as returned by the API and as stored in the snapshot file.

    Serialized with camelCase keys (createdAt/updatedAt); snake_case names are
    accepted on input so store entities can be passed straight in.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "id": "0f8e4c2a9b7d4e1f8a6c3b2d1e0f9a8b",
                "title": "Write release notes",
                "description": "Cover the reorder endpoint",
                "status": "todo",
                "order": 1,
                "createdAt": "2025-01-25T10:15:30.123456Z",
                "updatedAt": "2025-01-26T09:00:00.000001Z",
            }
        },
    )

    id: str = Field(..., min_length=1, description="Unique identifier of the task")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(default=None, description="Optional description")
    status: TaskStatus = Field(..., description="Column the task is in")
    order: int = Field(default=0, ge=0, description="1-based position inside the column")
    created_at: datetime = Field(..., alias="createdAt", description="Creation timestamp")
    updated_at: datetime = Field(..., alias="updatedAt", description="Last update timestamp")

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """
        Timestamps without an offset are taken as UTC so they compare with the store's clock.
        """
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


TaskListAdapter = TypeAdapter(List[TaskOut])
