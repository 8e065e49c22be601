from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status

from ..models import TaskEntity
from ..repositories import TaskRepository
from ..schemas import TaskCreate, TaskOut, TaskReorder, TaskUpdate
from ..validation import validate_new, validate_status, validate_update

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"],
)

_ERROR_RESPONSES = {
    400: {"description": "Invalid input; body is {error, message}"},
    404: {"description": "Task not found"},
}


def get_store(request: Request) -> TaskRepository:
    """
    Dependency returning the store instance bound to the running app.
    """
    return request.app.state.store


def _display_sorted(items: List[TaskEntity]) -> List[TaskEntity]:
    # order asc, most recently touched first among equal orders
    by_recency = sorted(items, key=lambda t: t["updated_at"], reverse=True)
    return sorted(by_recency, key=lambda t: t["order"])


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=List[TaskOut],
    summary="List Tasks",
    description=(
        "List all tasks sorted by column position (order asc, then most recently updated first).\n\n"
        "Query parameters:\n"
        "- status: optional column filter, one of todo, doing, done"
    ),
    responses={200: {"description": "Tasks retrieved"}, 400: _ERROR_RESPONSES[400]},
)
def list_tasks(
    status_filter: Optional[str] = Query(None, alias="status", description="Filter by column: todo, doing, done"),
    store: TaskRepository = Depends(get_store),
) -> List[TaskOut]:
    """
    List tasks, optionally restricted to one column.
    """
    items = store.list()
    if status_filter is not None and status_filter.strip() != "":
        wanted = validate_status(status_filter.strip())
        items = [t for t in items if t["status"] == wanted]
    return [TaskOut(**t) for t in _display_sorted(items)]


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    description="Get a single task by ID.",
    responses={200: {"description": "Task found"}, 404: _ERROR_RESPONSES[404]},
)
def get_task(task_id: str, store: TaskRepository = Depends(get_store)) -> TaskOut:
    """
    Retrieve a single task by its ID.
    """
    return TaskOut(**store.get(task_id))


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=TaskOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Task",
    description="Create a task at the bottom of the todo column. The Location header points at the new resource.",
    responses={201: {"description": "Task created"}, 400: _ERROR_RESPONSES[400]},
)
def create_task(payload: TaskCreate, response: Response, store: TaskRepository = Depends(get_store)) -> TaskOut:
    """
    Create a new task.
    """
    created = store.create(validate_new(payload))
    response.headers["Location"] = f"/tasks/{created['id']}"
    return TaskOut(**created)


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=TaskOut,
    summary="Update Task",
    description=(
        "Update any subset of title, description and status. "
        "A status change moves the task to the bottom of the new column."
    ),
    responses={200: {"description": "Task updated"}, **_ERROR_RESPONSES},
)
def update_task(task_id: str, payload: TaskUpdate, store: TaskRepository = Depends(get_store)) -> TaskOut:
    """
    Partial update of a task.
    """
    return TaskOut(**store.update(task_id, validate_update(payload)))


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete Task",
    description="Delete a task by ID and close the gap it leaves in its column.",
    responses={204: {"description": "Task deleted"}, 404: _ERROR_RESPONSES[404]},
)
def delete_task(task_id: str, store: TaskRepository = Depends(get_store)) -> None:
    """
    Delete a task. Returns 204 on success, 404 if not found.
    """
    store.delete(task_id)
    return None


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}/reorder",
    response_model=TaskOut,
    summary="Reorder Task",
    description=(
        "Move a task to a 0-based position in a column (same or different). "
        "Out-of-range indexes are clamped; affected columns are renumbered 1..N."
    ),
    responses={200: {"description": "Task moved"}, **_ERROR_RESPONSES},
)
def reorder_task(task_id: str, payload: TaskReorder, store: TaskRepository = Depends(get_store)) -> TaskOut:
    """
    Move a task within or across columns.
    """
    target = validate_status(payload.status)
    return TaskOut(**store.reorder(task_id, target, payload.index))
