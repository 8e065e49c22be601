from __future__ import annotations

import logging
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from .errors import TaskNotFoundError
from .models import TASK_STATUSES, TaskEntity
from .schemas import TaskCreate, TaskUpdate
from .validation import validate_status

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _generate_id() -> str:
    return uuid.uuid4().hex


def _working_key(t: TaskEntity):
    # Oldest touch first among equal orders; id keeps ties deterministic.
    return (t["order"], t["updated_at"], t["id"])


class ReadWriteLock:
    """
    Many concurrent readers or one writer.

    Not reentrant: a thread holding the write side must not ask for either
    side again.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._readers:
                self._cond.wait()
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """Abstract contract for the kanban task store."""

    @abstractmethod
    def list(self) -> List[TaskEntity]:
        """Return copies of all tasks. No ordering is guaranteed."""

    @abstractmethod
    def get(self, task_id: str) -> TaskEntity:
        """Return a task by id. Raise TaskNotFoundError if absent."""

    @abstractmethod
    def create(self, data: TaskCreate) -> TaskEntity:
        """Create a task at the bottom of the todo column and return it."""

    @abstractmethod
    def update(self, task_id: str, data: TaskUpdate) -> TaskEntity:
        """Apply the fields set on `data`. Raise TaskNotFoundError if absent."""

    @abstractmethod
    def delete(self, task_id: str) -> None:
        """Delete a task and close the gap in its column. Raise TaskNotFoundError if absent."""

    @abstractmethod
    def reorder(self, task_id: str, status: str, index: int) -> TaskEntity:
        """
        Move a task to `status` at 0-based position `index` (clamped) and
        reindex the affected columns. Raise TaskNotFoundError if absent.
        """


class InMemoryTaskStore(TaskRepository):
    """
    Thread-safe in-memory task store keeping a dense 1..N order per column.

    Every mutation runs under the exclusive side of a single store-wide lock,
    column reindexing included; reads take the shared side. Entities handed
    out are copies.
    """

    def __init__(
        self,
        seed: Optional[Iterable[TaskEntity]] = None,
        *,
        id_factory: Optional[Callable[[], str]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._lock = ReadWriteLock()
        self._items: Dict[str, TaskEntity] = {}
        self._new_id = id_factory or _generate_id
        self._now = clock or _utcnow

        for entity in seed or ():
            self._items[entity["id"]] = entity.copy()  # type: ignore[assignment]
        with self._lock.write():
            self._normalize_all_locked()
        logger.info("InMemoryTaskStore ready tasks=%d", len(self._items))

    # ---- locked helpers ----

    def _require_locked(self, task_id: str) -> TaskEntity:
        item = self._items.get(task_id)
        if item is None:
            raise TaskNotFoundError(task_id)
        return item

    def _column_locked(self, status: str, exclude_id: Optional[str] = None) -> List[TaskEntity]:
        items = [t for t in self._items.values() if t["status"] == status and t["id"] != exclude_id]
        return sorted(items, key=_working_key)

    def _max_order_locked(self, status: str) -> int:
        return max((t["order"] for t in self._items.values() if t["status"] == status), default=0)

    def _assign_orders_locked(self, status: str, items: List[TaskEntity], now: datetime) -> None:
        """Store `items` as column `status` in list order, touching every one."""
        for position, item in enumerate(items, start=1):
            updated = item.copy()
            updated["status"] = status
            updated["order"] = position
            updated["updated_at"] = now
            self._items[updated["id"]] = updated  # type: ignore[assignment]

    def _reindex_locked(self, status: str, now: datetime) -> None:
        self._assign_orders_locked(status, self._column_locked(status), now)

    def _normalize_all_locked(self) -> None:
        # Startup only: touch just the tasks whose position actually changes.
        now: Optional[datetime] = None
        for status in TASK_STATUSES:
            for position, item in enumerate(self._column_locked(status), start=1):
                if item["order"] != position:
                    now = now or self._now()
                    updated = item.copy()
                    updated["order"] = position
                    updated["updated_at"] = now
                    self._items[updated["id"]] = updated  # type: ignore[assignment]

    # ---- public API ----

    def list(self) -> List[TaskEntity]:
        with self._lock.read():
            return [t.copy() for t in self._items.values()]  # type: ignore[misc]

    def get(self, task_id: str) -> TaskEntity:
        with self._lock.read():
            return self._require_locked(task_id).copy()  # type: ignore[return-value]

    def create(self, data: TaskCreate) -> TaskEntity:
        with self._lock.write():
            now = self._now()
            status = "todo"
            entity: TaskEntity = {
                "id": self._new_id(),
                "title": data.title,
                "description": data.description,
                "status": status,
                "order": self._max_order_locked(status) + 1,
                "created_at": now,
                "updated_at": now,
            }
            self._items[entity["id"]] = entity
            return entity.copy()  # type: ignore[return-value]

    def update(self, task_id: str, data: TaskUpdate) -> TaskEntity:
        if data.status is not None:
            validate_status(data.status)
        with self._lock.write():
            existing = self._require_locked(task_id)

            # Update only provided fields
            updated = existing.copy()
            if data.title is not None:
                updated["title"] = data.title
            if "description" in data.model_fields_set:
                updated["description"] = data.description
            if data.status is not None and data.status != existing["status"]:
                # Bottom of the new column; the old column keeps its gap until reindexed.
                updated["status"] = data.status
                updated["order"] = self._max_order_locked(data.status) + 1
            updated["updated_at"] = self._now()

            self._items[task_id] = updated  # type: ignore[assignment]
            return updated.copy()  # type: ignore[return-value]

    def delete(self, task_id: str) -> None:
        with self._lock.write():
            removed = self._require_locked(task_id)
            del self._items[task_id]
            self._reindex_locked(removed["status"], self._now())

    def reorder(self, task_id: str, status: str, index: int) -> TaskEntity:
        validate_status(status)
        with self._lock.write():
            moving = self._require_locked(task_id)
            now = self._now()
            source = moving["status"]

            column = self._column_locked(status, exclude_id=task_id)
            index = max(0, min(index, len(column)))
            column.insert(index, moving)

            if source != status:
                placed = moving.copy()
                placed["status"] = status
                self._items[task_id] = placed  # type: ignore[assignment]
                self._reindex_locked(source, now)
            self._assign_orders_locked(status, column, now)

            logger.debug("reordered task=%s %s->%s index=%d", task_id, source, status, index)
            return self._items[task_id].copy()  # type: ignore[return-value]
