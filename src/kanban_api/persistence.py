from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional, Union

from pydantic import ValidationError

from .errors import SnapshotLoadError
from .models import TaskEntity
from .repositories import InMemoryTaskStore, TaskRepository
from .schemas import TaskCreate, TaskListAdapter, TaskOut, TaskUpdate

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SEED_SOURCE = "<seed>"


def _validate_records(validate: Callable[[Any], List[TaskOut]], raw: Any, source: str) -> List[TaskEntity]:
    """Run `validate` over `raw` and reject duplicate ids; `source` names the input in errors."""
    try:
        records = validate(raw)
    except ValidationError as e:
        raise SnapshotLoadError(source, str(e)) from e

    tasks: List[TaskEntity] = []
    seen = set()
    for record in records:
        if record.id in seen:
            raise SnapshotLoadError(source, f"duplicate task id {record.id!r}")
        seen.add(record.id)
        tasks.append(record.model_dump())  # type: ignore[arg-type]
    return tasks


# PUBLIC_INTERFACE
def save_tasks(path: PathLike, tasks: Iterable[TaskEntity]) -> None:
    """
    Write `tasks` to `path` as a pretty-printed JSON array.

    The data goes to a fresh temp file in the target directory first; the temp
    file is closed, any existing target is removed and the temp file is renamed
    into place. A crash before the rename leaves the previous file intact.
    Removing before renaming is not atomic itself, so a crash between the two
    leaves no file at `path`.
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    records = [TaskOut(**t).model_dump(mode="json", by_alias=True) for t in tasks]

    fd, tmp_name = tempfile.mkstemp(prefix="tasks-", suffix=".json", dir=str(target.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(records, fh, indent=2, ensure_ascii=False)
            fh.write("\n")
        with contextlib.suppress(FileNotFoundError):
            os.remove(target)
        os.rename(tmp_name, target)
    except BaseException:
        with contextlib.suppress(OSError):
            os.remove(tmp_name)
        raise


# PUBLIC_INTERFACE
def load_tasks(path: PathLike) -> Optional[List[TaskEntity]]:
    """
    Read a snapshot written by `save_tasks`.

    Returns:
        The stored tasks, or None when the file does not exist.

    Raises:
        SnapshotLoadError: the file exists but is not a valid task list
        (bad JSON, wrong shape, unknown status, duplicate ids).
    """
    target = Path(path)
    try:
        raw = target.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise SnapshotLoadError(str(target), str(e)) from e

    return _validate_records(TaskListAdapter.validate_json, raw, str(target))


class PersistentTaskStore(TaskRepository):
    """
    Decorates a TaskRepository so each successful mutation rewrites the
    snapshot file with the full task list. Reads pass straight through.

    A failed write propagates to the caller; the in-memory change it followed
    is not rolled back.
    """

    def __init__(self, inner: TaskRepository, path: PathLike) -> None:
        self._inner = inner
        self._path = Path(path)
        self._write_lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _save_snapshot(self) -> None:
        # Runs after the inner mutation released its lock; list() takes the read side.
        # Snapshots are serialized so the file never goes back to an older listing.
        with self._write_lock:
            tasks = self._inner.list()
            try:
                save_tasks(self._path, tasks)
            except OSError:
                logger.exception("Snapshot write failed path=%s", self._path)
                raise
        logger.debug("Snapshot written path=%s tasks=%d", self._path, len(tasks))

    def list(self) -> List[TaskEntity]:
        return self._inner.list()

    def get(self, task_id: str) -> TaskEntity:
        return self._inner.get(task_id)

    def create(self, data: TaskCreate) -> TaskEntity:
        created = self._inner.create(data)
        self._save_snapshot()
        return created

    def update(self, task_id: str, data: TaskUpdate) -> TaskEntity:
        updated = self._inner.update(task_id, data)
        self._save_snapshot()
        return updated

    def delete(self, task_id: str) -> None:
        self._inner.delete(task_id)
        self._save_snapshot()

    def reorder(self, task_id: str, status: str, index: int) -> TaskEntity:
        moved = self._inner.reorder(task_id, status, index)
        self._save_snapshot()
        return moved


# PUBLIC_INTERFACE
def open_task_store(path: PathLike, seed: Optional[Iterable[TaskEntity]] = None) -> PersistentTaskStore:
    """
    Build the persisted store for `path`.

    Tasks come from the snapshot file when it exists, otherwise from `seed`
    (or nothing). A malformed file, or a seed with an unknown status or
    duplicate ids, raises SnapshotLoadError.
    """
    loaded = load_tasks(path)
    if loaded is None:
        loaded = _validate_records(TaskListAdapter.validate_python, list(seed or []), SEED_SOURCE)
        logger.info("No snapshot at %s; starting with %d seed tasks", path, len(loaded))
    else:
        logger.info("Loaded %d tasks from %s", len(loaded), path)
    return PersistentTaskStore(InMemoryTaskStore(loaded), path)
