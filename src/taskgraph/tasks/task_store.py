# src/taskgraph/tasks/task_store.py

from __future__ import annotations

import contextlib
import copy
import logging
import threading
from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from ..core.events import NotificationBus, TaskEvent
from ..core.ports import StorageGateway
from ..errors import NotFoundError, ValidationError
from .task_models import (
    Note,
    NoteType,
    Task,
    TaskList,
    TaskPriority,
    TaskStatus,
    clamp01,
    dedupe_tags,
    new_id,
    now_ms,
    opt_float,
)
from .task_scheduler import select_next_task
from .task_status import apply_status_change

logger = logging.getLogger(__name__)

DEFAULT_LIST_ID = "default"
DEFAULT_STORAGE_KEY = "taskManager_data"

# Patch keys accepted by update_task(); camelCase aliases map onto attributes.
_PATCH_ALIASES = {
    "listId": "list_id",
    "dueDate": "due_date",
    "estimatedTime": "estimated_time",
    "actualTime": "actual_time",
}
_PATCHABLE = frozenset(
    {
        "title",
        "description",
        "status",
        "priority",
        "confidence",
        "dependencies",
        "list_id",
        "due_date",
        "estimated_time",
        "actual_time",
        "tags",
        "results",
    }
)
_CREATE_ONLY = frozenset({"parent_id", "notes"})
_CREATE_ALIASES = {**_PATCH_ALIASES, "parentId": "parent_id"}


class TaskGraph:
    """
    In-memory task graph: tasks, lists, parent/child and dependency edges.

    Every mutation:
    - runs under one re-entrant lock (single writer),
    - routes status changes through apply_status_change(),
    - saves the whole snapshot through the storage gateway (errors logged, not raised),
    - announces an event on the notification bus.

    batch() groups mutations into one save; a failing batch is rolled back whole.

    Reads return copies, so callers never hold live records.
    """

    def __init__(
        self,
        storage: StorageGateway,
        bus: NotificationBus | None = None,
        *,
        storage_key: str = DEFAULT_STORAGE_KEY,
        default_list_name: str = "My Tasks",
        default_list_color: str = "#3498db",
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self._storage = storage
        self.bus = bus or NotificationBus()
        self._storage_key = storage_key
        self._default_list_name = default_list_name
        self._default_list_color = default_list_color
        self._clock = clock

        self._lock = threading.RLock()
        self._tasks: dict[str, Task] = {}
        self._lists: dict[str, TaskList] = {}
        self._current_list_id = DEFAULT_LIST_ID
        self._active_task_id: str | None = None

        self._batch_depth = 0
        self._dirty = False
        self._pending_events: list[tuple[TaskEvent | str, Any]] = []
        self._initialized = False

    # ---- lifecycle ----

    def init(self) -> None:
        """Load the persisted snapshot (if any) and seed the default list. Idempotent."""
        with self._lock:
            if self._initialized:
                return
            self._load()

            if DEFAULT_LIST_ID not in self._lists:
                now = self._clock()
                self._lists[DEFAULT_LIST_ID] = TaskList(
                    id=DEFAULT_LIST_ID,
                    name=self._default_list_name,
                    color=self._default_list_color,
                    created_time=now,
                    updated_time=now,
                )
            if self._current_list_id not in self._lists:
                self._current_list_id = DEFAULT_LIST_ID

            self._initialized = True
            logger.info(
                "TaskGraph ready tasks=%s lists=%s current_list=%s",
                len(self._tasks),
                len(self._lists),
                self._current_list_id,
            )

    @contextlib.contextmanager
    def batch(self) -> Iterator[TaskGraph]:
        """
        Group several mutations into one all-or-nothing operation.

        The lock is held for the whole block. Events are queued and the snapshot is
        saved once when the outermost block exits cleanly. If the block raises, the
        graph is restored to its state on entry and the queued events are dropped.
        """
        with self._lock:
            outermost = self._batch_depth == 0
            if outermost:
                saved = copy.deepcopy((self._tasks, self._lists, self._current_list_id, self._active_task_id))
                self._pending_events = []
            self._batch_depth += 1
            try:
                yield self
            except BaseException:
                if outermost:
                    self._tasks, self._lists, self._current_list_id, self._active_task_id = saved
                    self._dirty = False
                    dropped = len(self._pending_events)
                    self._pending_events = []
                    logger.warning("Batch rolled back (%s queued events dropped)", dropped)
                raise
            finally:
                self._batch_depth -= 1

            if outermost:
                if self._dirty:
                    self._persist()
                events, self._pending_events = self._pending_events, []
                for event, payload in events:
                    self.bus.publish(event, payload)

    def announce(self, event: TaskEvent | str, payload: Any) -> None:
        if self._batch_depth > 0:
            self._pending_events.append((event, payload))
            return
        self.bus.publish(event, payload)

    # ---- storage ----

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "tasks": [[tid, t.to_dict()] for tid, t in self._tasks.items()],
                "lists": [[lid, lst.to_dict()] for lid, lst in self._lists.items()],
                "currentListId": self._current_list_id,
            }

    def _persist(self) -> None:
        if self._batch_depth > 0:
            self._dirty = True
            return
        self._dirty = False
        try:
            self._storage.save(self._storage_key, self.snapshot())
        except Exception:
            logger.exception("TaskGraph save failed key=%s", self._storage_key)

    def _load(self) -> None:
        try:
            data = self._storage.load(self._storage_key)
        except Exception:
            logger.exception("TaskGraph load failed key=%s", self._storage_key)
            return

        if not data:
            logger.info("TaskGraph: no stored snapshot under key=%s (first run)", self._storage_key)
            return
        if not isinstance(data, Mapping):
            logger.warning("TaskGraph: ignoring malformed snapshot type=%s", type(data).__name__)
            return

        for entry in data.get("tasks") or []:
            try:
                _, raw = entry
                task = Task.from_dict(raw)
            except Exception:
                logger.warning("TaskGraph: skipping malformed task record %r", entry, exc_info=True)
                continue
            self._tasks[task.id] = task

        for entry in data.get("lists") or []:
            try:
                _, raw = entry
                lst = TaskList.from_dict(raw)
            except Exception:
                logger.warning("TaskGraph: skipping malformed list record %r", entry, exc_info=True)
                continue
            self._lists[lst.id] = lst

        current = data.get("currentListId")
        if current:
            self._current_list_id = str(current)

        # The most recently started in-progress task is the active one.
        running = [t for t in self._tasks.values() if t.status == TaskStatus.IN_PROGRESS]
        if running:
            self._active_task_id = max(running, key=lambda t: t.start_time or 0.0).id

        logger.info("TaskGraph loaded %s tasks and %s lists.", len(self._tasks), len(self._lists))

    # ---- read API ----

    @property
    def current_list_id(self) -> str:
        return self._current_list_id

    @property
    def active_task_id(self) -> str | None:
        return self._active_task_id

    def get_task(self, task_id: str) -> Task | None:
        with self._lock:
            task = self._tasks.get(task_id)
            return copy.deepcopy(task) if task is not None else None

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return task

    def get_all_tasks(self, list_id: str | None = None) -> list[Task]:
        with self._lock:
            target = list_id or self._current_list_id
            return [copy.deepcopy(t) for t in self._tasks.values() if t.list_id == target]

    def iter_all_tasks(self) -> list[Task]:
        """Every task across all lists, in creation order."""
        with self._lock:
            return [copy.deepcopy(t) for t in self._tasks.values()]

    def get_all_lists(self) -> list[TaskList]:
        with self._lock:
            return [copy.deepcopy(lst) for lst in self._lists.values()]

    def get_subtasks(self, task_id: str) -> list[Task]:
        with self._lock:
            task = self._require(task_id)
            return [copy.deepcopy(self._tasks[sid]) for sid in task.subtasks if sid in self._tasks]

    def get_progress(self, task_id: str) -> int:
        """Percentage (0-100) of a goal's direct subtasks that are completed."""
        subtasks = self.get_subtasks(task_id)
        if not subtasks:
            return 0
        done = sum(1 for t in subtasks if t.status == TaskStatus.COMPLETED)
        return round(done * 100 / len(subtasks))

    def get_stats(self, list_id: str | None = None) -> dict[str, int]:
        tasks = self.get_all_tasks(list_id)
        now = self._clock()

        stats = {"total": len(tasks)}
        for status in TaskStatus:
            stats[status.value] = sum(1 for t in tasks if t.status == status)
        stats["overdue"] = sum(
            1
            for t in tasks
            if t.due_date is not None and t.due_date < now and t.status != TaskStatus.COMPLETED
        )
        return stats

    def get_next_task(self) -> Task | None:
        with self._lock:
            task = select_next_task(self._tasks.values(), self._tasks.get)
            return copy.deepcopy(task) if task is not None else None

    # ---- task mutations ----

    def create_task(self, data: Mapping[str, Any] | None = None, /, **fields: Any) -> Task:
        """
        Create a task (a goal or a subtask).

        Accepts a mapping and/or keyword fields (snake_case or camelCase keys).
        Raises ValidationError for a blank title or bad enum values and
        NotFoundError for an unknown list or parent.
        """
        raw = _normalize_keys({**(data or {}), **fields}, _CREATE_ALIASES)
        unknown = set(raw) - _PATCHABLE - _CREATE_ONLY - {"title"}
        if unknown:
            raise ValidationError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        title = _clean_title(raw.get("title"))
        values = _validate_fields({k: v for k, v in raw.items() if k in _PATCHABLE and k != "title"})
        notes = _coerce_notes(raw.get("notes"))

        with self._lock:
            list_id = values.pop("list_id", None) or self._current_list_id
            if list_id not in self._lists:
                raise NotFoundError(f"List not found: {list_id}")

            parent_id = raw.get("parent_id") or None
            if parent_id is not None and parent_id not in self._tasks:
                raise NotFoundError(f"Parent task not found: {parent_id}")

            now = self._clock()
            task = Task(
                id=new_id("task"),
                list_id=list_id,
                title=title,
                status=values.pop("status", TaskStatus.PENDING),
                priority=values.pop("priority", TaskPriority.MEDIUM),
                created_time=now,
                updated_time=now,
                parent_id=parent_id,
                notes=notes,
            )
            for name, value in values.items():
                setattr(task, name, value)

            self._active_task_id = apply_status_change(
                task, None, active_task_id=self._active_task_id, now=now
            )

            self._tasks[task.id] = task
            if parent_id is not None:
                self._tasks[parent_id].subtasks.append(task.id)

            self._persist()
            created = copy.deepcopy(task)
            self.announce(TaskEvent.TASK_CREATED, created)

        logger.info('Created: "%s" id=%s list=%s', created.title, created.id, created.list_id)
        return created

    def update_task(self, task_id: str, patch: Mapping[str, Any] | None = None, /, **fields: Any) -> Task:
        values = self._validate_patch({**(patch or {}), **fields})
        with self._lock:
            task = self._require(task_id)
            self._apply_patch(task, values)
            self._persist()
            updated = copy.deepcopy(task)
            self.announce(TaskEvent.TASK_UPDATED, updated)

        logger.debug("Updated: id=%s fields=%s", task_id, sorted(values))
        return updated

    def bulk_update_tasks(self, task_ids: Iterable[str], patch: Mapping[str, Any]) -> list[Task]:
        """Apply one patch to every id that exists; unknown ids are skipped."""
        values = self._validate_patch(patch)
        with self._lock:
            updated: list[Task] = []
            for tid in dict.fromkeys(task_ids):
                task = self._tasks.get(tid)
                if task is None:
                    continue
                self._apply_patch(task, values)
                updated.append(copy.deepcopy(task))

            self._persist()
            self.announce(TaskEvent.TASKS_UPDATED, updated)

        logger.info("Bulk updated %s tasks", len(updated))
        return updated

    def delete_task(self, task_id: str) -> Task:
        """Delete a task and all of its descendants. Returns the deleted task."""
        with self._lock:
            self._require(task_id)
            removed = self._delete_tree(task_id)
            self._persist()
            root = removed[-1]
            self.announce(TaskEvent.TASK_DELETED, root)

        logger.info('Deleted: "%s" (+%s descendants)', root.title, len(removed) - 1)
        return root

    def bulk_delete_tasks(self, task_ids: Iterable[str]) -> list[Task]:
        """Delete every id that still exists (with descendants); unknown ids are skipped."""
        with self._lock:
            deleted: list[Task] = []
            for tid in dict.fromkeys(task_ids):
                if tid not in self._tasks:
                    continue
                deleted.append(self._delete_tree(tid)[-1])

            self._persist()
            self.announce(TaskEvent.TASKS_DELETED, deleted)

        logger.info("Bulk deleted %s tasks", len(deleted))
        return deleted

    def add_note(self, task_id: str, content: str, note_type: NoteType | str = NoteType.USER) -> Note:
        text = (content or "").strip()
        if not text:
            raise ValidationError("Note content cannot be empty")
        try:
            kind = NoteType(note_type)
        except ValueError as e:
            raise ValidationError(f"Unsupported note type: {note_type}") from e

        with self._lock:
            task = self._require(task_id)
            now = self._clock()
            note = Note(id=new_id("note"), content=text, type=kind, timestamp=now)
            task.notes.append(note)
            task.updated_time = now

            self._persist()
            self.announce(TaskEvent.TASK_UPDATED, copy.deepcopy(task))

        logger.debug("Note added task=%s type=%s", task_id, kind.value)
        return copy.deepcopy(note)

    # ---- list mutations ----

    def create_list(self, data: Mapping[str, Any] | None = None, /, **fields: Any) -> TaskList:
        raw = {**(data or {}), **fields}
        name = str(raw.get("name") or "").strip()
        if not name:
            raise ValidationError("List name cannot be empty")

        with self._lock:
            now = self._clock()
            lst = TaskList(
                id=new_id("list"),
                name=name,
                description=str(raw.get("description") or "").strip(),
                color=str(raw.get("color") or self._default_list_color),
                created_time=now,
                updated_time=now,
            )
            self._lists[lst.id] = lst
            self._persist()
            created = copy.deepcopy(lst)
            self.announce(TaskEvent.LIST_CREATED, created)

        logger.info('Created list: "%s" id=%s', created.name, created.id)
        return created

    def set_current_list(self, list_id: str) -> None:
        with self._lock:
            if list_id not in self._lists:
                raise NotFoundError(f"List not found: {list_id}")
            self._current_list_id = list_id
            self._persist()
            self.announce(TaskEvent.CURRENT_LIST_CHANGED, {"listId": list_id})

        logger.info("Switched to list: %s", list_id)

    # ---- internals (call with the lock held) ----

    def _require(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return task

    def _validate_patch(self, patch: Mapping[str, Any]) -> dict[str, Any]:
        raw = _normalize_keys(dict(patch or {}), _PATCH_ALIASES)
        unknown = set(raw) - _PATCHABLE
        if unknown:
            raise ValidationError(f"Fields cannot be patched: {', '.join(sorted(unknown))}")
        values = _validate_fields(raw)

        if "list_id" in values:
            list_id = values["list_id"]
            if list_id is None:
                raise ValidationError("list_id cannot be empty")
            with self._lock:
                if list_id not in self._lists:
                    raise NotFoundError(f"List not found: {list_id}")
        return values

    def _apply_patch(self, task: Task, values: Mapping[str, Any]) -> None:
        old_status = task.status
        for name, value in values.items():
            setattr(task, name, copy.deepcopy(value))

        now = self._clock()
        task.updated_time = now
        if task.status != old_status:
            self._active_task_id = apply_status_change(
                task, old_status, active_task_id=self._active_task_id, now=now
            )

    def _delete_tree(self, root_id: str) -> list[Task]:
        """
        Remove root_id and its descendants, children before parents.

        Uses an explicit stack so pathological depths cannot overflow the interpreter.
        Returns removed tasks with the root last.
        """
        order: list[str] = []
        seen: set[str] = set()
        stack = [root_id]
        while stack:
            tid = stack.pop()
            if tid in seen or tid not in self._tasks:
                continue
            seen.add(tid)
            order.append(tid)
            stack.extend(reversed(self._tasks[tid].subtasks))

        root = self._tasks[root_id]
        if root.parent_id is not None and root.parent_id in self._tasks:
            parent = self._tasks[root.parent_id]
            parent.subtasks = [sid for sid in parent.subtasks if sid != root_id]

        removed: list[Task] = []
        for tid in reversed(order):
            task = self._tasks.pop(tid)
            if self._active_task_id == tid:
                self._active_task_id = None
            removed.append(task)
        return removed


def _normalize_keys(raw: Mapping[str, Any], aliases: Mapping[str, str]) -> dict[str, Any]:
    return {aliases.get(k, k): v for k, v in raw.items()}


def _clean_title(raw: Any) -> str:
    title = str(raw or "").strip()
    if not title:
        raise ValidationError("Task title cannot be empty")
    return title


def _coerce_notes(raw: Any) -> list[Note]:
    if raw is None:
        return []
    if not isinstance(raw, (list, tuple)):
        raise ValidationError(f"notes must be a list, got {type(raw).__name__}")
    notes: list[Note] = []
    for n in raw:
        if isinstance(n, Note):
            notes.append(n)
        elif isinstance(n, Mapping):
            notes.append(Note.from_dict(dict(n)))
        else:
            raise ValidationError(f"Invalid note: {n!r}")
    return notes


def _validate_fields(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce patchable fields to their stored types; raise ValidationError on bad values."""
    out: dict[str, Any] = {}
    for name, value in raw.items():
        if name == "title":
            out[name] = _clean_title(value)
        elif name == "description":
            out[name] = str(value or "").strip()
        elif name == "status":
            try:
                out[name] = TaskStatus(value)
            except ValueError as e:
                raise ValidationError(f"Invalid task status: {value}") from e
        elif name == "priority":
            try:
                out[name] = TaskPriority(value)
            except ValueError as e:
                raise ValidationError(f"Invalid task priority: {value}") from e
        elif name == "confidence":
            out[name] = clamp01(1.0 if value is None else value)
        elif name in ("dependencies", "tags"):
            if value is not None and not isinstance(value, (list, tuple, set, frozenset)):
                raise ValidationError(f"{name} must be a list, got {type(value).__name__}")
            if name == "tags":
                out[name] = dedupe_tags(value)
            else:
                out[name] = list(dict.fromkeys(str(d) for d in value or []))
        elif name == "results":
            if value is not None and not isinstance(value, Mapping):
                raise ValidationError(f"results must be an object, got {type(value).__name__}")
            out[name] = dict(value or {})
        elif name == "list_id":
            out[name] = str(value) if value else None
        else:
            out[name] = opt_float(value)
    return out
