# src/taskgraph/tasks/task_models.py

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any


def now_ms() -> float:
    """Wall-clock time in epoch milliseconds (the unit stored on every record)."""
    return time.time() * 1000.0


def new_id(prefix: str) -> str:
    return f"{prefix}_{int(now_ms())}_{uuid.uuid4().hex[:9]}"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    AWAITING_APPROVAL = "awaiting_approval"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except ValueError:
            return cls.MEDIUM


class NoteType(StrEnum):
    USER = "user"
    SYSTEM = "system"
    AI = "ai"


TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED})


@dataclass(slots=True)
class Note:
    id: str
    content: str
    type: NoteType
    timestamp: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "type": self.type.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Note:
        try:
            note_type = NoteType(raw.get("type") or "user")
        except ValueError:
            note_type = NoteType.SYSTEM
        return cls(
            id=str(raw.get("id") or new_id("note")),
            content=str(raw.get("content") or ""),
            type=note_type,
            timestamp=float(raw.get("timestamp") or 0.0),
        )


@dataclass(slots=True)
class Task:
    id: str
    list_id: str
    title: str
    status: TaskStatus
    priority: TaskPriority
    created_time: float
    updated_time: float

    description: str = ""
    confidence: float = 1.0
    dependencies: list[str] = field(default_factory=list)
    parent_id: str | None = None
    subtasks: list[str] = field(default_factory=list)

    start_time: float | None = None
    completed_time: float | None = None
    due_date: float | None = None
    estimated_time: float | None = None
    actual_time: float | None = None

    tags: list[str] = field(default_factory=list)
    notes: list[Note] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Camel-cased record, the shape used by snapshots and JSON export."""
        return {
            "id": self.id,
            "listId": self.list_id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "confidence": self.confidence,
            "dependencies": list(self.dependencies),
            "subtasks": list(self.subtasks),
            "parentId": self.parent_id,
            "createdTime": self.created_time,
            "updatedTime": self.updated_time,
            "startTime": self.start_time,
            "completedTime": self.completed_time,
            "dueDate": self.due_date,
            "estimatedTime": self.estimated_time,
            "actualTime": self.actual_time,
            "tags": list(self.tags),
            "notes": [n.to_dict() for n in self.notes],
            "results": dict(self.results),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        """
        Rebuild a task from a stored record.

        Older snapshots may lack tags/notes/dueDate/estimatedTime/actualTime;
        those are backfilled with defaults.
        """
        created = float(raw.get("createdTime") or 0.0)
        return cls(
            id=str(raw["id"]),
            list_id=str(raw.get("listId") or "default"),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            status=TaskStatus.from_db(raw.get("status")),
            priority=TaskPriority.from_db(raw.get("priority")),
            confidence=clamp01(raw.get("confidence", 1.0)),
            dependencies=[str(d) for d in raw.get("dependencies") or []],
            subtasks=[str(s) for s in raw.get("subtasks") or []],
            parent_id=raw.get("parentId") or None,
            created_time=created,
            updated_time=float(raw.get("updatedTime") or created),
            start_time=opt_float(raw.get("startTime")),
            completed_time=opt_float(raw.get("completedTime")),
            due_date=opt_float(raw.get("dueDate")),
            estimated_time=opt_float(raw.get("estimatedTime")),
            actual_time=opt_float(raw.get("actualTime")),
            tags=dedupe_tags(raw.get("tags") or []),
            notes=[Note.from_dict(n) for n in raw.get("notes") or [] if isinstance(n, dict)],
            results=dict(raw.get("results") or {}),
        )


@dataclass(slots=True)
class TaskList:
    id: str
    name: str
    created_time: float
    updated_time: float
    description: str = ""
    color: str = "#3498db"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "createdTime": self.created_time,
            "updatedTime": self.updated_time,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TaskList:
        created = float(raw.get("createdTime") or 0.0)
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or raw["id"]),
            description=str(raw.get("description") or ""),
            color=str(raw.get("color") or "#3498db"),
            created_time=created,
            updated_time=float(raw.get("updatedTime") or created),
        )


@dataclass(slots=True, frozen=True)
class SubtaskTemplate:
    """One step proposed by a planner for a goal."""

    title: str
    description: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    confidence: float = 0.9


def dedupe_tags(tags: Any) -> list[str]:
    out: list[str] = []
    for t in tags or []:
        s = str(t).strip()
        if s and s not in out:
            out.append(s)
    return out


def clamp01(x: Any) -> float:
    try:
        return float(max(0.0, min(1.0, float(x))))
    except (TypeError, ValueError):
        return 1.0


def opt_float(x: Any) -> float | None:
    if x is None or x == "":
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None
