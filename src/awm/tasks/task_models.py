# src/awm/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

HISTORY_CAP = 1000

# Sentinel task ids for history entries that are not about a task.
CHECKIN_TASK_ID = "checkin"
PULL_TASK_ID = "pull"


class TaskKind(StrEnum):
    PROJECT = "project"
    RECURRING = "recurring"
    DEFAULT = "default"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskKind:
        if not raw:
            return cls.DEFAULT
        try:
            return cls(raw)
        except ValueError:
            return cls.DEFAULT


class TaskStatus(StrEnum):
    """Task lifecycle status. Only ACTIVE tasks take part in overdue evaluation."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.ACTIVE
        try:
            return cls(raw)
        except ValueError:
            return cls.PAUSED


class Outcome(StrEnum):
    SUCCESS = "success"
    FAILURE = "failure"
    IN_PROGRESS = "in-progress"

    @classmethod
    def from_db(cls, raw: str | None) -> Outcome | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


@dataclass(slots=True)
class Task:
    id: str
    name: str
    kind: TaskKind
    owner: str
    status: TaskStatus

    last_update: int
    created_at: int

    helpers: list[str] = field(default_factory=list)
    instruction: str | None = None
    cadence: str | None = None  # recurring only: "5m", "1h", "daily"
    status_interval: str | None = None  # project only: "15m"
    last_outcome: str | None = None
    completed_at: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    # Optimistic-concurrency stamp; 0 means "never saved".
    version: int = 0


@dataclass(slots=True, frozen=True)
class DefaultMode:
    """Idle-mode descriptor: what an agent should do when nothing is due."""

    task_name: str
    instruction: str


@dataclass(slots=True)
class AgentConfig:
    agent_id: str
    default_mode: DefaultMode | None = None
    active_task_id: str | None = None
    recurring_task_ids: list[str] = field(default_factory=list)
    last_check_in: int | None = None
    idle_threshold: str | None = None
    version: int = 0


@dataclass(slots=True, frozen=True)
class StatusUpdate:
    task_id: str
    agent_id: str
    timestamp: int
    message: str
    outcome: Outcome | None = None


# ---- read models ----


@dataclass(slots=True, frozen=True)
class AgentContext:
    agent_id: str
    active_task: Task | None
    default_mode: DefaultMode | None
    overdue_recurring: list[Task]
    pending_status_check: list[Task]
    message: str


@dataclass(slots=True, frozen=True)
class WorkItem:
    id: str
    name: str
    instruction: str
    cadence: str | None
    overdue_mins: int


@dataclass(slots=True, frozen=True)
class WorkQueue:
    agent_id: str
    tasks: list[WorkItem]
    idle_task: DefaultMode | None
    message: str

    @property
    def has_work(self) -> bool:
        return bool(self.tasks) or self.idle_task is not None


@dataclass(slots=True, frozen=True)
class OverdueReport:
    """Fleet-wide overdue sets under the monitoring policy."""

    recurring: list[Task]
    status_checks: list[Task]

    def all_tasks(self) -> list[Task]:
        return [*self.recurring, *self.status_checks]


@dataclass(slots=True, frozen=True)
class IdleAgent:
    agent: AgentConfig
    idle_since: int
