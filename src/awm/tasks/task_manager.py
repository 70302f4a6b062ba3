# src/awm/tasks/task_manager.py

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Any

from ..config import WorkConfig
from ..core.durations import parse_duration, parse_duration_safe
from ..core.ports import StateStore
from .agent_context import build_agent_context
from .overdue import is_overdue_for_monitoring
from .task_models import (
    CHECKIN_TASK_ID,
    PULL_TASK_ID,
    AgentConfig,
    AgentContext,
    DefaultMode,
    IdleAgent,
    OverdueReport,
    Outcome,
    StatusUpdate,
    Task,
    TaskKind,
    TaskStatus,
    WorkQueue,
)
from .work_queue import build_work_queue

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def _ms_now() -> int:
    return int(time.time() * 1000)


def _new_task_id() -> str:
    return f"task_{uuid.uuid4().hex[:8]}"


class WorkManager:
    """
    Task and agent operations over a StateStore.

    Unknown ids return None instead of raising; callers decide whether absence is an
    error. Malformed duration literals passed in by a caller raise InvalidDuration.
    """

    def __init__(
        self,
        store: StateStore,
        config: WorkConfig | None = None,
        *,
        clock: Clock = _ms_now,
    ) -> None:
        self.store = store
        self.config = config or WorkConfig()
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    # ---- tasks ----

    def create_task(
        self,
        *,
        name: str,
        kind: TaskKind | str,
        owner: str,
        instruction: str | None = None,
        helpers: list[str] | None = None,
        cadence: str | None = None,
        status_interval: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        if not name or not name.strip():
            raise ValueError("name is required")
        if not owner or not owner.strip():
            raise ValueError("owner is required")
        kind = TaskKind(kind)

        if cadence is not None:
            parse_duration(cadence)
        if status_interval is None and kind == TaskKind.PROJECT:
            status_interval = self.config.default_status_interval
        if status_interval is not None:
            parse_duration(status_interval)

        now = self.now()
        task = self.store.save_task(
            Task(
                id=_new_task_id(),
                name=name.strip(),
                kind=kind,
                owner=owner.strip(),
                status=TaskStatus.ACTIVE,
                last_update=now,
                created_at=now,
                helpers=list(helpers or []),
                instruction=instruction,
                cadence=cadence,
                status_interval=status_interval,
                metadata=dict(metadata or {}),
            )
        )
        logger.info("Task created id=%s kind=%s owner=%s", task.id, kind.value, task.owner)

        if kind == TaskKind.PROJECT:
            self.set_active_task(task.owner, task.id)
        elif kind == TaskKind.RECURRING:
            self.add_recurring_task(task.owner, task.id)

        return task

    def _touch(self, task: Task, now: int) -> None:
        # last_update never moves backwards.
        task.last_update = max(task.last_update, now)

    def update_task_status(
        self,
        task_id: str,
        message: str,
        outcome: Outcome | str | None = None,
    ) -> Task | None:
        task = self.store.get_task(task_id)
        if task is None:
            return None

        now = self.now()
        self._touch(task, now)
        task.last_outcome = message
        task = self.store.save_task(task)

        self.check_in(task.owner)
        self.store.append_history(
            StatusUpdate(
                task_id=task.id,
                agent_id=task.owner,
                timestamp=now,
                message=message,
                outcome=Outcome(outcome) if outcome else None,
            )
        )
        logger.info("Task %s updated by %s", task.id, task.owner)
        return task

    def complete_task(self, task_id: str, final_message: str | None = None) -> Task | None:
        task = self.store.get_task(task_id)
        if task is None:
            return None

        now = self.now()
        task.status = TaskStatus.COMPLETED
        task.completed_at = now
        self._touch(task, now)
        if final_message:
            task.last_outcome = final_message
        task = self.store.save_task(task)

        self._release_active_task(task)
        self.store.append_history(
            StatusUpdate(
                task_id=task.id,
                agent_id=task.owner,
                timestamp=now,
                message=final_message or "Task completed",
                outcome=Outcome.SUCCESS,
            )
        )
        logger.info("Task %s -> completed", task.id)
        return task

    def pause_task(self, task_id: str) -> Task | None:
        return self._set_status(task_id, TaskStatus.PAUSED, "Task paused")

    def resume_task(self, task_id: str) -> Task | None:
        return self._set_status(task_id, TaskStatus.ACTIVE, "Task resumed")

    def abandon_task(self, task_id: str, reason: str | None = None) -> Task | None:
        task = self.store.get_task(task_id)
        if task is None:
            return None

        now = self.now()
        task.status = TaskStatus.ABANDONED
        task.last_outcome = reason or "Abandoned"
        self._touch(task, now)
        task = self.store.save_task(task)

        self._release_active_task(task)
        self.store.append_history(
            StatusUpdate(
                task_id=task.id,
                agent_id=task.owner,
                timestamp=now,
                message=task.last_outcome or "Abandoned",
                outcome=Outcome.FAILURE,
            )
        )
        logger.info("Task %s -> abandoned", task.id)
        return task

    def _set_status(self, task_id: str, status: TaskStatus, message: str) -> Task | None:
        task = self.store.get_task(task_id)
        if task is None:
            return None

        now = self.now()
        task.status = status
        self._touch(task, now)
        task = self.store.save_task(task)
        self.store.append_history(
            StatusUpdate(task_id=task.id, agent_id=task.owner, timestamp=now, message=message)
        )
        logger.info("Task %s -> %s", task.id, status.value)
        return task

    def _release_active_task(self, task: Task) -> None:
        agent = self.store.get_agent(task.owner)
        if agent is not None and agent.active_task_id == task.id:
            agent.active_task_id = None
            self.store.save_agent(agent)

    # ---- agents ----

    def _get_or_new_agent(self, agent_id: str) -> AgentConfig:
        agent = self.store.get_agent(agent_id)
        if agent is None:
            logger.debug("Agent %s created on first reference", agent_id)
            agent = AgentConfig(agent_id=agent_id)
        return agent

    def configure_agent(
        self,
        agent_id: str,
        *,
        default_mode: DefaultMode | None = None,
        idle_threshold: str | None = None,
    ) -> AgentConfig:
        """Set the idle-mode descriptor and/or idle threshold; other fields are preserved."""
        if idle_threshold is not None:
            parse_duration(idle_threshold)

        agent = self._get_or_new_agent(agent_id)
        if default_mode is not None:
            agent.default_mode = default_mode
        if idle_threshold is not None:
            agent.idle_threshold = idle_threshold
        return self.store.save_agent(agent)

    def set_active_task(self, agent_id: str, task_id: str) -> AgentConfig | None:
        """Point the agent at a project task it owns; anything else is refused with None."""
        task = self.store.get_task(task_id)
        if task is None or task.kind != TaskKind.PROJECT or task.owner != agent_id:
            logger.warning("Refusing active task %s for agent %s", task_id, agent_id)
            return None

        agent = self._get_or_new_agent(agent_id)
        agent.active_task_id = task_id
        return self.store.save_agent(agent)

    def add_recurring_task(self, agent_id: str, task_id: str) -> AgentConfig:
        agent = self._get_or_new_agent(agent_id)
        if task_id not in agent.recurring_task_ids:
            agent.recurring_task_ids.append(task_id)
        return self.store.save_agent(agent)

    def set_idle_threshold(self, agent_id: str, threshold: str) -> AgentConfig:
        return self.configure_agent(agent_id, idle_threshold=threshold)

    def check_in(self, agent_id: str, message: str | None = None) -> AgentConfig:
        now = self.now()
        agent = self._get_or_new_agent(agent_id)
        agent.last_check_in = max(agent.last_check_in or 0, now)
        agent = self.store.save_agent(agent)

        if message:
            self.store.append_history(
                StatusUpdate(
                    task_id=CHECKIN_TASK_ID,
                    agent_id=agent_id,
                    timestamp=now,
                    message=message,
                    outcome=Outcome.SUCCESS,
                )
            )
        return agent

    # ---- context / monitoring ----

    def get_agent_context(self, agent_id: str) -> AgentContext:
        return build_agent_context(self.store, agent_id, self.now())

    def get_overdue_tasks(self) -> OverdueReport:
        """Fleet-wide overdue sets under the monitoring policy."""
        now = self.now()
        threshold = self.config.overdue_threshold
        recurring: list[Task] = []
        status_checks: list[Task] = []

        for task in self.store.get_active_tasks():
            if not is_overdue_for_monitoring(task, now, threshold):
                continue
            if task.kind == TaskKind.RECURRING:
                recurring.append(task)
            elif task.kind == TaskKind.PROJECT:
                status_checks.append(task)

        return OverdueReport(recurring=recurring, status_checks=status_checks)

    def get_idle_agents(self, default_threshold: str | None = None) -> list[IdleAgent]:
        """
        Agents with an idle-mode descriptor whose last check-in is older than their
        threshold (per-agent override, else the given / configured default).

        Agents without a default mode are never idle: there is nothing to remind them of.
        """
        now = self.now()
        fallback = default_threshold or self.config.idle_threshold
        idle: list[IdleAgent] = []

        for agent in self.store.get_all_agents():
            if agent.default_mode is None:
                continue
            threshold_ms = parse_duration_safe(agent.idle_threshold or fallback)
            if not threshold_ms:
                continue
            last_activity = agent.last_check_in or 0
            if now - last_activity > threshold_ms:
                idle.append(IdleAgent(agent=agent, idle_since=last_activity))

        return idle

    def get_agent_work(self, agent_id: str, *, log: bool = False) -> WorkQueue:
        """Pull queue for one agent. Pulling counts as activity and records a check-in."""
        now = self.now()
        if log:
            self.store.append_history(
                StatusUpdate(
                    task_id=PULL_TASK_ID,
                    agent_id=agent_id,
                    timestamp=now,
                    message="Agent pulled work queue",
                )
            )

        queue = build_work_queue(self.store, agent_id, now, cli_command=self.config.cli_command)
        self.check_in(agent_id)
        logger.debug("Agent %s pulled %d task(s) idle=%s", agent_id, len(queue.tasks), queue.idle_task is not None)
        return queue

    # ---- data access ----

    def get_task(self, task_id: str) -> Task | None:
        return self.store.get_task(task_id)

    def get_all_tasks(self) -> list[Task]:
        return self.store.get_all_tasks()

    def get_agent(self, agent_id: str) -> AgentConfig | None:
        return self.store.get_agent(agent_id)

    def get_all_agents(self) -> list[AgentConfig]:
        return self.store.get_all_agents()

    def get_history(self, task_id: str | None = None, limit: int = 50) -> list[StatusUpdate]:
        return self.store.get_history(task_id, limit)
