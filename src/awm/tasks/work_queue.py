# src/awm/tasks/work_queue.py

"""
Pull queue.

An agent pulls its own work: overdue recurring tasks (immediate policy), most
overdue first, followed by its idle-mode descriptor when it has one.
"""

from __future__ import annotations

import logging

from ..core.durations import MINUTE_MS
from ..core.ports import StateStore
from .overdue import elapsed_ms, is_overdue
from .task_models import AgentConfig, DefaultMode, Task, WorkItem, WorkQueue

logger = logging.getLogger(__name__)

SEPARATOR = "─" * 60


def collect_overdue_work(store: StateStore, agent: AgentConfig | None, now: int) -> list[WorkItem]:
    """
    Overdue recurring tasks of one agent, sorted by overdue minutes descending.

    The sort is stable, so ties keep the agent's stored recurring-task order.
    """
    if agent is None:
        return []

    found: list[tuple[Task, int]] = []
    for task_id in agent.recurring_task_ids:
        task = store.get_task(task_id)
        if task is None:
            logger.debug("Agent %s references missing task %s", agent.agent_id, task_id)
            continue
        if not task.cadence or not is_overdue(task, now):
            continue
        found.append((task, elapsed_ms(task, now) // MINUTE_MS))

    found.sort(key=lambda pair: pair[1], reverse=True)

    return [
        WorkItem(
            id=task.id,
            name=task.name,
            instruction=task.instruction or task.name,
            cadence=task.cadence,
            overdue_mins=mins,
        )
        for task, mins in found
    ]


def render_work_message(
    agent_id: str,
    tasks: list[WorkItem],
    idle_task: DefaultMode | None,
    *,
    cli_command: str = "awm",
) -> str:
    lines: list[str] = []

    if tasks:
        plural = "s" if len(tasks) > 1 else ""
        lines.append(f"🚨 DO THIS NOW ({len(tasks)} task{plural}):")
        lines.append("")
        for i, item in enumerate(tasks, start=1):
            lines.append(f"{i}. **{item.name}** ({item.overdue_mins}m overdue)")
            lines.append(f"   → {item.instruction}")
            lines.append(f'   Log completion: `{cli_command} update {item.id} -m "what you did"`')
            lines.append("")
        lines.append("⚠️ DO NOT ASK PERMISSION. DO THE WORK. POST UPDATES.")
        lines.append("")

    if idle_task is not None:
        if tasks:
            lines.append("")
            lines.append(SEPARATOR)
            lines.append("")
        lines.append(f"🏠 IDLE MODE: {idle_task.task_name}")
        lines.append("")
        lines.append(idle_task.instruction)
        lines.append("")
        lines.append("When you complete idle work, check in:")
        lines.append(f'  {cli_command} checkin {agent_id} -m "what you did"')
        lines.append("")
        lines.append(SEPARATOR)

    if not tasks and idle_task is None:
        lines.append("✅ Nothing to do right now.")

    return "\n".join(lines)


def build_work_queue(
    store: StateStore,
    agent_id: str,
    now: int,
    *,
    cli_command: str = "awm",
) -> WorkQueue:
    agent = store.get_agent(agent_id)
    tasks = collect_overdue_work(store, agent, now)
    idle_task = agent.default_mode if agent is not None else None

    return WorkQueue(
        agent_id=agent_id,
        tasks=tasks,
        idle_task=idle_task,
        message=render_work_message(agent_id, tasks, idle_task, cli_command=cli_command),
    )
