# src/awm/tasks/agent_context.py

from __future__ import annotations

from ..core.durations import format_duration
from ..core.ports import StateStore
from .overdue import elapsed_ms, is_overdue
from .task_models import AgentContext, DefaultMode, Task, TaskKind, TaskStatus


def build_agent_context(store: StateStore, agent_id: str, now: int) -> AgentContext:
    """
    Live context for one agent (immediate policy):
    - its active project task, if still active
    - overdue recurring tasks (by cadence)
    - the active task again under "pending status check" when its status interval lapsed
    """
    agent = store.get_agent(agent_id)

    active_task: Task | None = None
    if agent is not None and agent.active_task_id:
        candidate = store.get_task(agent.active_task_id)
        if candidate is not None and candidate.status == TaskStatus.ACTIVE:
            active_task = candidate

    overdue_recurring: list[Task] = []
    if agent is not None:
        for task_id in agent.recurring_task_ids:
            task = store.get_task(task_id)
            if task is not None and task.kind == TaskKind.RECURRING and is_overdue(task, now):
                overdue_recurring.append(task)

    pending_status_check: list[Task] = []
    if active_task is not None and is_overdue(active_task, now):
        pending_status_check.append(active_task)

    default_mode = agent.default_mode if agent is not None else None

    return AgentContext(
        agent_id=agent_id,
        active_task=active_task,
        default_mode=default_mode,
        overdue_recurring=overdue_recurring,
        pending_status_check=pending_status_check,
        message=render_context_message(
            now,
            active_task=active_task,
            default_mode=default_mode,
            overdue_recurring=overdue_recurring,
            pending_status_check=pending_status_check,
        ),
    )


def render_context_message(
    now: int,
    *,
    active_task: Task | None,
    default_mode: DefaultMode | None,
    overdue_recurring: list[Task],
    pending_status_check: list[Task],
) -> str:
    lines = ["[AWM]"]

    if overdue_recurring:
        lines.append("⚠️ OVERDUE RECURRING TASKS:")
        for task in overdue_recurring:
            ago = format_duration(elapsed_ms(task, now))
            lines.append(f"  • {task.name} (last run: {ago} ago, cadence: {task.cadence})")
            if task.instruction:
                lines.append(f"    → {task.instruction}")
        lines.append("")

    if pending_status_check:
        lines.append("📋 STATUS UPDATE REQUIRED:")
        for task in pending_status_check:
            ago = format_duration(elapsed_ms(task, now))
            lines.append(f"  • {task.name} (last update: {ago} ago)")
        lines.append("")

    if active_task is not None:
        lines.append(f"🎯 ACTIVE TASK: {active_task.name}")
        lines.append(f"   Last update: {format_duration(elapsed_ms(active_task, now))} ago")
        if active_task.instruction:
            lines.append(f"   → {active_task.instruction}")
        if active_task.last_outcome:
            lines.append(f"   Last status: {active_task.last_outcome}")
    elif default_mode is not None:
        lines.append(f"🏠 DEFAULT MODE: {default_mode.task_name}")
        lines.append(f"   → {default_mode.instruction}")
    else:
        lines.append("💤 No active task or default mode configured.")

    return "\n".join(lines)
