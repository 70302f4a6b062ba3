# src/awm/tasks/overdue.py

"""
Overdue evaluation.

Two thresholds over the same elapsed time (now - task.last_update):
- immediate policy: elapsed > interval
  used for the live agent context and the pull queue
- monitoring policy: elapsed > interval * overdue_threshold
  used for fleet-wide reporting and as the wake trigger

The interval is the cadence for recurring tasks and the status interval for project
tasks. Tasks that are not active, or have no parseable interval, are never overdue.
"""

from __future__ import annotations

import logging

from ..core.durations import parse_duration_safe
from .task_models import Task, TaskKind, TaskStatus

logger = logging.getLogger(__name__)

DEFAULT_OVERDUE_THRESHOLD = 2.0


def elapsed_ms(task: Task, now: int) -> int:
    return int(now) - int(task.last_update)


def interval_literal(task: Task) -> str | None:
    if task.kind == TaskKind.RECURRING:
        return task.cadence
    if task.kind == TaskKind.PROJECT:
        return task.status_interval
    return None


def task_interval(task: Task) -> int | None:
    """Interval in ms, or None when the task has none (or a malformed one)."""
    literal = interval_literal(task)
    if not literal:
        return None
    interval = parse_duration_safe(literal)
    if interval is None:
        logger.debug("Skipping task %s: malformed interval %r", task.id, literal)
    return interval


def is_overdue(task: Task, now: int) -> bool:
    if task.status != TaskStatus.ACTIVE:
        return False
    interval = task_interval(task)
    if interval is None:
        return False
    return elapsed_ms(task, now) > interval


def is_overdue_for_monitoring(
    task: Task,
    now: int,
    overdue_threshold: float = DEFAULT_OVERDUE_THRESHOLD,
) -> bool:
    if task.status != TaskStatus.ACTIVE:
        return False
    interval = task_interval(task)
    if interval is None:
        return False
    return elapsed_ms(task, now) > interval * overdue_threshold
