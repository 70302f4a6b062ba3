# tests/test_task_manager.py

from __future__ import annotations

import pytest

from awm.config import WorkConfig
from awm.core.durations import MINUTE_MS
from awm.core.errors import InvalidDuration
from awm.tasks.task_manager import WorkManager
from awm.tasks.task_models import CHECKIN_TASK_ID, PULL_TASK_ID, DefaultMode, Outcome, TaskKind, TaskStatus
from awm.tasks.task_store import TaskStore

from .fakes import BASE_MS, ManualClock


def test_create_project_sets_default_interval_and_active_task(manager: WorkManager) -> None:
    task = manager.create_task(name="Ship v2", kind="project", owner="frank", instruction="Finish the release")

    assert task.id.startswith("task_")
    assert task.status == TaskStatus.ACTIVE
    assert task.status_interval == "15m"
    assert task.last_update == BASE_MS == task.created_at
    assert manager.get_agent("frank").active_task_id == task.id


def test_create_recurring_registers_with_owner(manager: WorkManager) -> None:
    a = manager.create_task(name="Inbox", kind=TaskKind.RECURRING, owner="frank", cadence="5m")
    b = manager.create_task(name="Metrics", kind=TaskKind.RECURRING, owner="frank", cadence="1h")

    assert manager.get_agent("frank").recurring_task_ids == [a.id, b.id]


def test_create_rejects_malformed_durations(manager: WorkManager) -> None:
    with pytest.raises(InvalidDuration):
        manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="often")
    with pytest.raises(InvalidDuration):
        manager.create_task(name="Ship", kind="project", owner="frank", status_interval="1.5h")

    assert manager.get_all_tasks() == []


def test_update_status_touches_checks_in_and_logs(manager: WorkManager, clock: ManualClock) -> None:
    task = manager.create_task(name="Ship", kind="project", owner="frank")
    clock.advance(7 * MINUTE_MS)

    updated = manager.update_task_status(task.id, "tests green", Outcome.IN_PROGRESS)

    assert updated.last_update == BASE_MS + 7 * MINUTE_MS
    assert updated.last_outcome == "tests green"
    assert manager.get_agent("frank").last_check_in == BASE_MS + 7 * MINUTE_MS

    history = manager.get_history(task.id)
    assert history[-1].message == "tests green"
    assert history[-1].outcome == Outcome.IN_PROGRESS


def test_last_update_never_moves_backwards(manager: WorkManager, clock: ManualClock) -> None:
    task = manager.create_task(name="Ship", kind="project", owner="frank")
    clock.set(BASE_MS - 60_000)

    updated = manager.update_task_status(task.id, "clock skew")
    assert updated.last_update == BASE_MS


def test_unknown_task_operations_return_none(manager: WorkManager) -> None:
    assert manager.update_task_status("task_missing", "hi") is None
    assert manager.complete_task("task_missing") is None
    assert manager.pause_task("task_missing") is None
    assert manager.resume_task("task_missing") is None
    assert manager.abandon_task("task_missing") is None


def test_complete_releases_active_task(manager: WorkManager, clock: ManualClock) -> None:
    task = manager.create_task(name="Ship", kind="project", owner="frank")
    clock.advance(1000)

    done = manager.complete_task(task.id, "released")

    assert done.status == TaskStatus.COMPLETED
    assert done.completed_at == BASE_MS + 1000
    assert manager.get_agent("frank").active_task_id is None
    assert manager.get_history(task.id)[-1].outcome == Outcome.SUCCESS


def test_pause_resume_abandon(manager: WorkManager) -> None:
    task = manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")

    assert manager.pause_task(task.id).status == TaskStatus.PAUSED
    assert manager.resume_task(task.id).status == TaskStatus.ACTIVE

    abandoned = manager.abandon_task(task.id, "no longer needed")
    assert abandoned.status == TaskStatus.ABANDONED
    assert abandoned.last_outcome == "no longer needed"
    assert manager.get_history(task.id)[-1].outcome == Outcome.FAILURE


def test_set_active_task_refuses_foreign_or_recurring(manager: WorkManager) -> None:
    mine = manager.create_task(name="Ship", kind="project", owner="frank")
    theirs = manager.create_task(name="Audit", kind="project", owner="ops")
    loop = manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")

    assert manager.set_active_task("frank", theirs.id) is None
    assert manager.set_active_task("frank", loop.id) is None
    assert manager.set_active_task("frank", "task_missing") is None
    assert manager.get_agent("frank").active_task_id == mine.id


def test_configure_agent_preserves_other_fields(manager: WorkManager) -> None:
    task = manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")
    manager.check_in("frank")

    agent = manager.configure_agent("frank", default_mode=DefaultMode("Docs", "Improve the docs"))
    agent = manager.set_idle_threshold("frank", "45m")

    assert agent.recurring_task_ids == [task.id]
    assert agent.last_check_in == BASE_MS
    assert agent.default_mode == DefaultMode("Docs", "Improve the docs")
    assert agent.idle_threshold == "45m"


def test_set_idle_threshold_validates(manager: WorkManager) -> None:
    with pytest.raises(InvalidDuration):
        manager.set_idle_threshold("frank", "forever")


def test_check_in_with_message_is_logged(manager: WorkManager) -> None:
    manager.check_in("frank", "reviewing PRs")

    entry = manager.get_history(CHECKIN_TASK_ID)[-1]
    assert entry.agent_id == "frank"
    assert entry.message == "reviewing PRs"


def test_agent_context_reports_status_check_and_overdue_recurring(
    manager: WorkManager, clock: ManualClock
) -> None:
    project = manager.create_task(name="Ship", kind="project", owner="frank", instruction="Cut the release")
    loop = manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")
    clock.advance(16 * MINUTE_MS)

    ctx = manager.get_agent_context("frank")

    assert ctx.active_task.id == project.id
    assert [t.id for t in ctx.overdue_recurring] == [loop.id]
    assert [t.id for t in ctx.pending_status_check] == [project.id]
    assert "STATUS UPDATE REQUIRED" in ctx.message
    assert "ACTIVE TASK: Ship" in ctx.message
    assert "Inbox (last run: 16m ago, cadence: 5m)" in ctx.message


def test_agent_context_falls_back_to_default_mode(manager: WorkManager) -> None:
    manager.configure_agent("frank", default_mode=DefaultMode("Docs", "Improve the docs"))

    ctx = manager.get_agent_context("frank")
    assert ctx.active_task is None
    assert "DEFAULT MODE: Docs" in ctx.message

    empty = manager.get_agent_context("nobody")
    assert "No active task or default mode configured." in empty.message


def test_overdue_report_uses_monitoring_policy(manager: WorkManager, clock: ManualClock) -> None:
    loop = manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")
    project = manager.create_task(name="Ship", kind="project", owner="ops", status_interval="15m")

    clock.advance(10 * MINUTE_MS)
    report = manager.get_overdue_tasks()
    assert report.all_tasks() == []

    clock.advance(1)
    report = manager.get_overdue_tasks()
    assert [t.id for t in report.recurring] == [loop.id]
    assert report.status_checks == []

    clock.advance(20 * MINUTE_MS)
    report = manager.get_overdue_tasks()
    assert [t.id for t in report.status_checks] == [project.id]


def test_config_threshold_is_honoured(store: TaskStore, clock: ManualClock) -> None:
    strict = WorkManager(store, WorkConfig(overdue_threshold=1.0), clock=clock)
    strict.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")
    clock.advance(5 * MINUTE_MS + 1)

    assert len(strict.get_overdue_tasks().recurring) == 1


def test_pull_records_check_in_and_optional_history(manager: WorkManager, clock: ManualClock) -> None:
    manager.create_task(name="Inbox", kind="recurring", owner="frank", cadence="5m")
    clock.advance(6 * MINUTE_MS)

    queue = manager.get_agent_work("frank", log=True)

    assert [item.overdue_mins for item in queue.tasks] == [6]
    assert manager.get_agent("frank").last_check_in == clock()
    assert manager.get_history(PULL_TASK_ID)[-1].agent_id == "frank"
