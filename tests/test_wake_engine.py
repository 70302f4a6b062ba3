# tests/test_wake_engine.py

from __future__ import annotations

import pytest

from awm.core.durations import MINUTE_MS
from awm.tasks.task_manager import WorkManager
from awm.tasks.task_models import DefaultMode
from awm.wake.wake_engine import (
    ESCALATION_GRACE_MS,
    MIN_WAKE_INTERVAL_MS,
    WakeEngine,
    collect_triggers,
    render_wake_message,
)
from awm.wake.wake_models import PendingWake, WakeAction, WakeState

from .fakes import BASE_MS, InMemoryWakeStateRepo, ManualClock, RaisingChannel, RecordingChannel

T0 = BASE_MS


def _overdue_task(manager: WorkManager, clock: ManualClock, owner: str = "frank", name: str = "Inbox") -> str:
    """A 5m-cadence task that is fleet-overdue (elapsed > 10m) at T0."""
    clock.set(T0 - 11 * MINUTE_MS)
    task = manager.create_task(name=name, kind="recurring", owner=owner, cadence="5m", instruction="Triage")
    clock.set(T0)
    return task.id


def _engine(manager: WorkManager, repo=None, silent=None, visible=None) -> WakeEngine:
    return WakeEngine(
        manager,
        repo or InMemoryWakeStateRepo(),
        silent or RecordingChannel(),
        visible or RecordingChannel(),
    )


def test_engine_constants() -> None:
    assert MIN_WAKE_INTERVAL_MS == 300_000
    assert ESCALATION_GRACE_MS == 180_000


@pytest.mark.asyncio
async def test_scripted_timeline_escalates_after_grace(manager: WorkManager, clock: ManualClock) -> None:
    task_id = _overdue_task(manager, clock)
    repo = InMemoryWakeStateRepo()
    silent, visible = RecordingChannel(), RecordingChannel()
    engine = _engine(manager, repo, silent, visible)

    report = await engine.run_tick()
    assert report.actions == {"frank": WakeAction.SILENT}
    pending = repo.state.pending_wakes["frank"]
    assert pending.wake_time == T0
    assert pending.task_ids == [task_id]
    assert pending.last_task_update == T0 - 11 * MINUTE_MS
    assert repo.state.last_wake == {"frank": T0}

    clock.set(T0 + 179_999)
    report = await engine.run_tick()
    assert report.actions == {"frank": WakeAction.WAITING}
    assert report.state_changed is False
    assert visible.sent == []

    clock.set(T0 + 180_001)
    report = await engine.run_tick()
    assert report.actions == {"frank": WakeAction.ESCALATED}
    assert visible.agents == ["frank"]
    assert repo.state.pending_wakes == {}
    assert repo.state.last_wake == {"frank": T0 + 180_001}
    assert len(silent.sent) == 1


@pytest.mark.asyncio
async def test_acknowledgment_clears_pending_without_escalation(
    manager: WorkManager, clock: ManualClock
) -> None:
    first = _overdue_task(manager, clock, name="Inbox")
    second = _overdue_task(manager, clock, name="Metrics")
    repo = InMemoryWakeStateRepo()
    visible = RecordingChannel()
    engine = _engine(manager, repo, visible=visible)

    await engine.run_tick()
    assert sorted(repo.state.pending_wakes["frank"].task_ids) == sorted([first, second])

    clock.set(T0 + 60_000)
    manager.update_task_status(second, "metrics posted")

    clock.set(T0 + 61_000)
    report = await engine.run_tick()
    assert report.actions == {"frank": WakeAction.ACKNOWLEDGED}
    assert repo.state.pending_wakes == {}
    assert repo.state.last_wake == {"frank": T0}

    clock.set(T0 + 10 * ESCALATION_GRACE_MS)
    report = await engine.run_tick()
    assert visible.sent == []
    # Still overdue on the first task: a fresh silent wake, not an escalation.
    assert report.actions == {"frank": WakeAction.SILENT}


@pytest.mark.asyncio
async def test_acknowledged_agent_with_remaining_work_stays_in_cooldown(
    manager: WorkManager, clock: ManualClock
) -> None:
    _overdue_task(manager, clock, name="Inbox")
    second = _overdue_task(manager, clock, name="Metrics")
    repo = InMemoryWakeStateRepo()
    silent, visible = RecordingChannel(), RecordingChannel()
    engine = _engine(manager, repo, silent, visible)

    assert (await engine.run_tick()).actions == {"frank": WakeAction.SILENT}

    clock.set(T0 + 60_000)
    manager.update_task_status(second, "metrics posted")

    clock.set(T0 + 61_000)
    assert (await engine.run_tick()).actions == {"frank": WakeAction.ACKNOWLEDGED}

    clock.set(T0 + 121_000)
    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.COOLDOWN}
    assert report.notifications_sent == 0
    assert len(silent.sent) == 1
    assert visible.sent == []

    clock.set(T0 + MIN_WAKE_INTERVAL_MS)
    assert (await engine.run_tick()).actions == {"frank": WakeAction.SILENT}
    assert len(silent.sent) == 2


@pytest.mark.asyncio
async def test_cooldown_allows_one_notification_in_four_minutes(
    manager: WorkManager, clock: ManualClock
) -> None:
    _overdue_task(manager, clock)
    silent, visible = RecordingChannel(ok=False), RecordingChannel()
    engine = _engine(manager, silent=silent, visible=visible)

    first = await engine.run_tick()
    clock.set(T0 + 4 * MINUTE_MS)
    second = await engine.run_tick()

    assert first.actions == {"frank": WakeAction.FALLBACK}
    assert second.actions == {"frank": WakeAction.COOLDOWN}
    assert first.notifications_sent + second.notifications_sent == 1
    assert len(visible.sent) == 1
    assert len(silent.sent) == 1


@pytest.mark.asyncio
async def test_cooldown_after_escalation_then_new_silent_wake(
    manager: WorkManager, clock: ManualClock
) -> None:
    _overdue_task(manager, clock)
    engine = _engine(manager)

    await engine.run_tick()
    clock.set(T0 + ESCALATION_GRACE_MS)
    assert (await engine.run_tick()).actions["frank"] == WakeAction.ESCALATED

    escalated_at = T0 + ESCALATION_GRACE_MS
    clock.set(escalated_at + 4 * MINUTE_MS)
    assert (await engine.run_tick()).actions["frank"] == WakeAction.COOLDOWN

    clock.set(escalated_at + MIN_WAKE_INTERVAL_MS)
    assert (await engine.run_tick()).actions["frank"] == WakeAction.SILENT


@pytest.mark.asyncio
async def test_silent_failure_falls_back_without_pending(manager: WorkManager, clock: ManualClock) -> None:
    _overdue_task(manager, clock)
    repo = InMemoryWakeStateRepo()
    visible = RecordingChannel()
    engine = _engine(manager, repo, silent=RecordingChannel(ok=False), visible=visible)

    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.FALLBACK}
    assert repo.state.pending_wakes == {}
    assert repo.state.last_wake == {"frank": T0}
    assert visible.sent[0][1].startswith("*[AWM] Overdue Tasks*")


@pytest.mark.asyncio
async def test_both_channels_failing_changes_nothing(manager: WorkManager, clock: ManualClock) -> None:
    _overdue_task(manager, clock)
    repo = InMemoryWakeStateRepo()
    engine = _engine(manager, repo, silent=RecordingChannel(ok=False), visible=RecordingChannel(ok=False))

    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.FAILED}
    assert report.state_changed is False
    assert repo.saves == 0


@pytest.mark.asyncio
async def test_failed_escalation_keeps_pending_for_retry(manager: WorkManager, clock: ManualClock) -> None:
    _overdue_task(manager, clock)
    repo = InMemoryWakeStateRepo()
    visible = RecordingChannel(ok=False)
    engine = _engine(manager, repo, visible=visible)

    await engine.run_tick()
    clock.set(T0 + ESCALATION_GRACE_MS)
    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.FAILED}
    assert repo.state.pending_wakes["frank"].wake_time == T0

    visible.ok = True
    clock.advance(60_000)
    report = await engine.run_tick()
    assert report.actions == {"frank": WakeAction.ESCALATED}
    assert repo.state.pending_wakes == {}


@pytest.mark.asyncio
async def test_channel_exception_is_treated_as_failure(manager: WorkManager, clock: ManualClock) -> None:
    _overdue_task(manager, clock)
    silent = RaisingChannel()
    visible = RecordingChannel()
    engine = _engine(manager, silent=silent, visible=visible)

    report = await engine.run_tick()

    assert silent.calls == 1
    assert report.actions == {"frank": WakeAction.FALLBACK}
    assert visible.agents == ["frank"]


@pytest.mark.asyncio
async def test_stale_pending_wake_is_cleared(manager: WorkManager, clock: ManualClock) -> None:
    task_id = _overdue_task(manager, clock)
    repo = InMemoryWakeStateRepo()
    engine = _engine(manager, repo)

    await engine.run_tick()
    manager.complete_task(task_id, "done")

    clock.advance(30_000)
    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.STALE_CLEARED}
    assert repo.state.pending_wakes == {}


@pytest.mark.asyncio
async def test_stale_cleanup_ignores_cooldown(clock: ManualClock, manager: WorkManager) -> None:
    state = WakeState(
        last_wake={"ghost": T0 - 1000},
        pending_wakes={"ghost": PendingWake(wake_time=T0 - 1000, last_task_update=0, task_ids=["task_gone"])},
    )
    repo = InMemoryWakeStateRepo(state)

    report = await _engine(manager, repo).run_tick()

    assert report.actions == {"ghost": WakeAction.STALE_CLEARED}
    assert repo.state.pending_wakes == {}
    assert repo.state.last_wake == {"ghost": T0 - 1000}


@pytest.mark.asyncio
async def test_idle_agent_gets_idle_check_in(manager: WorkManager, clock: ManualClock) -> None:
    manager.configure_agent("frank", default_mode=DefaultMode("Docs", "Improve the docs"))
    repo = InMemoryWakeStateRepo()
    silent = RecordingChannel()
    engine = _engine(manager, repo, silent=silent)

    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.SILENT}
    pending = repo.state.pending_wakes["frank"]
    assert pending.last_task_update == 0
    assert pending.task_ids == []
    message = silent.sent[0][1]
    assert message.startswith("*[AWM] Idle Check-in*")
    assert "• *Docs*" in message
    assert "`awm checkin frank -m \"what I'm doing\"`" in message


@pytest.mark.asyncio
async def test_agents_are_evaluated_independently(manager: WorkManager, clock: ManualClock) -> None:
    _overdue_task(manager, clock, owner="frank")
    _overdue_task(manager, clock, owner="ops")
    repo = InMemoryWakeStateRepo(WakeState(last_wake={"ops": T0 - 60_000}))
    engine = _engine(manager, repo)

    report = await engine.run_tick()

    assert report.actions == {"frank": WakeAction.SILENT, "ops": WakeAction.COOLDOWN}
    assert report.agents_with(WakeAction.SILENT) == ["frank"]


@pytest.mark.asyncio
async def test_nothing_to_do_does_not_touch_state(manager: WorkManager) -> None:
    repo = InMemoryWakeStateRepo()

    report = await _engine(manager, repo).run_tick()

    assert report.actions == {}
    assert repo.saves == 0


def test_triggers_prefer_overdue_work_over_idle(manager: WorkManager, clock: ManualClock) -> None:
    task_id = _overdue_task(manager, clock)
    manager.configure_agent("frank", default_mode=DefaultMode("Docs", "Improve the docs"))
    manager.configure_agent("ops", default_mode=DefaultMode("Audit", "Review alerts"))

    triggers = collect_triggers(manager)

    assert triggers["frank"].task_ids == [task_id]
    assert triggers["frank"].default_mode is None
    assert triggers["ops"].tasks == []
    assert triggers["ops"].default_mode == DefaultMode("Audit", "Review alerts")


def test_overdue_message_lists_each_task(manager: WorkManager, clock: ManualClock) -> None:
    task_id = _overdue_task(manager, clock)
    trigger = collect_triggers(manager)["frank"]

    message = render_wake_message(trigger, T0, cli_command="awm")

    assert message.splitlines()[0] == "*[AWM] Overdue Tasks*"
    assert f"• *Inbox* `{task_id}`" in message
    assert "  Every 5m, last: 11m ago" in message
    assert "  → Triage" in message
    assert message.endswith('_When done:_ `awm update <id> -m "summary"`')
