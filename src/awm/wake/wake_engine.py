# src/awm/wake/wake_engine.py

from __future__ import annotations

"""
Wake escalation engine.

One pass per tick. For every agent with monitoring-overdue work (or an idle reminder
due), a per-agent state machine decides what to send:

    Quiescent --silent ok--> SilentlyWoken --task updated--> Quiescent (acknowledged)
                                           --grace expired, visible ok--> Quiescent (escalated)

- a new wake needs MIN_WAKE_INTERVAL_MS since the last notification of either tier;
  a pending wake is not gated, so escalation follows the grace period
- a silent wake goes out first; if the silent channel fails, the visible channel is
  used immediately and no pending record is kept
- an agent that answered (advanced a triggering task) is not escalated
- pending wakes of agents whose trigger disappeared are dropped

Wake state is loaded once per tick and saved only if it changed. A wake is recorded
as pending only after the silent channel reported success.
"""

import logging
from dataclasses import dataclass

from ..core.durations import format_ago
from ..core.ports import NotificationChannel, WakeStateRepo
from ..tasks.task_manager import WorkManager
from ..tasks.task_models import DefaultMode, Task
from .wake_models import PendingWake, TickReport, WakeAction, WakeState

logger = logging.getLogger(__name__)

MIN_WAKE_INTERVAL_MS = 300_000  # 5 minutes between new wakes
ESCALATION_GRACE_MS = 180_000  # 3 minutes before a silent wake is escalated


@dataclass(slots=True, frozen=True)
class WakeTrigger:
    """Why an agent is being woken this tick: overdue tasks, or idle mode when it has none."""

    agent_id: str
    tasks: list[Task]
    default_mode: DefaultMode | None = None

    @property
    def task_ids(self) -> list[str]:
        return [t.id for t in self.tasks]

    @property
    def latest_update(self) -> int:
        return max((t.last_update for t in self.tasks), default=0)


def collect_triggers(manager: WorkManager) -> dict[str, WakeTrigger]:
    """Monitoring-overdue tasks grouped by owner, plus idle agents with nothing overdue."""
    grouped: dict[str, list[Task]] = {}
    for task in manager.get_overdue_tasks().all_tasks():
        grouped.setdefault(task.owner, []).append(task)

    triggers = {agent_id: WakeTrigger(agent_id, tasks) for agent_id, tasks in grouped.items()}

    for idle in manager.get_idle_agents():
        agent_id = idle.agent.agent_id
        if agent_id not in triggers and idle.agent.default_mode is not None:
            triggers[agent_id] = WakeTrigger(agent_id, [], idle.agent.default_mode)

    return triggers


def render_wake_message(trigger: WakeTrigger, now: int, *, cli_command: str = "awm") -> str:
    lines: list[str] = []

    if trigger.tasks:
        lines.extend(["*[AWM] Overdue Tasks*", ""])
        for t in trigger.tasks:
            lines.append(f"• *{t.name}* `{t.id}`")
            if t.cadence:
                lines.append(f"  Every {t.cadence}, last: {format_ago(now - t.last_update)}")
            if t.instruction:
                lines.append(f"  → {t.instruction}")
            lines.append("")
        lines.append(f'_When done:_ `{cli_command} update <id> -m "summary"`')
    elif trigger.default_mode is not None:
        mode = trigger.default_mode
        lines.extend(["*[AWM] Idle Check-in*", ""])
        lines.append("You've been quiet. Your default mode:")
        lines.append(f"• *{mode.task_name}*")
        lines.append(f"  → {mode.instruction}")
        lines.append("")
        lines.append(f"_Check in:_ `{cli_command} checkin {trigger.agent_id} -m \"what I'm doing\"`")

    return "\n".join(lines)


class WakeEngine:
    def __init__(
        self,
        manager: WorkManager,
        wake_store: WakeStateRepo,
        silent: NotificationChannel,
        visible: NotificationChannel,
        *,
        min_wake_interval_ms: int = MIN_WAKE_INTERVAL_MS,
        escalation_grace_ms: int = ESCALATION_GRACE_MS,
    ) -> None:
        self.manager = manager
        self.wake_store = wake_store
        self.silent = silent
        self.visible = visible
        self.min_wake_interval_ms = int(min_wake_interval_ms)
        self.escalation_grace_ms = int(escalation_grace_ms)

    async def run_tick(self) -> TickReport:
        """Evaluate every agent once and deliver whatever notifications are due."""
        now = self.manager.now()
        report = TickReport(now=now)

        triggers = collect_triggers(self.manager)
        state = self.wake_store.load()
        before = state.to_dict()

        if not triggers and not state.pending_wakes:
            logger.debug("No overdue tasks or idle agents.")
            return report

        for agent_id, trigger in triggers.items():
            try:
                action = await self._evaluate_agent(state, trigger, now)
            except Exception:
                # One agent must never block the rest of the tick.
                logger.exception("Wake evaluation failed for %s", agent_id)
                action = WakeAction.FAILED
            report.actions[agent_id] = action

        for agent_id in list(state.pending_wakes):
            if agent_id not in triggers:
                logger.info("Clearing stale pending wake for %s", agent_id)
                del state.pending_wakes[agent_id]
                report.actions[agent_id] = WakeAction.STALE_CLEARED

        report.state_changed = state.to_dict() != before
        if report.state_changed:
            try:
                self.wake_store.save(state)
            except OSError:
                logger.exception("Failed to save wake state")

        logger.info(
            "Wake tick: %d agent(s) evaluated, %d notification(s) sent",
            len(triggers),
            report.notifications_sent,
        )
        return report

    async def _evaluate_agent(self, state: WakeState, trigger: WakeTrigger, now: int) -> WakeAction:
        agent_id = trigger.agent_id
        pending = state.pending_wakes.get(agent_id)
        if pending is not None:
            if self._latest_update(pending.task_ids) > pending.last_task_update:
                logger.info("%s responded to silent wake, clearing pending", agent_id)
                del state.pending_wakes[agent_id]
                return WakeAction.ACKNOWLEDGED

            waited = now - pending.wake_time
            if waited < self.escalation_grace_ms:
                logger.debug(
                    "%s pending wake, %ds until escalation",
                    agent_id,
                    (self.escalation_grace_ms - waited) // 1000,
                )
                return WakeAction.WAITING

            message = render_wake_message(trigger, now, cli_command=self.manager.config.cli_command)
            if await self._send(self.visible, agent_id, message, tier="visible"):
                state.last_wake[agent_id] = now
                del state.pending_wakes[agent_id]
                logger.info("Escalated %s after %ds without response", agent_id, waited // 1000)
                return WakeAction.ESCALATED
            # Keep the pending wake so escalation is retried next tick.
            return WakeAction.FAILED

        since_wake = now - state.last_wake.get(agent_id, 0)
        if since_wake < self.min_wake_interval_ms:
            logger.debug("Skipping %s (woken %ds ago)", agent_id, since_wake // 1000)
            return WakeAction.COOLDOWN

        message = render_wake_message(trigger, now, cli_command=self.manager.config.cli_command)

        if await self._send(self.silent, agent_id, message, tier="silent"):
            state.last_wake[agent_id] = now
            state.pending_wakes[agent_id] = PendingWake(
                wake_time=now,
                last_task_update=trigger.latest_update,
                task_ids=trigger.task_ids,
            )
            return WakeAction.SILENT

        # Silent channel failed: nothing to acknowledge quietly, go visible right away.
        if await self._send(self.visible, agent_id, message, tier="visible"):
            state.last_wake[agent_id] = now
            return WakeAction.FALLBACK

        logger.warning("No wake delivered to %s this tick", agent_id)
        return WakeAction.FAILED

    def _latest_update(self, task_ids: list[str]) -> int:
        latest = 0
        for task_id in task_ids:
            task = self.manager.get_task(task_id)
            if task is not None:
                latest = max(latest, task.last_update)
        return latest

    @staticmethod
    async def _send(channel: NotificationChannel, agent_id: str, message: str, *, tier: str) -> bool:
        try:
            ok = await channel.send(agent_id, message)
        except Exception:
            logger.exception("%s channel raised for %s", tier, agent_id)
            return False
        if not ok:
            logger.warning("%s wake failed for %s", tier, agent_id)
        return bool(ok)
