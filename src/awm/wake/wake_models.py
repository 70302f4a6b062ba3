# src/awm/wake/wake_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True)
class PendingWake:
    """A silent wake that was delivered and is not yet acknowledged or escalated."""

    wake_time: int
    # Latest last_update across the triggering tasks when the wake was sent (0 for idle-only).
    last_task_update: int
    task_ids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class WakeState:
    last_wake: dict[str, int] = field(default_factory=dict)
    pending_wakes: dict[str, PendingWake] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "last_wake": dict(self.last_wake),
            "pending_wakes": {
                agent_id: {
                    "wake_time": p.wake_time,
                    "last_task_update": p.last_task_update,
                    "task_ids": list(p.task_ids),
                }
                for agent_id, p in self.pending_wakes.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> WakeState:
        """Tolerant decoder: malformed entries are dropped, not fatal."""
        last_wake: dict[str, int] = {}
        raw_last = data.get("last_wake")
        if isinstance(raw_last, dict):
            for agent_id, ts in raw_last.items():
                if isinstance(ts, (int, float)):
                    last_wake[str(agent_id)] = int(ts)

        pending: dict[str, PendingWake] = {}
        raw_pending = data.get("pending_wakes")
        if isinstance(raw_pending, dict):
            for agent_id, p in raw_pending.items():
                if not isinstance(p, dict):
                    continue
                try:
                    pending[str(agent_id)] = PendingWake(
                        wake_time=int(p["wake_time"]),
                        last_task_update=int(p.get("last_task_update", 0)),
                        task_ids=[str(t) for t in p.get("task_ids", [])],
                    )
                except (KeyError, TypeError, ValueError):
                    continue

        return cls(last_wake=last_wake, pending_wakes=pending)


class WakeAction(str, Enum):
    SILENT = "silent"
    FALLBACK = "fallback"
    ESCALATED = "escalated"
    ACKNOWLEDGED = "acknowledged"
    WAITING = "waiting"
    COOLDOWN = "cooldown"
    FAILED = "failed"
    STALE_CLEARED = "stale_cleared"


@dataclass(slots=True)
class TickReport:
    """What one tick did, per agent. Mostly for logging and tests."""

    now: int
    actions: dict[str, WakeAction] = field(default_factory=dict)
    state_changed: bool = False

    def agents_with(self, action: WakeAction) -> list[str]:
        return sorted(a for a, act in self.actions.items() if act == action)

    @property
    def notifications_sent(self) -> int:
        sent = (WakeAction.SILENT, WakeAction.FALLBACK, WakeAction.ESCALATED)
        return sum(1 for act in self.actions.values() if act in sent)
