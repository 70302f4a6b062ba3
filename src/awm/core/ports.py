# src/awm/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The evaluator, prioritizer and wake engine depend on Protocols instead of concrete
implementations. This keeps storage and notification transports swappable and makes
testing easier.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.task_models import AgentConfig, StatusUpdate, Task
    from ..wake.wake_models import WakeState


class StateStore(Protocol):
    """
    Key-value style persistence for tasks, agent configs and the bounded history log.

    Implementations must give read-after-write visibility within a process and must
    not cache across calls: every read reflects the latest committed state.
    """

    # Tasks
    def get_task(self, task_id: str) -> Task | None: ...
    def get_all_tasks(self) -> list[Task]: ...
    def get_active_tasks(self) -> list[Task]: ...
    def get_tasks_by_owner(self, agent_id: str) -> list[Task]: ...
    def save_task(self, task: Task) -> Task: ...
    def delete_task(self, task_id: str) -> bool: ...

    # Agents
    def get_agent(self, agent_id: str) -> AgentConfig | None: ...
    def get_all_agents(self) -> list[AgentConfig]: ...
    def save_agent(self, agent: AgentConfig) -> AgentConfig: ...

    # History
    def append_history(self, entry: StatusUpdate) -> None: ...
    def get_history(self, task_id: str | None = None, limit: int = 50) -> list[StatusUpdate]: ...


class NotificationChannel(Protocol):
    """
    One notification tier (silent or visible).

    Which physical endpoint an agent id maps to is the channel's own configuration.
    `send` reports delivery success; transport errors are returned as False.
    """

    async def send(self, agent_id: str, message: str) -> bool: ...


class WakeStateRepo(Protocol):
    """Persistence for the wake engine's memory. Loaded once per tick, saved only if mutated."""

    def load(self) -> WakeState: ...
    def save(self, state: WakeState) -> None: ...
