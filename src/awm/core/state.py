# src/awm/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config import Settings
    from ..connectors.channel_map import ChannelMap
    from ..tasks.task_manager import WorkManager
    from ..tasks.task_store import TaskStore
    from ..wake.wake_engine import WakeEngine
    from ..wake.wake_store import JsonWakeStateStore
    from .ports import NotificationChannel


@dataclass
class AppState:
    # Settings are kept here so connectors can read them without a global lookup.
    settings: Settings

    store: TaskStore
    manager: WorkManager
    wake_store: JsonWakeStateStore
    channels: ChannelMap

    # Filled in by open_channels() once the async transports are up.
    silent: NotificationChannel | None = None
    visible: NotificationChannel | None = None
    engine: WakeEngine | None = None
