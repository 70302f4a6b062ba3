# src/awm/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the SQLite store, WorkManager and wake-state file into AppState,
- loads the channel map and fails fast if an active task's owner cannot be reached,
- opens the silent (gateway) and visible (Matrix) channels, or dry-run stand-ins.
"""

from __future__ import annotations

import contextlib
import logging

from ..config import Settings, get_settings
from ..connectors.channel_map import ChannelMap
from ..connectors.console_channel import ConsoleChannel
from ..connectors.gateway_channel import GatewaySilentChannel
from ..connectors.matrix_channel import MatrixVisibleChannel, create_matrix_client
from ..core.errors import ChannelConfigError
from ..core.state import AppState
from ..tasks.task_manager import WorkManager
from ..tasks.task_store import TaskStore
from ..wake.wake_engine import WakeEngine
from ..wake.wake_store import JsonWakeStateStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.wake_state_path.parent.mkdir(parents=True, exist_ok=True)


def _load_channel_map(settings: Settings) -> ChannelMap:
    try:
        return ChannelMap.load(settings.channel_map_path)
    except ChannelConfigError:
        if not settings.dry_run:
            raise
        logger.warning("Dry run without a usable channel map (%s)", settings.channel_map_path)
        return ChannelMap()


def create_initial_state(*, settings: Settings | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Raises ChannelConfigError when the channel map is missing or does not cover every
    agent that owns an active task (dry runs only check it when present).
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.db_path)
    manager = WorkManager(store, settings.work_config())
    channels = _load_channel_map(settings)

    if channels.entries or not settings.dry_run:
        owners = {t.owner for t in store.get_active_tasks()}
        channels.require_agents(owners)

    return AppState(
        settings=settings,
        store=store,
        manager=manager,
        wake_store=JsonWakeStateStore(settings.wake_state_path),
        channels=channels,
    )


async def open_channels(state: AppState) -> WakeEngine | None:
    """Build both notification tiers and the engine. Returns None if Matrix is unusable."""
    settings = state.settings

    if settings.dry_run:
        state.silent = ConsoleChannel("silent")
        state.visible = ConsoleChannel("visible")
    else:
        if not settings.gateway_token:
            logger.warning("AWM_GATEWAY_TOKEN is not set; gateway calls will be unauthenticated")
        client = await create_matrix_client(settings)
        if client is None:
            return None
        state.silent = GatewaySilentChannel(settings.gateway_url, settings.gateway_token, state.channels)
        state.visible = MatrixVisibleChannel(client, state.channels)

    state.engine = WakeEngine(state.manager, state.wake_store, state.silent, state.visible)
    return state.engine


async def close_channels(state: AppState) -> None:
    for channel in (state.silent, state.visible):
        close = getattr(channel, "aclose", None)
        if close is None:
            continue
        with contextlib.suppress(Exception):
            await close()
