# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from awm.config import WorkConfig
from awm.tasks.task_manager import WorkManager
from awm.tasks.task_store import TaskStore

from .fakes import BASE_MS, ManualClock


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the bootstrap and connectors.

    We intentionally use a SimpleNamespace rather than reading the environment,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="awm-test",
        data_dir=tmp_path,
        db_path=tmp_path / "awm.sqlite3",
        wake_state_path=tmp_path / "wake_state.json",
        channel_map_path=tmp_path / "channels.json",
        matrix_store_path=tmp_path / "matrix_store",
        dry_run=True,
        gateway_url="http://gateway.test",
        gateway_token="",
        matrix_homeserver="",
        matrix_user_id="",
        matrix_password="",
        work_config=lambda: WorkConfig(),
    )


@pytest.fixture()
def clock() -> ManualClock:
    return ManualClock(BASE_MS)


@pytest.fixture()
def store(tmp_path: Path) -> TaskStore:
    return TaskStore(tmp_path / "awm.sqlite3")


@pytest.fixture()
def manager(store: TaskStore, clock: ManualClock) -> WorkManager:
    """
    WorkManager over a real SQLite store and a manual clock.

    NOTE: the store is real on purpose, its read-after-write behaviour is part of
    what the manager and engine tests rely on.
    """
    return WorkManager(store, WorkConfig(), clock=clock)
