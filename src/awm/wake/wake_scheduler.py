# src/awm/wake/wake_scheduler.py

from __future__ import annotations

import asyncio
import logging

from .wake_engine import WakeEngine

logger = logging.getLogger(__name__)


async def run_wake_scheduler(
        engine: WakeEngine,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling loop around WakeEngine.run_tick.

    Every interval_seconds one tick runs to completion. A failing tick is logged and the
    loop keeps going; the next tick reloads everything from storage.

    To stop the scheduler, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))

    while True:
        try:
            await engine.run_tick()
        except Exception:
            logger.exception("wake tick failed")

        await asyncio.sleep(sleep_s)
