# src/awm/cli/main.py

"""
CLI entrypoint for the wake daemon.

Initializes logging, builds AppState, opens the channels, then either runs a single
wake tick (the default, suited to cron / systemd timers) or keeps ticking every
AWM_TICK_INTERVAL_SECONDS until interrupted.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

from ..cli.bootstrap import close_channels, create_initial_state, open_channels
from ..config import get_settings
from ..core.errors import AWMError
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..wake.wake_scheduler import run_wake_scheduler

logger = logging.getLogger(__name__)


async def _run(state: AppState) -> int:
    settings = state.settings
    try:
        engine = await open_channels(state)
        if engine is None:
            logger.error("Visible channel unavailable; not running.")
            return 1

        if settings.run_once:
            try:
                report = await engine.run_tick()
            except Exception:
                logger.exception("Wake tick failed")
                return 1
            logger.info("Done: %d notification(s) sent", report.notifications_sent)
            return 0

        runner = asyncio.create_task(
            run_wake_scheduler(engine, interval_seconds=settings.tick_interval_seconds)
        )

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Not available on every platform (e.g. Windows event loops).
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, runner.cancel)

        logger.info("Wake daemon running every %ss. Press Ctrl+C to stop.", settings.tick_interval_seconds)
        with contextlib.suppress(asyncio.CancelledError):
            await runner
        return 0
    finally:
        await close_channels(state)


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.log_dir, console_level=console_level)

    logger.info("Starting %s%s...", settings.app_name, " (dry run)" if settings.dry_run else "")

    try:
        state = create_initial_state(settings=settings)
    except AWMError as e:
        logger.error("Startup failed: %s", e)
        sys.exit(2)

    code = asyncio.run(_run(state))
    logger.info("Bye.")
    sys.exit(code)


if __name__ == "__main__":
    main()
