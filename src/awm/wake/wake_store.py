# src/awm/wake/wake_store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from .wake_models import WakeState

logger = logging.getLogger(__name__)


class JsonWakeStateStore:
    """
    Wake state persisted as one small JSON document.

    - missing file -> empty state
    - unreadable / malformed file -> empty state, logged (never fatal)
    - writes go through a temp file + os.replace so a crash never leaves half a file
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> WakeState:
        if not self._path.exists():
            return WakeState()
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to read wake state from %s; starting cold", self._path)
            return WakeState()
        if not isinstance(data, dict):
            logger.warning("Wake state in %s is not a JSON object; starting cold", self._path)
            return WakeState()
        return WakeState.from_dict(data)

    def save(self, state: WakeState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state.to_dict(), indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(OSError):
            os.chmod(self._path, 0o600)
        logger.debug("Saved wake state: %d pending to %s", len(state.pending_wakes), self._path)
