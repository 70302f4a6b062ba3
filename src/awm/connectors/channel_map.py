# src/awm/connectors/channel_map.py

from __future__ import annotations

"""
Agent id -> notification endpoint mapping.

Stored as a small JSON file next to the other local data:

    {
      "agents": {
        "frank": {"session_agent": "main", "room_id": "!abc123:example.org"},
        "ops":   {"session_agent": "ops",  "room_id": "!def456:example.org"}
      }
    }

`session_agent` is the id the agent gateway knows the agent by (silent tier),
`room_id` is the Matrix room used for visible escalations.
"""

import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..core.errors import ChannelConfigError

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ChannelEntry:
    session_agent: str | None = None
    room_id: str | None = None


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


@dataclass(slots=True)
class ChannelMap:
    entries: dict[str, ChannelEntry] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChannelMap:
        agents = data.get("agents")
        if not isinstance(agents, dict):
            raise ChannelConfigError("channel map must contain an 'agents' object")

        entries: dict[str, ChannelEntry] = {}
        for agent_id, raw in agents.items():
            if not isinstance(raw, dict):
                raise ChannelConfigError(f"channel map entry for {agent_id!r} must be an object")
            entries[str(agent_id)] = ChannelEntry(
                session_agent=_clean(raw.get("session_agent")),
                room_id=_clean(raw.get("room_id")),
            )
        return cls(entries=entries)

    @classmethod
    def load(cls, path: str | Path) -> ChannelMap:
        path = Path(path)
        try:
            data = json.loads(path.read_text("utf-8"))
        except FileNotFoundError as e:
            raise ChannelConfigError(f"channel map not found: {path}") from e
        except (OSError, ValueError) as e:
            raise ChannelConfigError(f"channel map unreadable: {path}: {e}") from e

        if not isinstance(data, dict):
            raise ChannelConfigError(f"channel map {path} is not a JSON object")

        mapping = cls.from_dict(data)
        logger.info("Loaded channel map: %d agent(s) from %s", len(mapping.entries), path)
        return mapping

    def session_agent(self, agent_id: str) -> str | None:
        entry = self.entries.get(agent_id)
        return entry.session_agent if entry else None

    def room_id(self, agent_id: str) -> str | None:
        entry = self.entries.get(agent_id)
        return entry.room_id if entry else None

    def require_agents(self, agent_ids: Iterable[str]) -> None:
        """Raise ChannelConfigError unless every agent has both a silent and a visible endpoint."""
        missing: list[str] = []
        for agent_id in sorted(set(agent_ids)):
            entry = self.entries.get(agent_id)
            if entry is None or entry.session_agent is None or entry.room_id is None:
                missing.append(agent_id)
        if missing:
            raise ChannelConfigError(f"no channel mapping for agent(s): {', '.join(missing)}")
