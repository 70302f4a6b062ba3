# tests/test_channel_map.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from awm.connectors.channel_map import ChannelMap
from awm.core.errors import ChannelConfigError


def _write(path: Path, data) -> Path:
    path.write_text(json.dumps(data), "utf-8")
    return path


def test_load_and_lookup(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "channels.json",
        {"agents": {"frank": {"session_agent": "main", "room_id": "!room:example.org"}}},
    )

    mapping = ChannelMap.load(path)

    assert mapping.session_agent("frank") == "main"
    assert mapping.room_id("frank") == "!room:example.org"
    assert mapping.session_agent("ghost") is None
    assert mapping.room_id("ghost") is None


def test_missing_file_is_a_config_error(tmp_path: Path) -> None:
    with pytest.raises(ChannelConfigError):
        ChannelMap.load(tmp_path / "channels.json")


@pytest.mark.parametrize("raw", ["{oops", "[]", '{"agents": []}', '{"agents": {"frank": "main"}}'])
def test_malformed_file_is_a_config_error(tmp_path: Path, raw: str) -> None:
    path = tmp_path / "channels.json"
    path.write_text(raw, "utf-8")

    with pytest.raises(ChannelConfigError):
        ChannelMap.load(path)


def test_require_agents_names_every_unmapped_owner() -> None:
    mapping = ChannelMap.from_dict(
        {
            "agents": {
                "frank": {"session_agent": "main", "room_id": "!a:example.org"},
                "ops": {"session_agent": "ops", "room_id": "  "},
            }
        }
    )

    mapping.require_agents(["frank"])

    with pytest.raises(ChannelConfigError) as excinfo:
        mapping.require_agents(["frank", "qa", "ops", "qa"])
    assert "ops, qa" in str(excinfo.value)
