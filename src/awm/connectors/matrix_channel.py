# src/awm/connectors/matrix_channel.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path

from nio import AsyncClient, AsyncClientConfig, LoginResponse, RoomSendResponse

from .channel_map import ChannelMap

logger = logging.getLogger(__name__)

SESSION_FIELDS = ("access_token", "user_id", "device_id")


def read_session(path: Path) -> dict[str, str] | None:
    """Saved login from session.json, or None when absent, unreadable or incomplete."""
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, ValueError):
        logger.warning("Unreadable Matrix session file %s; ignoring it", path)
        return None
    if not isinstance(data, dict) or not all(data.get(k) for k in SESSION_FIELDS):
        logger.warning("Incomplete Matrix session in %s; ignoring it", path)
        return None
    return {k: str(data[k]) for k in SESSION_FIELDS}


def write_session(path: Path, resp: LoginResponse) -> None:
    tmp = path.with_suffix(".tmp")
    tmp.write_text(json.dumps({k: getattr(resp, k) for k in SESSION_FIELDS}), "utf-8")
    os.replace(tmp, path)
    with contextlib.suppress(OSError):
        os.chmod(path, 0o600)


async def create_matrix_client(settings) -> AsyncClient | None:
    """
    Matrix client used only to post escalations (no sync loop, no E2EE).

    A saved session.json under matrix_store_path is reused; otherwise the password logs
    in once and the new session is saved. The file holds credentials: keep it out of git.
    """
    if not settings.matrix_homeserver or not settings.matrix_user_id:
        logger.error("Matrix is not configured: set AWM_MATRIX_HOMESERVER and AWM_MATRIX_USER_ID")
        return None

    store_dir = Path(settings.matrix_store_path)
    store_dir.mkdir(parents=True, exist_ok=True)
    session_file = store_dir / "session.json"

    client = AsyncClient(
        settings.matrix_homeserver,
        settings.matrix_user_id,
        config=AsyncClientConfig(encryption_enabled=False),
    )

    session = read_session(session_file)
    if session is not None:
        client.access_token = session["access_token"]
        client.user_id = session["user_id"]
        client.device_id = session["device_id"]
        logger.info("Matrix session restored for %s", client.user_id)
        return client

    if not settings.matrix_password:
        logger.error("No Matrix session saved; set AWM_MATRIX_PASSWORD once to log in")
        await client.close()
        return None

    resp = await client.login(password=settings.matrix_password, device_name=f"{settings.app_name} escalations")
    if not isinstance(resp, LoginResponse):
        logger.error("Matrix login failed: %r", resp)
        await client.close()
        return None

    try:
        write_session(session_file, resp)
    except OSError:
        # Still logged in; the next run just logs in again.
        logger.exception("Failed to save Matrix session to %s", session_file)
    else:
        logger.info("Matrix session saved to %s", session_file)
    return client


class MatrixVisibleChannel:
    """Visible tier: posts the wake text into the agent's Matrix room, where humans see it too."""

    def __init__(self, client: AsyncClient, channels: ChannelMap) -> None:
        self._client = client
        self._channels = channels

    async def send(self, agent_id: str, message: str) -> bool:
        room_id = self._channels.room_id(agent_id)
        if not room_id:
            logger.error("No Matrix room mapping for: %s", agent_id)
            return False

        resp = await self._client.room_send(
            room_id=room_id,
            message_type="m.room.message",
            content={"msgtype": "m.text", "body": message},
        )
        if isinstance(resp, RoomSendResponse):
            logger.info("Escalated %s to Matrix room %s", agent_id, room_id)
            return True

        logger.error("Matrix send failed for %s: %r", agent_id, resp)
        return False

    async def aclose(self) -> None:
        await self._client.close()
