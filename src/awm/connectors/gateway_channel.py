# src/awm/connectors/gateway_channel.py

from __future__ import annotations

import logging

import httpx

from .channel_map import ChannelMap

logger = logging.getLogger(__name__)

SILENT_WAKE_PREFIX = "[AWM Silent Wake]"
WAKE_LABEL = "awm-wake"


class GatewaySilentChannel:
    """
    Silent tier: delivers a wake into the agent's own session through the agent gateway.

    POST {gateway_url}/tools/invoke with the `sessions_send` tool. The agent sees it as a
    system message; humans watching the visible channel do not. Fire-and-forget
    (timeoutSeconds=0), so a 2xx only means the gateway accepted it.
    """

    def __init__(
        self,
        gateway_url: str,
        token: str,
        channels: ChannelMap,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._channels = channels
        self._client = httpx.AsyncClient(
            base_url=gateway_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def send(self, agent_id: str, message: str) -> bool:
        session_agent = self._channels.session_agent(agent_id)
        if not session_agent:
            logger.error("No gateway session mapping for: %s", agent_id)
            return False

        payload = {
            "tool": "sessions_send",
            "args": {
                "agentId": session_agent,
                "message": f"{SILENT_WAKE_PREFIX}\n{message}",
                "label": WAKE_LABEL,
                "timeoutSeconds": 0,
            },
        }

        try:
            response = await self._client.post("/tools/invoke", json=payload)
        except httpx.HTTPError as e:
            logger.error("Silent wake error for %s: %r", agent_id, e)
            return False

        if response.is_success:
            logger.info("Silent wake sent to %s (session agent %s)", agent_id, session_agent)
            return True

        logger.error("Silent wake failed for %s: %s %s", agent_id, response.status_code, response.text[:500])
        return False

    async def aclose(self) -> None:
        await self._client.aclose()
