# src/awm/connectors/console_channel.py

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class ConsoleChannel:
    """
    Dry-run channel: logs what would have been sent and reports success.

    Used in place of both tiers when AWM_DRY_RUN is set, so the wake state machine runs
    exactly as in production without touching the gateway or Matrix.
    """

    def __init__(self, tier: str) -> None:
        self.tier = tier
        self.sent: list[tuple[str, str]] = []

    async def send(self, agent_id: str, message: str) -> bool:
        self.sent.append((agent_id, message))
        logger.info("[DRY RUN] Would send %s wake to %s", self.tier, agent_id)
        logger.debug("[DRY RUN] %s message for %s:\n%s", self.tier, agent_id, message)
        return True

    async def aclose(self) -> None:
        return None
