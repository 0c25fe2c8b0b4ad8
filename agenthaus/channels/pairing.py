"""
Pairing codes: short, human-friendly tokens that bind a sender on a shared
bot to one agent.

Format: "AF" + 4 chars from 0-9A-Z without I and O (e.g. "AF7X2K").
Codes expire after 24 hours and can be regenerated.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger

from agenthaus.agent.store import AgentStore
from agenthaus.errors import AgentHausError, PairingCodeInvalidOrExpired
from agenthaus.models import Agent
from agenthaus.utils.clock import utcnow

CODE_PREFIX = "AF"
CODE_CHARS = "0123456789ABCDEFGHJKLMNPQRSTUVWXYZ"
CODE_LENGTH = 4
CODE_EXPIRY = timedelta(hours=24)
MAX_GENERATION_ATTEMPTS = 10

# Matches AF7X2K, af7x2k, AF-7X2K, af 7x2k, /pair AF7X2K
PAIRING_CODE_RE = re.compile(r"\b(?:/pair\s+)?(?:AF[\s-]?)([0-9A-HJ-NP-Z]{4})\b", re.IGNORECASE)
BARE_CODE_RE = re.compile(r"^\s*AF[\s-]?[0-9A-HJ-NP-Z]{4}\s*$", re.IGNORECASE)


class PairingError(AgentHausError):
    pass


@dataclass
class PairingCode:
    code: str
    expires_at: datetime
    is_new: bool


def extract_pairing_code(text: str) -> Optional[str]:
    """Normalized code (e.g. "AF7X2K") found anywhere in text, else None."""
    match = PAIRING_CODE_RE.search(text.strip())
    if not match:
        return None
    return CODE_PREFIX + match.group(1).upper()


def is_bare_code(text: str) -> bool:
    return bool(BARE_CODE_RE.match(text))


def normalize_code(code: str) -> str:
    return re.sub(r"[\s-]", "", code).upper()


def random_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(CODE_CHARS) for _ in range(CODE_LENGTH))


class PairingService:
    def __init__(self, agents: AgentStore):
        self.agents = agents

    async def resolve(self, code: str, now: Optional[datetime] = None) -> Agent:
        """The active agent owning an unexpired code."""
        code = normalize_code(code)
        agent = await self.agents.find_by_pairing_code(code, now)
        if agent is None:
            raise PairingCodeInvalidOrExpired(code)
        return agent

    async def get_or_create(self, agent_id: str) -> PairingCode:
        agent = await self.agents.require(agent_id)
        if agent.status != "active":
            raise PairingError("Agent must be active to generate a pairing code. Deploy it first.")

        now = utcnow()
        if agent.pairing_code and agent.pairing_code_expires_at and agent.pairing_code_expires_at > now:
            return PairingCode(agent.pairing_code, agent.pairing_code_expires_at, is_new=False)

        code = await self._generate_unique()
        expires_at = now + CODE_EXPIRY
        await self.agents.set_pairing_code(agent_id, code, expires_at)
        logger.info(f"Issued pairing code {code} for agent {agent_id}")
        return PairingCode(code, expires_at, is_new=True)

    async def revoke(self, agent_id: str) -> None:
        await self.agents.require(agent_id)
        await self.agents.set_pairing_code(agent_id, None, None)
        logger.info(f"Revoked pairing code for agent {agent_id}")

    async def _generate_unique(self) -> str:
        for _ in range(MAX_GENERATION_ATTEMPTS):
            code = random_code()
            if not await self.agents.pairing_code_taken(code):
                return code
        raise PairingError("Failed to generate a unique pairing code. Try again.")
