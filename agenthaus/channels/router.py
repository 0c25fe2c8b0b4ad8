"""
Channel Router: resolves an inbound message to exactly one agent.

Resolution order (first match wins):
  1. Dedicated bot: the transport names the agent (one bot per agent).
  2. Existing active binding for (channel, sender), including the
     /pair, /unpair and /disconnect commands.
  3. Pairing code found in the message text.
  4. Unknown sender: instructional reply, nothing is created.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from agenthaus.agent.store import AgentStore
from agenthaus.channels.pairing import PairingService, extract_pairing_code, is_bare_code, normalize_code
from agenthaus.errors import PairingCodeInvalidOrExpired
from agenthaus.models import ChannelBinding
from agenthaus.session.store import SessionStore
from agenthaus.utils.locks import KeyedLock

REPAIR_RE = re.compile(r"^/pair\s+(.+)$", re.IGNORECASE)
UNPAIR_RE = re.compile(r"^/(unpair|disconnect)\b", re.IGNORECASE)

UNKNOWN_SENDER_REPLY = "\n".join(
    [
        "👋 Welcome to **AgentHaus**!",
        "",
        "To connect to an AI agent, send your **pairing code** (e.g. `AF7X2K`).",
        "",
        "You can get a pairing code from your agent's dashboard.",
        "",
        "Commands:",
        "• Send a code to pair → `AF7X2K`",
        "• Switch agent → `/pair NEWCODE`",
        "• Disconnect → `/unpair`",
        "• Help → `/help`",
    ]
)


def invalid_code_reply(code: str) -> str:
    return (
        f"❌ Invalid or expired pairing code: `{code}`\n\n"
        "Please check the code on your agent dashboard and try again. Codes expire after 24 hours."
    )


def paired_reply(agent_name: str, template_type: Optional[str]) -> str:
    return "\n".join(
        [
            f"✅ **Paired with {agent_name}!**",
            "",
            f"You're now connected to your {template_type or 'custom'} agent.",
            "Send any message to start chatting.",
            "",
            "• Switch agent → `/pair NEWCODE`",
            "• Disconnect → `/unpair`",
        ]
    )


def already_paired_reply(agent_name: str) -> str:
    return f"✅ You're already paired with **{agent_name}**. Send any message to keep chatting."


def unpaired_reply(agent_name: str) -> str:
    return f"🔓 Disconnected from **{agent_name}**. Send a new pairing code to connect to another agent."


@dataclass
class SenderContext:
    channel_type: str
    sender_id: str
    chat_id: str
    text: str
    sender_name: Optional[str] = None
    dedicated_bot_id: Optional[str] = None


@dataclass
class RouteResult:
    kind: str  # dedicated | paired_existing | paired_new | unpaired | unknown
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    binding_id: Optional[str] = None
    system_reply: Optional[str] = None

    @property
    def should_process(self) -> bool:
        """True when the message goes to the agent rather than a system reply."""
        return self.agent_id is not None and self.system_reply is None


class ChannelRouter:
    def __init__(self, agents: AgentStore, sessions: SessionStore, pairing: PairingService):
        self.agents = agents
        self.sessions = sessions
        self.pairing = pairing
        self._locks = KeyedLock()

    async def route(self, ctx: SenderContext) -> RouteResult:
        # Serialize resolution per sender so two deliveries cannot both create a binding
        async with self._locks.hold((ctx.channel_type, ctx.sender_id)):
            result = await self._route(ctx)
        logger.info(
            f"Routed {ctx.channel_type}:{ctx.sender_id} -> {result.kind}"
            + (f" ({result.agent_name})" if result.agent_name else "")
        )
        return result

    async def _route(self, ctx: SenderContext) -> RouteResult:
        # 1. Dedicated bot
        if ctx.dedicated_bot_id:
            agent = await self.agents.get(ctx.dedicated_bot_id)
            if agent is not None and agent.status == "active":
                binding = await self._ensure_dedicated_binding(agent.id, ctx)
                return RouteResult("dedicated", agent.id, agent.name, binding.id)

        # 2. Existing active binding
        binding = await self.sessions.find_active_binding(ctx.channel_type, ctx.sender_id)
        if binding is not None:
            agent = await self.agents.get(binding.agent_id)
            if agent is not None and agent.status == "active":
                await self.sessions.touch_binding(binding.id)
                text = ctx.text.strip()

                repair = REPAIR_RE.match(text)
                if repair:
                    arg = repair.group(1).strip()
                    code = extract_pairing_code(arg) or normalize_code(arg)
                    return await self._handle_pairing(code, ctx, binding)
                if is_bare_code(text):
                    return await self._handle_pairing(extract_pairing_code(text), ctx, binding)

                if UNPAIR_RE.match(text):
                    await self.sessions.deactivate_binding(binding.id)
                    return RouteResult("unpaired", system_reply=unpaired_reply(agent.name))

                return RouteResult("paired_existing", agent.id, agent.name, binding.id)

        # 3. Pairing code in free text
        code = extract_pairing_code(ctx.text)
        if code:
            return await self._handle_pairing(code, ctx, None)

        # 4. Unknown sender
        return RouteResult("unknown", system_reply=UNKNOWN_SENDER_REPLY)

    async def _handle_pairing(
        self, code: str, ctx: SenderContext, current: Optional[ChannelBinding]
    ) -> RouteResult:
        try:
            agent = await self.pairing.resolve(code)
        except PairingCodeInvalidOrExpired as e:
            logger.info(f"Pairing code {e.code} rejected for {ctx.channel_type}:{ctx.sender_id}")
            return RouteResult("unknown", system_reply=invalid_code_reply(e.code))

        # Idempotent: already bound to this agent
        if current is not None and current.agent_id == agent.id:
            return RouteResult(
                "paired_existing", agent.id, agent.name, current.id, system_reply=already_paired_reply(agent.name)
            )

        binding = await self.sessions.create_binding(
            agent_id=agent.id,
            channel_type=ctx.channel_type,
            sender_id=ctx.sender_id,
            chat_id=ctx.chat_id,
            sender_name=ctx.sender_name,
            binding_type="pairing",
            pairing_code=code,
        )
        await self.agents.log_activity(
            agent.id,
            f"🔗 Paired via {ctx.channel_type}: {ctx.sender_name or ctx.sender_id} (code: {code})",
            metadata={
                "channel": ctx.channel_type,
                "senderId": ctx.sender_id,
                "senderName": ctx.sender_name,
                "code": code,
                "bindingId": binding.id,
            },
        )
        logger.success(f"Paired {ctx.channel_type}:{ctx.sender_id} with {agent.name} ({binding.id})")
        return RouteResult(
            "paired_new", agent.id, agent.name, binding.id, system_reply=paired_reply(agent.name, agent.template_type)
        )

    async def _ensure_dedicated_binding(self, agent_id: str, ctx: SenderContext) -> ChannelBinding:
        existing = await self.sessions.find_agent_binding(agent_id, ctx.channel_type, ctx.sender_id)
        if existing is not None:
            if existing.is_active:
                await self.sessions.touch_binding(existing.id)
                return existing
            # Keeps the conversation history of the earlier dedicated binding
            return await self.sessions.reactivate_binding(existing.id, ctx.chat_id, ctx.sender_name)
        return await self.sessions.create_binding(
            agent_id=agent_id,
            channel_type=ctx.channel_type,
            sender_id=ctx.sender_id,
            chat_id=ctx.chat_id,
            sender_name=ctx.sender_name,
            binding_type="dedicated",
        )
