"""Agent Runtime: prompt -> model (with fallback) -> skills -> transfers -> audit."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from agenthaus.agent.fallback import DEFAULT_FALLBACK_POLICIES, FallbackPolicy
from agenthaus.agent.gateway import ChatResponse, ModelGateway, default_model
from agenthaus.agent.prompt import build_system_prompt
from agenthaus.agent.store import AgentStore
from agenthaus.core.config import settings
from agenthaus.errors import ProviderError
from agenthaus.ledger.client import LedgerClient
from agenthaus.ledger.executor import TransactionExecutor
from agenthaus.ledger.tokens import AccountingConverter
from agenthaus.session.store import SessionStore
from agenthaus.skills.registry import SkillContext, SkillRegistry

GENERIC_FAILURE_REPLY = (
    "⚠️ Sorry, I couldn't process your message right now. "
    "Please try again in a moment, or check the agent's model configuration."
)


class AgentRuntime:
    def __init__(
        self,
        agents: AgentStore,
        sessions: SessionStore,
        gateway: ModelGateway,
        skills: SkillRegistry,
        executor: TransactionExecutor,
        ledger: LedgerClient,
        converter: Optional[AccountingConverter] = None,
        fallback_policies: Optional[dict[str, FallbackPolicy]] = None,
        history_window: Optional[int] = None,
    ):
        self.agents = agents
        self.sessions = sessions
        self.gateway = gateway
        self.skills = skills
        self.executor = executor
        self.ledger = ledger
        self.converter = converter or executor.converter
        self.fallback_policies = DEFAULT_FALLBACK_POLICIES if fallback_policies is None else fallback_policies
        self.history_window = history_window or settings.HISTORY_WINDOW

    async def process_message(
        self,
        agent_id: str,
        user_text: str,
        history: Optional[list[dict]] = None,
        allow_wallet: bool = True,
    ) -> str:
        """Run one user turn through the full pipeline and return the reply text.

        Provider errors that survive the fallback policy propagate to the caller.
        """
        # 1. Load config and compose prompt
        agent = await self.agents.require(agent_id)
        system_prompt = build_system_prompt(agent, self.skills, allow_wallet)
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in (history or [])[-self.history_window:])
        messages.append({"role": "user", "content": user_text})

        # 2. Model call with fallback
        provider = agent.llm_provider or "openrouter"
        requested = agent.llm_model or default_model(provider)
        response, served = await self._complete(messages, provider, requested)

        metadata = {
            "userMessage": user_text[:100],
            "responseLength": len(response.text),
            "usage": response.usage,
        }
        if served != requested:
            metadata["requestedModel"] = requested
            metadata["fallbackUsed"] = served
        await self.agents.log_activity(agent.id, f"Processed message via {provider}/{served}", metadata=metadata)

        # 3. Skill commands
        ctx = SkillContext(
            agent_id=agent.id,
            wallet_address=agent.wallet_address if allow_wallet else None,
            ledger=self.ledger,
            converter=self.converter,
        )
        text, skill_count = await self.skills.execute(response.text, ctx)
        if skill_count:
            await self.agents.log_activity(
                agent.id, f"Executed {skill_count} skill(s): {agent.template_type} template"
            )

        # 4. Transaction commands
        result = await self.executor.execute(text, agent.id, allow_wallet=allow_wallet)
        if result.executed_count:
            await self.agents.log_activity(
                agent.id, f"Executed {result.executed_count} on-chain transaction(s) from chat"
            )

        logger.info(
            f"Agent {agent.id} replied via {provider}/{served}: "
            f"{skill_count} skill(s), {result.executed_count} transaction(s)"
        )
        return result.text

    async def process_channel_message(
        self,
        agent_id: str,
        binding_id: Optional[str],
        user_text: str,
        metadata: Optional[dict] = None,
    ) -> str:
        """Same pipeline with history loaded from and saved to the binding."""
        history = []
        if binding_id:
            history = await self.sessions.load_history(binding_id, self.history_window)

        reply = await self.process_message(agent_id, user_text, history, allow_wallet=True)

        if binding_id:
            await self.sessions.append_exchange(binding_id, user_text, reply, metadata)
        return reply

    async def _complete(self, messages: list[dict], provider: str, model: str) -> tuple[ChatResponse, str]:
        policy = self.fallback_policies.get(provider)
        attempts = policy.attempts(model) if policy else [model]

        last_error: Optional[ProviderError] = None
        for candidate in attempts:
            try:
                response = await self.gateway.complete(messages, provider, candidate)
            except ProviderError as e:
                if policy is None or not policy.is_retryable(e):
                    raise
                last_error = e
                logger.warning(f"{provider} error on {candidate}: {e}. Trying next model...")
                continue
            if candidate != model:
                logger.warning(f"{provider}/{model} unavailable, served by fallback {candidate}")
            return response, candidate

        raise last_error
