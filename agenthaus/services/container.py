"""Explicit wiring of stores, collaborators and pipeline components."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agenthaus.agent.gateway import ModelGateway, OpenAICompatibleGateway
from agenthaus.agent.runtime import AgentRuntime
from agenthaus.agent.store import AgentStore
from agenthaus.channels.pairing import PairingService
from agenthaus.channels.router import ChannelRouter
from agenthaus.cron.scheduler import CronScheduler
from agenthaus.cron.store import CronJobStore
from agenthaus.db.database import SessionLocal
from agenthaus.ledger.client import HttpLedgerClient, LedgerClient
from agenthaus.ledger.executor import TransactionExecutor
from agenthaus.ledger.tokens import AccountingConverter
from agenthaus.services.identity import IdentityServiceClient
from agenthaus.services.trust import TrustServiceClient
from agenthaus.services.verification import VerificationFlow
from agenthaus.session.store import SessionStore
from agenthaus.skills.builtin import default_registry
from agenthaus.skills.registry import SkillRegistry


@dataclass
class Platform:
    agents: AgentStore
    sessions: SessionStore
    cron_jobs: CronJobStore
    pairing: PairingService
    router: ChannelRouter
    ledger: LedgerClient
    executor: TransactionExecutor
    skills: SkillRegistry
    runtime: AgentRuntime
    scheduler: CronScheduler
    trust: TrustServiceClient
    identity: IdentityServiceClient
    verification: VerificationFlow


def build_platform(
    session_factory: async_sessionmaker[AsyncSession],
    gateway: Optional[ModelGateway] = None,
    ledger: Optional[LedgerClient] = None,
    converter: Optional[AccountingConverter] = None,
    trust: Optional[TrustServiceClient] = None,
    identity: Optional[IdentityServiceClient] = None,
) -> Platform:
    agents = AgentStore(session_factory)
    sessions = SessionStore(session_factory)
    cron_jobs = CronJobStore(session_factory)
    ledger = ledger or HttpLedgerClient()
    converter = converter or AccountingConverter()
    trust = trust or TrustServiceClient()

    pairing = PairingService(agents)
    skills = default_registry()
    executor = TransactionExecutor(agents, ledger, converter)
    runtime = AgentRuntime(
        agents=agents,
        sessions=sessions,
        gateway=gateway or OpenAICompatibleGateway(),
        skills=skills,
        executor=executor,
        ledger=ledger,
        converter=converter,
    )
    return Platform(
        agents=agents,
        sessions=sessions,
        cron_jobs=cron_jobs,
        pairing=pairing,
        router=ChannelRouter(agents, sessions, pairing),
        ledger=ledger,
        executor=executor,
        skills=skills,
        runtime=runtime,
        scheduler=CronScheduler(cron_jobs, agents, runtime),
        trust=trust,
        identity=identity or IdentityServiceClient(),
        verification=VerificationFlow(agents, trust),
    )


@lru_cache
def get_platform() -> Platform:
    """Process-wide platform, used as a FastAPI dependency."""
    return build_platform(SessionLocal)
