"""Agent repository: configuration, spending counters, audit trail."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agenthaus.errors import AgentNotFound
from agenthaus.models import ActivityLog, Agent, AgentVerification, Transaction
from agenthaus.utils.clock import utcnow


class AgentStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    # --- Agents ---

    async def get(self, agent_id: str) -> Optional[Agent]:
        async with self._sessions() as db:
            return await db.get(Agent, agent_id)

    async def require(self, agent_id: str) -> Agent:
        agent = await self.get(agent_id)
        if agent is None:
            raise AgentNotFound(agent_id)
        return agent

    async def list_agents(self, status: Optional[str] = None) -> list[Agent]:
        stmt = select(Agent).order_by(Agent.created_at.desc())
        if status:
            stmt = stmt.where(Agent.status == status)
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def create(self, **fields: Any) -> Agent:
        async with self._sessions() as db:
            agent = Agent(**fields)
            db.add(agent)
            await db.commit()
            await db.refresh(agent)
            return agent

    async def update(self, agent_id: str, **fields: Any) -> Agent:
        async with self._sessions() as db:
            agent = await db.get(Agent, agent_id)
            if agent is None:
                raise AgentNotFound(agent_id)
            for key, value in fields.items():
                setattr(agent, key, value)
            await db.commit()
            await db.refresh(agent)
            return agent

    async def delete(self, agent_id: str) -> bool:
        async with self._sessions() as db:
            result = await db.execute(delete(Agent).where(Agent.id == agent_id))
            await db.commit()
            return result.rowcount > 0

    # --- Pairing codes ---

    async def find_by_pairing_code(self, code: str, now: Optional[datetime] = None) -> Optional[Agent]:
        """Active agent holding this code, if the code has not expired."""
        now = now or utcnow()
        stmt = select(Agent).where(
            Agent.pairing_code == code,
            Agent.status == "active",
            Agent.pairing_code_expires_at > now,
        )
        async with self._sessions() as db:
            return (await db.execute(stmt)).scalars().first()

    async def pairing_code_taken(self, code: str) -> bool:
        async with self._sessions() as db:
            stmt = select(func.count()).select_from(Agent).where(Agent.pairing_code == code)
            return (await db.execute(stmt)).scalar_one() > 0

    async def set_pairing_code(self, agent_id: str, code: Optional[str], expires_at: Optional[datetime]) -> None:
        async with self._sessions() as db:
            await db.execute(
                update(Agent)
                .where(Agent.id == agent_id)
                .values(pairing_code=code, pairing_code_expires_at=expires_at)
            )
            await db.commit()

    # --- Wallet / spending ---

    async def next_wallet_index(self) -> int:
        async with self._sessions() as db:
            current = (await db.execute(select(func.max(Agent.wallet_derivation_index)))).scalar()
            return 0 if current is None else current + 1

    async def set_wallet(self, agent_id: str, address: str, index: int) -> Agent:
        return await self.update(agent_id, wallet_address=address, wallet_derivation_index=index)

    async def increment_spending(self, agent_id: str, amount: float) -> None:
        """Add to spending_used in a single UPDATE so concurrent writers never lose an increment."""
        if amount <= 0:
            return
        async with self._sessions() as db:
            await db.execute(
                update(Agent)
                .where(Agent.id == agent_id)
                .values(spending_used=Agent.spending_used + amount)
            )
            await db.commit()

    # --- Audit trail ---

    async def log_activity(
        self,
        agent_id: str,
        message: str,
        type: str = "action",
        metadata: Optional[dict] = None,
    ) -> ActivityLog:
        async with self._sessions() as db:
            entry = ActivityLog(agent_id=agent_id, type=type, message=message, meta=metadata)
            db.add(entry)
            await db.commit()
            return entry

    async def list_activity(self, agent_id: str, limit: int = 50) -> list[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.agent_id == agent_id)
            .order_by(ActivityLog.id.desc())
            .limit(limit)
        )
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def record_transaction(self, **fields: Any) -> Transaction:
        async with self._sessions() as db:
            tx = Transaction(**fields)
            db.add(tx)
            await db.commit()
            return tx

    async def list_transactions(self, agent_id: str, limit: int = 50) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.agent_id == agent_id)
            .order_by(Transaction.created_at.desc())
            .limit(limit)
        )
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    # --- Trust service verification ---

    async def get_verification(self, agent_id: str) -> Optional[AgentVerification]:
        async with self._sessions() as db:
            return await db.get(AgentVerification, agent_id)

    async def save_verification(self, agent_id: str, **fields: Any) -> AgentVerification:
        async with self._sessions() as db:
            record = await db.get(AgentVerification, agent_id)
            if record is None:
                record = AgentVerification(agent_id=agent_id, **fields)
                db.add(record)
            else:
                for key, value in fields.items():
                    setattr(record, key, value)
            await db.commit()
            await db.refresh(record)
            return record
