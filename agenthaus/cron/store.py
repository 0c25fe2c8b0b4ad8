"""CronJob repository, one row per job, ordered per agent by position."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agenthaus.models import Agent, CronJob

DEFAULT_JOBS: dict[str, list[dict[str, Any]]] = {
    "forex": [
        {
            "name": "Rate Monitor",
            "schedule": "*/5 * * * *",
            "instruction": "Check all current CELO exchange rates. If any rate has moved more than 2% from the last check, report it.",
            "enabled": True,
        },
        {
            "name": "Portfolio Report",
            "schedule": "0 * * * *",
            "instruction": "Generate a portfolio status report showing current holdings and their USD values.",
            "enabled": True,
        },
        {
            "name": "Daily Market Summary",
            "schedule": "0 9 * * *",
            "instruction": "Generate a comprehensive daily market analysis for all Mento stablecoin pairs.",
            "enabled": False,
        },
    ],
    "trading": [
        {
            "name": "Price Check",
            "schedule": "*/10 * * * *",
            "instruction": "Check current exchange rates for all configured trading pairs.",
            "enabled": True,
        },
        {
            "name": "Portfolio Rebalance",
            "schedule": "0 */4 * * *",
            "instruction": "Analyze current portfolio allocation and suggest rebalancing.",
            "enabled": False,
        },
    ],
    "payment": [
        {
            "name": "Balance Alert",
            "schedule": "0 */6 * * *",
            "instruction": "Check the agent wallet balance and report if any token is running low.",
            "enabled": False,
        },
    ],
    "social": [
        {
            "name": "Community Update",
            "schedule": "0 12 * * *",
            "instruction": "Summarize today's community activity and draft a short update.",
            "enabled": False,
        },
    ],
}


class CronJobStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._sessions = session_factory

    async def list_jobs(self, agent_id: str) -> list[CronJob]:
        stmt = select(CronJob).where(CronJob.agent_id == agent_id).order_by(CronJob.position, CronJob.created_at)
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def get(self, job_id: str) -> Optional[CronJob]:
        async with self._sessions() as db:
            return await db.get(CronJob, job_id)

    async def create(self, agent_id: str, name: str, schedule: str, instruction: str, enabled: bool = True) -> CronJob:
        async with self._sessions() as db:
            position = (
                await db.execute(select(func.max(CronJob.position)).where(CronJob.agent_id == agent_id))
            ).scalar()
            job = CronJob(
                agent_id=agent_id,
                position=0 if position is None else position + 1,
                name=name,
                schedule=schedule,
                instruction=instruction,
                enabled=enabled,
            )
            db.add(job)
            await db.commit()
            await db.refresh(job)
            return job

    async def update(self, job_id: str, **fields: Any) -> Optional[CronJob]:
        async with self._sessions() as db:
            job = await db.get(CronJob, job_id)
            if job is None:
                return None
            for key, value in fields.items():
                setattr(job, key, value)
            await db.commit()
            await db.refresh(job)
            return job

    async def delete(self, job_id: str) -> bool:
        async with self._sessions() as db:
            result = await db.execute(delete(CronJob).where(CronJob.id == job_id))
            await db.commit()
            return result.rowcount > 0

    async def seed_defaults(self, agent_id: str, template: Optional[str]) -> list[CronJob]:
        """Create the template's default jobs if the agent has none yet."""
        existing = await self.list_jobs(agent_id)
        if existing:
            return existing
        for spec in DEFAULT_JOBS.get(template or "", []):
            await self.create(agent_id, **spec)
        return await self.list_jobs(agent_id)

    async def due_candidates(self) -> list[tuple[CronJob, Agent]]:
        """Enabled jobs of active agents. Schedule matching happens in the scheduler."""
        stmt = (
            select(CronJob, Agent)
            .join(Agent, Agent.id == CronJob.agent_id)
            .where(CronJob.enabled.is_(True), Agent.status == "active")
            .order_by(CronJob.agent_id, CronJob.position)
        )
        async with self._sessions() as db:
            return [(job, agent) for job, agent in (await db.execute(stmt)).all()]

    async def claim(self, job_id: str, now: datetime, window_seconds: int = 55) -> bool:
        """Stamp last_run only if the job has not run inside the dedup window.

        The conditional UPDATE makes overlapping ticks race on the database
        row: exactly one of them sees rowcount == 1.
        """
        cutoff = now - timedelta(seconds=window_seconds)
        async with self._sessions() as db:
            result = await db.execute(
                update(CronJob)
                .where(
                    CronJob.id == job_id,
                    or_(CronJob.last_run.is_(None), CronJob.last_run <= cutoff),
                )
                .values(last_run=now)
            )
            await db.commit()
            return result.rowcount == 1

    async def finish(self, job_id: str, ran_at: datetime, result: str) -> None:
        async with self._sessions() as db:
            await db.execute(
                update(CronJob).where(CronJob.id == job_id).values(last_run=ran_at, last_result=result[:200])
            )
            await db.commit()
