"""Cron Scheduler: one tick matches schedules and fans due jobs into the runtime."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from loguru import logger

from agenthaus.agent.runtime import AgentRuntime
from agenthaus.agent.store import AgentStore
from agenthaus.core.config import settings
from agenthaus.cron.schedule import cron_matches
from agenthaus.cron.store import CronJobStore
from agenthaus.models import Agent, CronJob
from agenthaus.utils.clock import to_naive_utc, utcnow


@dataclass
class JobResult:
    agent_id: str
    job_id: str
    job_name: str
    success: bool
    error: Optional[str] = None


@dataclass
class TickSummary:
    checked: int = 0
    executed: int = 0
    errors: int = 0
    results: list[JobResult] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def scheduled_message(job: CronJob) -> str:
    return f"[SCHEDULED TASK: {job.name}] {job.instruction}"


class CronScheduler:
    def __init__(
        self,
        jobs: CronJobStore,
        agents: AgentStore,
        runtime: AgentRuntime,
        dedup_seconds: Optional[int] = None,
        tz: Optional[str] = None,
    ):
        self.jobs = jobs
        self.agents = agents
        self.runtime = runtime
        self.dedup_seconds = settings.CRON_DEDUP_SECONDS if dedup_seconds is None else dedup_seconds
        self.tz = ZoneInfo(tz or settings.CRON_TIMEZONE)

    def is_due(self, job: CronJob, now: datetime) -> bool:
        local = now.replace(tzinfo=timezone.utc).astimezone(self.tz)
        if not cron_matches(job.schedule, local):
            return False
        if job.last_run is None:
            return True
        return now - job.last_run >= timedelta(seconds=self.dedup_seconds)

    async def tick(self, now: Optional[datetime] = None) -> TickSummary:
        """Run every due job concurrently and wait for all of them to settle."""
        now = to_naive_utc(now) if now else utcnow()
        candidates = await self.jobs.due_candidates()
        summary = TickSummary(checked=len(candidates))

        due = [(job, agent) for job, agent in candidates if self.is_due(job, now)]
        if not due:
            logger.debug(f"Cron tick at {now:%H:%M}: {summary.checked} checked, nothing due")
            return summary

        outcomes = await asyncio.gather(
            *(self._run_job(job, agent, now) for job, agent in due),
            return_exceptions=True,
        )
        for (job, agent), outcome in zip(due, outcomes):
            if outcome is None:
                continue  # claimed by an overlapping tick
            if isinstance(outcome, BaseException):
                outcome = JobResult(agent.id, job.id, job.name, success=False, error=str(outcome))
            summary.results.append(outcome)

        summary.executed = sum(1 for r in summary.results if r.success)
        summary.errors = sum(1 for r in summary.results if not r.success)
        logger.success(
            f"Cron tick: {summary.checked} checked, {summary.executed} executed, {summary.errors} failed"
        )
        return summary

    async def _run_job(self, job: CronJob, agent: Agent, now: datetime) -> Optional[JobResult]:
        if not await self.jobs.claim(job.id, now, self.dedup_seconds):
            logger.debug(f"Cron job {job.id} already claimed inside the dedup window")
            return None

        prompt = scheduled_message(job)
        try:
            reply = await self.runtime.process_message(agent.id, prompt, history=[])
        except Exception as e:
            msg = str(e) or e.__class__.__name__
            logger.error(f'Cron "{job.name}" for agent {agent.id} failed: {msg}')
            await self.jobs.finish(job.id, now, f"Error: {msg}")
            await self.agents.log_activity(
                agent.id,
                f'⏰ Cron "{job.name}" failed: {msg[:200]}',
                type="error",
                metadata={"jobId": job.id},
            )
            return JobResult(agent.id, job.id, job.name, success=False, error=msg)

        await self.jobs.finish(job.id, now, reply)
        await self.agents.log_activity(
            agent.id,
            f'⏰ Cron "{job.name}" executed',
            metadata={"jobId": job.id, "prompt": job.instruction[:100], "responseLength": len(reply)},
        )
        return JobResult(agent.id, job.id, job.name, success=True)
