import asyncio
from datetime import datetime, timedelta

import pytest

from agenthaus.cron.scheduler import CronScheduler
from agenthaus.cron.store import DEFAULT_JOBS
from agenthaus.errors import ProviderUnauthorized

NOW = datetime(2026, 1, 5, 9, 0)


@pytest.fixture
def scheduler(platform):
    return CronScheduler(platform.cron_jobs, platform.agents, platform.runtime, dedup_seconds=55, tz="UTC")


async def test_due_job_runs_through_runtime(platform, scheduler, gateway, make_agent):
    agent = await make_agent()
    job = await platform.cron_jobs.create(agent.id, "Report", "0 9 * * *", "Summarize balances.")

    summary = await scheduler.tick(NOW)

    assert (summary.checked, summary.executed, summary.errors) == (1, 1, 0)
    assert gateway.calls[0]["messages"][-1]["content"] == "[SCHEDULED TASK: Report] Summarize balances."
    stored = await platform.cron_jobs.get(job.id)
    assert stored.last_run == NOW
    assert stored.last_result == "Hello from the agent."
    activity = [a.message for a in await platform.agents.list_activity(agent.id)]
    assert '⏰ Cron "Report" executed' in activity


async def test_non_matching_schedule_is_skipped(platform, scheduler, gateway, make_agent):
    agent = await make_agent()
    await platform.cron_jobs.create(agent.id, "Later", "30 9 * * *", "later")

    summary = await scheduler.tick(NOW)

    assert (summary.checked, summary.executed) == (1, 0)
    assert gateway.calls == []


async def test_job_is_not_rerun_inside_dedup_window(platform, scheduler, gateway, make_agent):
    agent = await make_agent()
    await platform.cron_jobs.create(agent.id, "Every minute", "* * * * *", "ping")

    await scheduler.tick(NOW)
    repeat = await scheduler.tick(NOW + timedelta(seconds=30))
    later = await scheduler.tick(NOW + timedelta(seconds=60))

    assert repeat.executed == 0
    assert later.executed == 1
    assert len(gateway.calls) == 2


async def test_overlapping_ticks_run_job_once(platform, scheduler, gateway, make_agent):
    agent = await make_agent()
    await platform.cron_jobs.create(agent.id, "Every minute", "* * * * *", "ping")

    summaries = await asyncio.gather(scheduler.tick(NOW), scheduler.tick(NOW), scheduler.tick(NOW))

    assert sum(s.executed for s in summaries) == 1
    assert len(gateway.calls) == 1


async def test_failure_is_recorded_and_does_not_stop_other_jobs(platform, scheduler, gateway, make_agent):
    broken = await make_agent(name="Broken", llm_provider="groq", llm_model="broken-model")
    healthy = await make_agent(name="Healthy")
    failing = await platform.cron_jobs.create(broken.id, "Fails", "* * * * *", "x")
    await platform.cron_jobs.create(healthy.id, "Works", "* * * * *", "y")
    gateway.failures["broken-model"] = ProviderUnauthorized("No API key configured for groq")

    summary = await scheduler.tick(NOW)

    assert (summary.executed, summary.errors) == (1, 1)
    [error] = [r for r in summary.results if not r.success]
    assert error.job_id == failing.id
    assert (await platform.cron_jobs.get(failing.id)).last_result == "Error: No API key configured for groq"
    [entry] = await platform.agents.list_activity(broken.id)
    assert entry.type == "error"
    assert entry.message.startswith('⏰ Cron "Fails" failed')


async def test_disabled_jobs_and_inactive_agents_are_not_checked(platform, scheduler, make_agent):
    paused = await make_agent(status="paused")
    active = await make_agent()
    await platform.cron_jobs.create(paused.id, "Paused agent", "* * * * *", "x")
    await platform.cron_jobs.create(active.id, "Disabled", "* * * * *", "x", enabled=False)

    summary = await scheduler.tick(NOW)

    assert summary.checked == 0


async def test_schedule_uses_configured_timezone(platform, gateway, make_agent):
    scheduler = CronScheduler(platform.cron_jobs, platform.agents, platform.runtime, tz="Asia/Tokyo")
    agent = await make_agent()
    await platform.cron_jobs.create(agent.id, "Tokyo morning", "0 18 * * *", "x")

    summary = await scheduler.tick(NOW)  # 09:00 UTC is 18:00 JST

    assert summary.executed == 1


async def test_seed_defaults_only_once(platform, make_agent):
    agent = await make_agent(template_type="forex")

    first = await platform.cron_jobs.seed_defaults(agent.id, "forex")
    second = await platform.cron_jobs.seed_defaults(agent.id, "forex")

    assert [j.name for j in first] == [j["name"] for j in DEFAULT_JOBS["forex"]]
    assert [j.id for j in second] == [j.id for j in first]
    assert [j.position for j in first] == [0, 1, 2]
