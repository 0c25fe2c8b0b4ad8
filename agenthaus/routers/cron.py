from typing import List

from fastapi import APIRouter, Depends, HTTPException

from agenthaus.core.auth import get_api_key, verify_cron_secret
from agenthaus.core.config import settings
from agenthaus.schemas.cron import CronJobCreate, CronJobResponse, CronJobUpdate, TickResponse
from agenthaus.services.container import Platform, get_platform

router = APIRouter(
    prefix="/agents/{agent_id}/cron",
    tags=["cron"],
    dependencies=[Depends(get_api_key)]
)

tick_router = APIRouter(prefix="/cron", tags=["cron"])


async def _agent_job(platform: Platform, agent_id: str, job_id: str):
    job = await platform.cron_jobs.get(job_id)
    if job is None or job.agent_id != agent_id:
        raise HTTPException(status_code=404, detail="Cron job not found")
    return job


@router.get("/", response_model=List[CronJobResponse])
async def list_jobs(agent_id: str, platform: Platform = Depends(get_platform)):
    agent = await platform.agents.require(agent_id)
    return await platform.cron_jobs.seed_defaults(agent.id, agent.template_type)


@router.post("/", response_model=CronJobResponse, status_code=201)
async def create_job(agent_id: str, job_in: CronJobCreate, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    return await platform.cron_jobs.create(agent_id, **job_in.model_dump())


@router.patch("/{job_id}", response_model=CronJobResponse)
async def update_job(agent_id: str, job_id: str, job_in: CronJobUpdate, platform: Platform = Depends(get_platform)):
    await _agent_job(platform, agent_id, job_id)
    return await platform.cron_jobs.update(job_id, **job_in.model_dump(exclude_unset=True))


@router.delete("/{job_id}")
async def delete_job(agent_id: str, job_id: str, platform: Platform = Depends(get_platform)):
    await _agent_job(platform, agent_id, job_id)
    await platform.cron_jobs.delete(job_id)
    return {"detail": "Cron job deleted"}


@tick_router.api_route("/tick", methods=["GET", "POST"], response_model=TickResponse,
                       dependencies=[Depends(verify_cron_secret)])
async def tick(platform: Platform = Depends(get_platform)):
    summary = await platform.scheduler.tick()
    pruned = await platform.sessions.prune_expired(settings.SESSION_MESSAGE_RETENTION_DAYS)
    return TickResponse(pruned_messages=pruned, **summary.to_dict())
