from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, field_validator

from agenthaus.cron.schedule import validate_expression


class CronJobBase(BaseModel):
    name: str
    schedule: str
    instruction: str
    enabled: bool = True

    @field_validator("schedule")
    @classmethod
    def check_schedule(cls, value: str) -> str:
        validate_expression(value)
        return value.strip()


class CronJobCreate(CronJobBase):
    pass


class CronJobUpdate(BaseModel):
    name: Optional[str] = None
    schedule: Optional[str] = None
    instruction: Optional[str] = None
    enabled: Optional[bool] = None

    @field_validator("schedule")
    @classmethod
    def check_schedule(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            validate_expression(value)
            return value.strip()
        return value


class CronJobResponse(CronJobBase):
    id: str
    agent_id: str
    position: int
    last_run: Optional[datetime] = None
    last_result: Optional[str] = None

    class Config:
        from_attributes = True


class JobResultResponse(BaseModel):
    agent_id: str
    job_id: str
    job_name: str
    success: bool
    error: Optional[str] = None


class TickResponse(BaseModel):
    checked: int
    executed: int
    errors: int
    pruned_messages: int = 0
    results: List[JobResultResponse] = []
