import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from agenthaus.db.database import Base
from agenthaus.utils.clock import utcnow


class CronJob(Base):
    __tablename__ = "cron_jobs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    schedule = Column(String, nullable=False)  # 5-field: min hour dom month dow
    instruction = Column(Text, nullable=False)
    enabled = Column(Boolean, default=True, nullable=False)
    last_run = Column(DateTime, nullable=True)
    last_result = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
