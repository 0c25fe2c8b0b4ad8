from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text

from agenthaus.db.database import Base
from agenthaus.utils.clock import utcnow


class AgentVerification(Base):
    __tablename__ = "agent_verifications"

    agent_id = Column(String, ForeignKey("agents.id", ondelete="CASCADE"), primary_key=True)
    status = Column(String, default="pending")  # pending | challenge_signed | verified | failed
    public_key = Column(Text, nullable=False)
    encrypted_private_key = Column(Text, nullable=False)
    session_id = Column(String, nullable=True)
    challenge = Column(Text, nullable=True)
    human_id = Column(String, nullable=True)
    app_config = Column(JSON, nullable=True)
    verified = Column(Boolean, default=False)
    verified_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
