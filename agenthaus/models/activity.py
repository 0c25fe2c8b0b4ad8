from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text

from agenthaus.db.database import Base
from agenthaus.utils.clock import utcnow


class ActivityLog(Base):
    """Audit trail entry. type is one of action | warning | error | info."""

    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    agent_id = Column(String, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String, nullable=False, default="action")
    message = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
