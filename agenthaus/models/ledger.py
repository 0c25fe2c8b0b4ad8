import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from agenthaus.db.database import Base
from agenthaus.utils.clock import utcnow


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    tx_hash = Column(String, nullable=True, index=True)
    type = Column(String, default="send")
    status = Column(String, nullable=False)  # confirmed | failed
    to_address = Column(String, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False)
    block_number = Column(Integer, nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow)
