import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text

from agenthaus.db.database import Base
from agenthaus.utils.clock import utcnow


class ChannelBinding(Base):
    """An external sender currently talking to one agent on one channel."""

    __tablename__ = "channel_bindings"
    __table_args__ = (
        Index("ix_binding_sender_active", "channel_type", "sender_identifier", "is_active"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String, ForeignKey("agents.id", ondelete="CASCADE"), nullable=False, index=True)
    channel_type = Column(String, nullable=False)
    sender_identifier = Column(String, nullable=False)
    sender_name = Column(String, nullable=True)
    chat_identifier = Column(String, nullable=True)
    binding_type = Column(String, default="pairing")  # pairing | dedicated
    pairing_code = Column(String, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    paired_at = Column(DateTime, default=utcnow)
    last_message_at = Column(DateTime, default=utcnow)


class SessionMessage(Base):
    __tablename__ = "session_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    binding_id = Column(
        String, ForeignKey("channel_bindings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role = Column(String, nullable=False)  # user | assistant
    content = Column(Text, nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
