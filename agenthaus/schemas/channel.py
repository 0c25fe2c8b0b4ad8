from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class BindingResponse(BaseModel):
    id: str
    agent_id: str
    channel_type: str
    sender_identifier: str
    sender_name: Optional[str] = None
    chat_identifier: Optional[str] = None
    binding_type: str
    pairing_code: Optional[str] = None
    is_active: bool
    paired_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WebhookReply(BaseModel):
    reply: Optional[str] = None
    action: str
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    route: Optional[str] = None
