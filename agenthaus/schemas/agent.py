from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class AgentBase(BaseModel):
    name: str
    template_type: str = "custom"
    system_prompt: Optional[str] = None
    llm_provider: str = "openrouter"
    llm_model: Optional[str] = None
    spending_limit: float = Field(default=100.0, ge=0)


class AgentCreate(AgentBase):
    pass


class AgentUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None
    system_prompt: Optional[str] = None
    llm_provider: Optional[str] = None
    llm_model: Optional[str] = None
    spending_limit: Optional[float] = Field(default=None, ge=0)
    deployed_tokens: Optional[List[str]] = None


class AgentResponse(AgentBase):
    id: str
    status: str
    wallet_address: Optional[str] = None
    spending_used: float
    deployed_tokens: Optional[List[str]] = None
    telegram_bot_username: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PairingCodeResponse(BaseModel):
    code: str
    expires_at: datetime
    is_new: bool


class WalletResponse(BaseModel):
    address: str
    derivation_index: int


class ChatTurn(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = []
    allow_wallet: bool = True


class ChatResponse(BaseModel):
    response: str


class TelegramConnect(BaseModel):
    bot_token: str
    allowed_chat_ids: Optional[List[str]] = None


class VerifyRequest(BaseModel):
    action: str = "start"


class ActivityResponse(BaseModel):
    id: int
    type: str
    message: str
    meta: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionResponse(BaseModel):
    id: str
    tx_hash: Optional[str] = None
    status: str
    to_address: str
    amount: float
    currency: str
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
