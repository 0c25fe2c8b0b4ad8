import uuid

from sqlalchemy import JSON, Column, DateTime, Float, Integer, String, Text

from agenthaus.db.database import Base
from agenthaus.utils.clock import utcnow

AGENT_STATUSES = ("draft", "deploying", "active", "paused", "stopped")


class Agent(Base):
    __tablename__ = "agents"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    template_type = Column(String, default="custom")
    status = Column(String, default="draft", index=True)
    system_prompt = Column(Text, nullable=True)

    llm_provider = Column(String, default="openrouter")
    llm_model = Column(String, default="meta-llama/llama-3.3-70b-instruct:free")

    # Wallet (derived by the ledger service; null until initialized)
    wallet_address = Column(String, nullable=True)
    wallet_derivation_index = Column(Integer, nullable=True, unique=True)

    # Spending, tracked in the accounting currency (USD-equivalent)
    spending_limit = Column(Float, default=100.0, nullable=False)
    spending_used = Column(Float, default=0.0, nullable=False)

    # Token contract addresses this agent deployed
    deployed_tokens = Column(JSON, default=list)

    # Shared-bot pairing
    pairing_code = Column(String, nullable=True, unique=True, index=True)
    pairing_code_expires_at = Column(DateTime, nullable=True)

    # Dedicated Telegram bot (token encrypted at rest)
    telegram_bot_token = Column(Text, nullable=True)
    telegram_bot_username = Column(String, nullable=True)
    telegram_webhook_secret = Column(String, nullable=True)
    telegram_chat_ids = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def has_wallet(self) -> bool:
        return self.wallet_address is not None and self.wallet_derivation_index is not None
