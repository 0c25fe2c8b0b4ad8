from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_KEY: str = "sk-secure-key-123456"
    DATABASE_URL: str = "sqlite+aiosqlite:///./agenthaus.db"

    # Shared secrets for inbound triggers
    WEBHOOK_SECRET: Optional[str] = None
    CRON_SECRET: Optional[str] = None
    ENCRYPTION_KEY: str = "change-me-agenthaus-encryption-key"

    PUBLIC_BASE_URL: str = "http://localhost:8000"

    # Sessions / scheduling
    HISTORY_WINDOW: int = 20
    SESSION_MESSAGE_RETENTION_DAYS: int = 30
    CRON_TIMEZONE: str = "UTC"
    CRON_DEDUP_SECONDS: int = 55

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 25.0

    # Model providers
    OPENROUTER_API_KEY: Optional[str] = None
    OPENAI_API_KEY: Optional[str] = None
    GROQ_API_KEY: Optional[str] = None
    GROK_API_KEY: Optional[str] = None
    GEMINI_API_KEY: Optional[str] = None
    DEEPSEEK_API_KEY: Optional[str] = None
    ZAI_API_KEY: Optional[str] = None

    # Ledger / chain
    LEDGER_URL: str = "http://wallet-signer:8080"
    LEDGER_API_KEY: Optional[str] = None
    LEDGER_CONFIRMATION_TIMEOUT_SECONDS: float = 30.0
    BLOCK_EXPLORER_URL: str = "https://celo-sepolia.blockscout.com"
    NETWORK_NAME: str = "Celo Sepolia testnet"
    NATIVE_USD_RATE: float = 0.55
    MAX_TRANSFER_AMOUNT: float = 1_000_000

    # External trust / identity services
    TRUST_SERVICE_URL: str = "https://selfclaw.ai/api/selfclaw/v1"
    IDENTITY_SERVICE_URL: str = "https://www.8004scan.io/api/v1"

    class Config:
        env_file = ".env"

    def provider_keys(self) -> dict[str, Optional[str]]:
        return {
            "openrouter": self.OPENROUTER_API_KEY,
            "openai": self.OPENAI_API_KEY,
            "groq": self.GROQ_API_KEY,
            "grok": self.GROK_API_KEY,
            "gemini": self.GEMINI_API_KEY,
            "deepseek": self.DEEPSEEK_API_KEY,
            "zai": self.ZAI_API_KEY,
        }


settings = Settings()
