"""Exception hierarchy shared by the router, runtime, executor and transports."""

from __future__ import annotations


class AgentHausError(Exception):
    """Base class for every error raised by agenthaus."""


class AgentNotFound(AgentHausError):
    def __init__(self, agent_id: str):
        super().__init__(f"Agent {agent_id} not found")
        self.agent_id = agent_id


# --- Intent validation (never leave the executor) ---

class IntentRejected(AgentHausError):
    """An intent was refused before execution. The message is user-facing."""


class InvalidRecipient(IntentRejected):
    pass


class InvalidAmount(IntentRejected):
    pass


class UnsupportedCurrency(IntentRejected):
    pass


class InsufficientBalance(IntentRejected):
    def __init__(self, message: str, required: float, available: float):
        super().__init__(message)
        self.required = required
        self.available = available


class SpendingLimitExceeded(IntentRejected):
    pass


class WalletNotInitialized(IntentRejected):
    pass


# --- Channels ---

class PairingCodeInvalidOrExpired(AgentHausError):
    def __init__(self, code: str):
        super().__init__(f"Invalid or expired pairing code: {code}")
        self.code = code


class ChannelAuthFailed(AgentHausError):
    pass


# --- Model providers ---

class ProviderError(AgentHausError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderRateLimited(ProviderError):
    pass


class ProviderRequestRejected(ProviderError):
    pass


class ProviderUnauthorized(ProviderError):
    pass


class ProviderUnavailable(ProviderError):
    """Timeout, DNS or connection failure talking to the provider."""


# --- Ledger ---

class LedgerError(AgentHausError):
    pass


class LedgerSubmissionFailed(LedgerError):
    pass


class LedgerConfirmationTimeout(LedgerError):
    pass


# --- Other external services ---

class ServiceUnavailable(AgentHausError):
    pass
