"""Model Gateway: one chat-completion call against a named provider/model."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx
from loguru import logger

from agenthaus.core.config import settings
from agenthaus.errors import (
    ProviderError,
    ProviderRateLimited,
    ProviderRequestRejected,
    ProviderUnauthorized,
    ProviderUnavailable,
)
from agenthaus.services.http import describe_http_error

PROVIDER_BASE_URLS = {
    "openrouter": "https://openrouter.ai/api/v1",
    "openai": "https://api.openai.com/v1",
    "groq": "https://api.groq.com/openai/v1",
    "grok": "https://api.x.ai/v1",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai",
    "deepseek": "https://api.deepseek.com/v1",
    "zai": "https://open.bigmodel.cn/api/paas/v4",
}

DEFAULT_MODELS = {
    "openrouter": "meta-llama/llama-3.3-70b-instruct:free",
    "openai": "gpt-4o-mini",
    "groq": "llama-3.3-70b-versatile",
    "grok": "grok-3-mini-fast",
    "gemini": "gemini-2.0-flash",
    "deepseek": "deepseek-chat",
    "zai": "glm-4-flash",
}


def default_model(provider: str) -> str:
    return DEFAULT_MODELS.get(provider, DEFAULT_MODELS["openrouter"])


@dataclass
class ChatResponse:
    text: str
    model_used: str
    usage: dict = field(default_factory=dict)


class ModelGateway(Protocol):
    async def complete(self, messages: list[dict], provider: str, model: str) -> ChatResponse: ...


def classify_status(status_code: int, provider: str, detail: str) -> ProviderError:
    message = f"{provider} API error ({status_code}): {detail[:300]}"
    if status_code == 429:
        return ProviderRateLimited(message, status_code)
    if status_code in (400, 502, 503):
        return ProviderRequestRejected(message, status_code)
    if status_code in (401, 403):
        return ProviderUnauthorized(message, status_code)
    return ProviderError(message, status_code)


class OpenAICompatibleGateway:
    """Every supported provider speaks the OpenAI chat-completions dialect."""

    def __init__(
        self,
        api_keys: Optional[dict[str, Optional[str]]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_tokens: int = 2048,
        temperature: float = 0.7,
    ):
        self.api_keys = api_keys if api_keys is not None else settings.provider_keys()
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self.transport = transport
        self.max_tokens = max_tokens
        self.temperature = temperature

    async def complete(self, messages: list[dict], provider: str, model: str) -> ChatResponse:
        base_url = PROVIDER_BASE_URLS.get(provider)
        if base_url is None:
            raise ProviderError(f"Unknown model provider: {provider}")
        api_key = self.api_keys.get(provider)
        if not api_key:
            raise ProviderUnauthorized(f"No API key configured for {provider}")

        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        if provider == "openrouter":
            headers["X-Title"] = "AgentHaus"
        payload = {
            "model": model,
            "messages": messages,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(f"{base_url}/chat/completions", json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise ProviderUnavailable(describe_http_error(e, provider)) from e

        if response.status_code >= 400:
            raise classify_status(response.status_code, provider, response.text)

        try:
            data = response.json()
        except ValueError:
            raise ProviderRequestRejected(
                f"{provider} returned non-JSON response (status {response.status_code})", response.status_code
            )
        if not isinstance(data, dict):
            raise ProviderRequestRejected(f"{provider} returned an unexpected response body", response.status_code)
        choices = data.get("choices") or []
        if not choices:
            raise ProviderRequestRejected(f"{provider} returned no choices", response.status_code)
        text = (choices[0].get("message") or {}).get("content") or ""
        logger.debug(f"{provider}/{model} returned {len(text)} chars")
        return ChatResponse(text=text, model_used=data.get("model") or model, usage=data.get("usage") or {})
