"""Provider fallback policy as data: ordered candidates plus a retry predicate."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from agenthaus.errors import ProviderError, ProviderRateLimited, ProviderRequestRejected

OPENROUTER_FREE_MODELS = (
    "meta-llama/llama-3.3-70b-instruct:free",
    "meta-llama/llama-3.2-3b-instruct:free",
    "mistralai/mistral-small-3.1-24b-instruct:free",
    "qwen/qwen3-4b:free",
    "deepseek/deepseek-r1-0528:free",
    "nousresearch/hermes-3-llama-3.1-405b:free",
)


@dataclass(frozen=True)
class FallbackPolicy:
    candidates: tuple[str, ...]
    retryable: tuple[type[ProviderError], ...] = (ProviderRateLimited, ProviderRequestRejected)
    free_tier_suffix: Optional[str] = ":free"

    def applies_to(self, model: str) -> bool:
        if self.free_tier_suffix is None:
            return True
        return model.endswith(self.free_tier_suffix)

    def attempts(self, model: str) -> list[str]:
        """Requested model first, then every other candidate in order."""
        if not self.applies_to(model):
            return [model]
        return [model] + [m for m in self.candidates if m != model]

    def is_retryable(self, exc: BaseException) -> bool:
        return isinstance(exc, self.retryable)


DEFAULT_FALLBACK_POLICIES: dict[str, FallbackPolicy] = {
    "openrouter": FallbackPolicy(candidates=OPENROUTER_FREE_MODELS),
}

