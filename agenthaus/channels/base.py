from __future__ import annotations

import hmac
from abc import ABC, abstractmethod
from typing import Any, Optional

from agenthaus.bus.events import InboundMessage, OutboundMessage
from agenthaus.errors import ChannelAuthFailed


def verify_shared_secret(provided: Optional[str], expected: Optional[str]) -> None:
    """Constant-time secret comparison. Raises ChannelAuthFailed on mismatch."""
    if not expected:
        raise ChannelAuthFailed("Channel secret is not configured")
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise ChannelAuthFailed("Invalid channel secret")


class BaseChannel(ABC):
    """A webhook-driven transport: parse provider payloads in, send replies out."""

    name: str = "base"

    @abstractmethod
    def parse(self, payload: dict[str, Any]) -> Optional[InboundMessage]:
        """Normalize a provider payload, or None when it carries no text message."""

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        ...

    def is_allowed(self, sender_id: str) -> bool:
        return True
