"""Normalized messages crossing the channel boundary."""

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class InboundMessage:
    channel: str
    sender_id: str
    chat_id: str
    content: str
    sender_name: Optional[str] = None
    dedicated_bot_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class OutboundMessage:
    channel: str
    chat_id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
