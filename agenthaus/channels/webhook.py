"""Generic channel gateway webhook and the shared inbound handling path."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from agenthaus.agent.runtime import GENERIC_FAILURE_REPLY, AgentRuntime
from agenthaus.bus.events import InboundMessage
from agenthaus.channels.router import ChannelRouter, RouteResult, SenderContext
from agenthaus.errors import ProviderError


@dataclass
class InboundReply:
    reply: Optional[str]
    action: str  # processed | system_reply | failed | ignored
    route: Optional[RouteResult] = None


def normalize_payload(payload: dict[str, Any]) -> Optional[InboundMessage]:
    """Map a gateway payload onto InboundMessage.

    Accepts the nested form ``{channel, sender: {id, name}, chat: {id},
    message: {text}, meta: {botId}}`` as well as flat
    ``{channelType, senderId, senderName, chatId, text, dedicatedBotId}``.
    """
    sender = payload.get("sender") or {}
    chat = payload.get("chat") or {}
    message = payload.get("message")
    meta = payload.get("meta") or {}

    text = message.get("text") if isinstance(message, dict) else message
    text = text or payload.get("text")
    channel = payload.get("channel") or payload.get("channelType")
    sender_id = sender.get("id") or payload.get("senderId")
    if not text or not channel or not sender_id:
        return None

    chat_id = chat.get("id") or payload.get("chatId") or sender_id
    return InboundMessage(
        channel=str(channel).lower(),
        sender_id=str(sender_id),
        chat_id=str(chat_id),
        content=str(text),
        sender_name=sender.get("name") or payload.get("senderName"),
        dedicated_bot_id=meta.get("botId") or payload.get("dedicatedBotId"),
        metadata={k: v for k, v in meta.items() if k != "botId"},
    )


async def handle_inbound(message: InboundMessage, router: ChannelRouter, runtime: AgentRuntime) -> InboundReply:
    """Route one inbound message and, when an agent owns it, run the pipeline."""
    route = await router.route(
        SenderContext(
            channel_type=message.channel,
            sender_id=message.sender_id,
            chat_id=message.chat_id,
            text=message.content,
            sender_name=message.sender_name,
            dedicated_bot_id=message.dedicated_bot_id,
        )
    )

    if not route.should_process:
        return InboundReply(reply=route.system_reply, action="system_reply", route=route)

    try:
        reply = await runtime.process_channel_message(
            route.agent_id,
            route.binding_id,
            message.content,
            metadata={"channel": message.channel, "senderId": message.sender_id, **message.metadata},
        )
    except ProviderError as e:
        logger.error(f"Model provider failed for agent {route.agent_id}: {e}")
        return InboundReply(reply=GENERIC_FAILURE_REPLY, action="failed", route=route)

    return InboundReply(reply=reply, action="processed", route=route)
