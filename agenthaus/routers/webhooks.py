from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request
from loguru import logger

from agenthaus.bus.events import OutboundMessage
from agenthaus.channels.base import verify_shared_secret
from agenthaus.channels.telegram import TelegramChannel
from agenthaus.channels.webhook import handle_inbound, normalize_payload
from agenthaus.core.auth import bearer_token
from agenthaus.core.config import settings
from agenthaus.schemas.channel import WebhookReply
from agenthaus.services.container import Platform, get_platform
from agenthaus.utils.crypto import decrypt_secret

router = APIRouter(tags=["channels"])


@router.post("/webhooks/channel", response_model=WebhookReply)
async def channel_webhook(
    payload: dict[str, Any] = Body(...),
    authorization: Optional[str] = Header(default=None),
    platform: Platform = Depends(get_platform),
):
    """Generic gateway ingestion. The gateway delivers the reply itself."""
    verify_shared_secret(bearer_token(authorization), settings.WEBHOOK_SECRET)

    message = normalize_payload(payload)
    if message is None:
        raise HTTPException(status_code=400, detail="Payload must include channel, sender id and message text")

    result = await handle_inbound(message, platform.router, platform.runtime)
    route = result.route
    return WebhookReply(
        reply=result.reply,
        action=result.action,
        agent_id=route.agent_id if route else None,
        agent_name=route.agent_name if route else None,
        route=route.kind if route else None,
    )


@router.post("/channels/telegram/{agent_id}")
async def telegram_webhook(agent_id: str, request: Request, platform: Platform = Depends(get_platform)):
    """Dedicated bot webhook. Always acknowledges so Telegram does not redeliver."""
    agent = await platform.agents.get(agent_id)
    if agent is None:
        logger.warning(f"Telegram update for unknown agent {agent_id}")
        return {"ok": True}
    TelegramChannel.verify(request.headers, agent.telegram_webhook_secret)
    if agent.status != "active":
        # A paused bot must not fall through to the sender's other bindings
        logger.info(f"Ignoring Telegram update for agent {agent_id}: status {agent.status}")
        return {"ok": True}
    if not agent.telegram_bot_token:
        logger.warning(f"Telegram update for agent {agent_id} without a connected bot")
        return {"ok": True}

    channel = TelegramChannel(
        decrypt_secret(agent.telegram_bot_token),
        agent_id=agent.id,
        allowed_chat_ids=agent.telegram_chat_ids,
    )
    message = channel.parse(await request.json())
    if message is None:
        return {"ok": True}
    if not channel.is_allowed(message.chat_id):
        logger.info(f"Ignoring Telegram chat {message.chat_id} for agent {agent_id}: not in allowlist")
        return {"ok": True}

    try:
        await channel.send_typing(message.chat_id)
        result = await handle_inbound(message, platform.router, platform.runtime)
        if result.reply:
            await channel.send(OutboundMessage(channel=channel.name, chat_id=message.chat_id, content=result.reply))
    except Exception as e:
        logger.exception(f"Telegram update for agent {agent_id} failed")
        await platform.agents.log_activity(
            agent_id,
            f"Telegram webhook error: {e}",
            type="error",
            metadata={"chatId": message.chat_id, "updateId": message.metadata.get("update_id")},
        )
    return {"ok": True}
