"""Telegram Bot API channel (dedicated bot per agent, webhook delivery)."""

from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from agenthaus.bus.events import InboundMessage, OutboundMessage
from agenthaus.channels.base import BaseChannel, verify_shared_secret
from agenthaus.core.config import settings

TELEGRAM_API = "https://api.telegram.org"
SECRET_HEADER = "x-telegram-bot-api-secret-token"
MAX_MESSAGE_LENGTH = 4000


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> list[str]:
    """Split at the last newline, else the last space, else hard-cut."""
    if len(text) <= limit:
        return [text]
    chunks: list[str] = []
    while text:
        if len(text) <= limit:
            chunks.append(text)
            break
        cut = text.rfind("\n", 0, limit)
        if cut <= 0:
            cut = text.rfind(" ", 0, limit)
        if cut <= 0:
            cut = limit
        chunks.append(text[:cut])
        text = text[cut:].lstrip("\n ")
    return chunks


class TelegramError(Exception):
    pass


class TelegramChannel(BaseChannel):
    name = "telegram"

    def __init__(
        self,
        token: str,
        agent_id: Optional[str] = None,
        allowed_chat_ids: Optional[list[str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token
        self.agent_id = agent_id
        self.allowed_chat_ids = {str(c) for c in allowed_chat_ids} if allowed_chat_ids else None
        self.timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self.transport = transport

    async def _call(self, method: str, payload: Optional[dict] = None) -> dict:
        url = f"{TELEGRAM_API}/bot{self.token}/{method}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(url, json=payload or {})
        try:
            data = response.json()
        except ValueError:
            raise TelegramError(f"Telegram {method} returned non-JSON response (status {response.status_code})")
        if not isinstance(data, dict) or not data.get("ok"):
            description = data.get("description") if isinstance(data, dict) else None
            raise TelegramError(f"Telegram {method} failed: {description or response.status_code}")
        return data.get("result") or {}

    # --- Inbound ---

    @staticmethod
    def verify(headers: dict[str, str], expected_secret: Optional[str]) -> None:
        verify_shared_secret(headers.get(SECRET_HEADER), expected_secret)

    def parse(self, payload: dict[str, Any]) -> Optional[InboundMessage]:
        message = payload.get("message") or payload.get("edited_message")
        if not message or not message.get("text"):
            return None

        sender = message.get("from") or {}
        chat = message.get("chat") or {}
        name = " ".join(p for p in (sender.get("first_name"), sender.get("last_name")) if p) or None
        return InboundMessage(
            channel=self.name,
            sender_id=str(sender.get("id", chat.get("id"))),
            chat_id=str(chat.get("id")),
            content=message["text"],
            sender_name=name or sender.get("username"),
            dedicated_bot_id=self.agent_id,
            metadata={"update_id": payload.get("update_id"), "message_id": message.get("message_id")},
        )

    def is_allowed(self, sender_id: str) -> bool:
        return self.allowed_chat_ids is None or str(sender_id) in self.allowed_chat_ids

    # --- Outbound ---

    async def send(self, msg: OutboundMessage) -> None:
        for chunk in split_message(msg.content):
            payload = {"chat_id": msg.chat_id, "text": chunk, "parse_mode": "Markdown"}
            try:
                await self._call("sendMessage", payload)
            except (TelegramError, httpx.HTTPError) as e:
                # Retry as plain text
                logger.warning(f"Telegram sendMessage failed, retrying without Markdown: {e}")
                payload.pop("parse_mode")
                await self._call("sendMessage", payload)

    async def send_typing(self, chat_id: str) -> None:
        try:
            await self._call("sendChatAction", {"chat_id": chat_id, "action": "typing"})
        except (TelegramError, httpx.HTTPError) as e:
            logger.debug(f"Telegram typing action failed: {e}")

    # --- Bot management ---

    async def get_me(self) -> dict:
        return await self._call("getMe")

    async def set_webhook(self, url: str, secret_token: str) -> None:
        await self._call(
            "setWebhook",
            {
                "url": url,
                "secret_token": secret_token,
                "allowed_updates": ["message", "edited_message"],
                "max_connections": 40,
            },
        )
        logger.info(f"Telegram webhook set to {url}")

    async def delete_webhook(self) -> None:
        await self._call("deleteWebhook")
