import json

import httpx
import pytest

from agenthaus.bus.events import OutboundMessage
from agenthaus.channels.telegram import SECRET_HEADER, TelegramChannel, TelegramError, split_message
from agenthaus.errors import ChannelAuthFailed

UPDATE = {
    "update_id": 1001,
    "message": {
        "message_id": 7,
        "from": {"id": 4242, "first_name": "Ada", "last_name": "Lovelace"},
        "chat": {"id": 4242},
        "text": "hello",
    },
}


def test_split_prefers_newlines_then_spaces():
    text = "a" * 30 + "\n" + "b" * 30

    assert split_message(text, limit=40) == ["a" * 30, "b" * 30]
    assert split_message("word " * 10, limit=12) == ["word word", "word word", "word word", "word word", "word word "]
    assert split_message("x" * 25, limit=10) == ["x" * 10, "x" * 10, "x" * 5]
    assert split_message("short") == ["short"]


def test_parse_update():
    message = TelegramChannel("t", agent_id="agent-1").parse(UPDATE)

    assert message.channel == "telegram"
    assert message.sender_id == "4242"
    assert message.sender_name == "Ada Lovelace"
    assert message.dedicated_bot_id == "agent-1"
    assert message.metadata["update_id"] == 1001


def test_updates_without_text_are_ignored():
    channel = TelegramChannel("t")
    assert channel.parse({"update_id": 1, "message": {"chat": {"id": 1}, "sticker": {}}}) is None
    assert channel.parse({"update_id": 2, "callback_query": {}}) is None


def test_allowlist():
    channel = TelegramChannel("t", allowed_chat_ids=[4242])
    assert channel.is_allowed("4242")
    assert not channel.is_allowed("1")
    assert TelegramChannel("t").is_allowed("anyone")


def test_secret_header_is_checked():
    TelegramChannel.verify({SECRET_HEADER: "s3cret"}, "s3cret")
    with pytest.raises(ChannelAuthFailed):
        TelegramChannel.verify({SECRET_HEADER: "wrong"}, "s3cret")
    with pytest.raises(ChannelAuthFailed):
        TelegramChannel.verify({}, "s3cret")


async def test_send_retries_without_markdown():
    sent = []

    def handler(request):
        payload = json.loads(request.content)
        sent.append(payload)
        if "parse_mode" in payload:
            return httpx.Response(200, json={"ok": False, "description": "can't parse entities"})
        return httpx.Response(200, json={"ok": True, "result": {}})

    channel = TelegramChannel("t", transport=httpx.MockTransport(handler))

    await channel.send(OutboundMessage(channel="telegram", chat_id="4242", content="*unbalanced"))

    assert len(sent) == 2
    assert sent[0]["parse_mode"] == "Markdown"
    assert "parse_mode" not in sent[1]
    assert sent[1]["text"] == "*unbalanced"


async def test_set_webhook_registers_secret():
    calls = []

    def handler(request):
        calls.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"ok": True, "result": True})

    channel = TelegramChannel("123:abc", transport=httpx.MockTransport(handler))

    await channel.set_webhook("https://example.com/channels/telegram/a1", "s3cret")

    path, body = calls[0]
    assert path == "/bot123:abc/setWebhook"
    assert body["secret_token"] == "s3cret"
    assert body["allowed_updates"] == ["message", "edited_message"]


async def test_non_json_bot_api_reply_raises_telegram_error():
    channel = TelegramChannel("123:abc", transport=httpx.MockTransport(lambda request: httpx.Response(502, text="Bad Gateway")))

    with pytest.raises(TelegramError, match="deleteWebhook returned non-JSON response"):
        await channel.delete_webhook()
