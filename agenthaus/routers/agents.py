import secrets
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from loguru import logger

from agenthaus.agent.gateway import PROVIDER_BASE_URLS
from agenthaus.agent.runtime import GENERIC_FAILURE_REPLY
from agenthaus.channels.pairing import PairingError
from agenthaus.channels.telegram import TelegramChannel, TelegramError
from agenthaus.core.auth import get_api_key
from agenthaus.core.config import settings
from agenthaus.errors import LedgerError, ProviderError, ServiceUnavailable
from agenthaus.models import AGENT_STATUSES
from agenthaus.schemas.agent import (
    ActivityResponse,
    AgentCreate,
    AgentResponse,
    AgentUpdate,
    ChatRequest,
    ChatResponse,
    PairingCodeResponse,
    TelegramConnect,
    TransactionResponse,
    VerifyRequest,
    WalletResponse,
)
from agenthaus.schemas.channel import BindingResponse
from agenthaus.services.container import Platform, get_platform
from agenthaus.services.verification import VerificationError
from agenthaus.utils.crypto import decrypt_secret, encrypt_secret

router = APIRouter(
    prefix="/agents",
    tags=["agents"],
    dependencies=[Depends(get_api_key)]
)


def _check_provider(provider: str) -> None:
    if provider not in PROVIDER_BASE_URLS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown provider: {provider}. Supported: {', '.join(PROVIDER_BASE_URLS)}",
        )


@router.post("/", response_model=AgentResponse, status_code=201)
async def create_agent(agent_in: AgentCreate, platform: Platform = Depends(get_platform)):
    _check_provider(agent_in.llm_provider)
    agent = await platform.agents.create(status="draft", **agent_in.model_dump(exclude_none=True))
    await platform.cron_jobs.seed_defaults(agent.id, agent.template_type)
    await platform.agents.log_activity(agent.id, f"Agent \"{agent.name}\" created", type="info")
    logger.info(f"Created agent {agent.id} ({agent.template_type})")
    return agent


@router.get("/", response_model=List[AgentResponse])
async def list_agents(status: Optional[str] = None, platform: Platform = Depends(get_platform)):
    return await platform.agents.list_agents(status)


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(agent_id: str, platform: Platform = Depends(get_platform)):
    return await platform.agents.require(agent_id)


@router.patch("/{agent_id}", response_model=AgentResponse)
async def update_agent(agent_id: str, agent_in: AgentUpdate, platform: Platform = Depends(get_platform)):
    fields = agent_in.model_dump(exclude_unset=True)
    if "status" in fields and fields["status"] not in AGENT_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid status: {fields['status']}")
    if "llm_provider" in fields:
        _check_provider(fields["llm_provider"])

    before = await platform.agents.require(agent_id)
    agent = await platform.agents.update(agent_id, **fields)
    if "status" in fields and fields["status"] != before.status:
        await platform.agents.log_activity(agent_id, f"Status changed: {before.status} → {agent.status}", type="info")
    return agent


@router.delete("/{agent_id}")
async def delete_agent(agent_id: str, platform: Platform = Depends(get_platform)):
    if not await platform.agents.delete(agent_id):
        raise HTTPException(status_code=404, detail="Agent not found")
    return {"detail": "Agent deleted"}


# --- Pairing ---

@router.post("/{agent_id}/pairing-code", response_model=PairingCodeResponse)
async def create_pairing_code(agent_id: str, platform: Platform = Depends(get_platform)):
    try:
        code = await platform.pairing.get_or_create(agent_id)
    except PairingError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return PairingCodeResponse(code=code.code, expires_at=code.expires_at, is_new=code.is_new)


@router.delete("/{agent_id}/pairing-code")
async def revoke_pairing_code(agent_id: str, platform: Platform = Depends(get_platform)):
    await platform.pairing.revoke(agent_id)
    return {"detail": "Pairing code revoked"}


@router.get("/{agent_id}/bindings", response_model=List[BindingResponse])
async def list_bindings(agent_id: str, active_only: bool = False, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    return await platform.sessions.list_agent_bindings(agent_id, active_only)


@router.delete("/{agent_id}/bindings/{binding_id}")
async def disconnect_binding(agent_id: str, binding_id: str, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    binding = await platform.sessions.get_binding(binding_id)
    if binding is None or binding.agent_id != agent_id:
        raise HTTPException(status_code=404, detail="Binding not found")
    if binding.is_active:
        await platform.sessions.deactivate_binding(binding_id)
        await platform.agents.log_activity(
            agent_id,
            f"🔌 Disconnected {binding.sender_name or binding.sender_identifier} ({binding.channel_type})",
            metadata={"bindingId": binding_id},
        )
    return {"detail": "Binding disconnected"}


# --- Wallet ---

@router.post("/{agent_id}/wallet", response_model=WalletResponse)
async def init_wallet(agent_id: str, platform: Platform = Depends(get_platform)):
    agent = await platform.agents.require(agent_id)
    if agent.has_wallet:
        return WalletResponse(address=agent.wallet_address, derivation_index=agent.wallet_derivation_index)

    index = await platform.agents.next_wallet_index()
    try:
        address = await platform.ledger.derive_address(index)
    except (LedgerError, ServiceUnavailable) as e:
        raise HTTPException(status_code=502, detail=str(e))

    await platform.agents.set_wallet(agent_id, address, index)
    await platform.agents.log_activity(agent_id, f"💳 Wallet initialized: {address}", metadata={"index": index})
    logger.success(f"Wallet {address} (index {index}) initialized for agent {agent_id}")
    return WalletResponse(address=address, derivation_index=index)


@router.get("/{agent_id}/activity", response_model=List[ActivityResponse])
async def list_activity(agent_id: str, limit: int = 50, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    return await platform.agents.list_activity(agent_id, limit)


@router.get("/{agent_id}/transactions", response_model=List[TransactionResponse])
async def list_transactions(agent_id: str, limit: int = 50, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    return await platform.agents.list_transactions(agent_id, limit)


# --- Web chat ---

@router.post("/{agent_id}/chat", response_model=ChatResponse)
async def chat(agent_id: str, body: ChatRequest, platform: Platform = Depends(get_platform)):
    history = [turn.model_dump() for turn in body.history if turn.role in ("user", "assistant")]
    try:
        reply = await platform.runtime.process_message(agent_id, body.message, history, allow_wallet=body.allow_wallet)
    except ProviderError as e:
        logger.error(f"Web chat failed for agent {agent_id}: {e}")
        raise HTTPException(status_code=502, detail=GENERIC_FAILURE_REPLY)
    return ChatResponse(response=reply)


# --- Dedicated Telegram bot ---

@router.post("/{agent_id}/telegram")
async def connect_telegram(agent_id: str, body: TelegramConnect, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    if not settings.PUBLIC_BASE_URL:
        raise HTTPException(status_code=400, detail="PUBLIC_BASE_URL is not configured")

    channel = TelegramChannel(body.bot_token, agent_id=agent_id)
    webhook_secret = secrets.token_urlsafe(32)
    webhook_url = f"{settings.PUBLIC_BASE_URL.rstrip('/')}/channels/telegram/{agent_id}"
    try:
        bot = await channel.get_me()
        await channel.set_webhook(webhook_url, webhook_secret)
    except (TelegramError, httpx.HTTPError) as e:
        raise HTTPException(status_code=400, detail=f"Telegram rejected the bot token: {e}")

    username = bot.get("username")
    await platform.agents.update(
        agent_id,
        telegram_bot_token=encrypt_secret(body.bot_token),
        telegram_bot_username=username,
        telegram_webhook_secret=webhook_secret,
        telegram_chat_ids=body.allowed_chat_ids,
    )
    await platform.agents.log_activity(agent_id, f"🤖 Telegram bot @{username} connected", metadata={"webhook": webhook_url})
    return {"username": username, "webhook_url": webhook_url}


@router.delete("/{agent_id}/telegram")
async def disconnect_telegram(agent_id: str, platform: Platform = Depends(get_platform)):
    agent = await platform.agents.require(agent_id)
    if not agent.telegram_bot_token:
        raise HTTPException(status_code=404, detail="No Telegram bot connected")

    try:
        await TelegramChannel(decrypt_secret(agent.telegram_bot_token)).delete_webhook()
    except (TelegramError, httpx.HTTPError) as e:
        # The token may already be revoked; forget it regardless
        logger.warning(f"Could not remove Telegram webhook for agent {agent_id}: {e}")

    await platform.agents.update(
        agent_id, telegram_bot_token=None, telegram_bot_username=None, telegram_webhook_secret=None
    )
    await platform.agents.log_activity(agent_id, f"🤖 Telegram bot @{agent.telegram_bot_username} disconnected")
    return {"detail": "Telegram bot disconnected"}


# --- Trust / identity ---

@router.get("/{agent_id}/verify")
async def verification_status(agent_id: str, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    return await platform.verification.status(agent_id)


@router.post("/{agent_id}/verify")
async def advance_verification(agent_id: str, body: VerifyRequest, platform: Platform = Depends(get_platform)):
    try:
        return await platform.verification.advance(agent_id, body.action)
    except VerificationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ServiceUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))


@router.get("/{agent_id}/reputation")
async def reputation(agent_id: str, platform: Platform = Depends(get_platform)):
    await platform.agents.require(agent_id)
    try:
        return await platform.identity.reputation_summary(agent_id)
    except ServiceUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))
