"""Trust service verification flow for one agent: start, sign, check, restart."""

from __future__ import annotations

from typing import Any

from loguru import logger

from agenthaus.agent.store import AgentStore
from agenthaus.errors import AgentHausError, ServiceUnavailable
from agenthaus.services.trust import TrustServiceClient, generate_keypair, sign_challenge
from agenthaus.utils.clock import utcnow
from agenthaus.utils.crypto import decrypt_secret, encrypt_secret

VERIFY_ACTIONS = ("start", "sign", "check", "restart")


class VerificationError(AgentHausError):
    """The requested step cannot run in the current verification state."""


class VerificationFlow:
    def __init__(self, agents: AgentStore, trust: TrustServiceClient):
        self.agents = agents
        self.trust = trust

    async def status(self, agent_id: str) -> dict[str, Any]:
        record = await self.agents.get_verification(agent_id)
        if record is None:
            return {"status": "not_started", "verified": False}
        return {
            "status": record.status,
            "verified": bool(record.verified),
            "publicKey": record.public_key,
            "humanId": record.human_id,
            "verifiedAt": record.verified_at,
            "selfAppConfig": record.app_config,
            "hasSession": bool(record.session_id),
        }

    async def advance(self, agent_id: str, action: str) -> dict[str, Any]:
        if action not in VERIFY_ACTIONS:
            raise VerificationError('Invalid action. Use "start", "sign", "check", or "restart".')
        agent = await self.agents.require(agent_id)
        if action == "sign":
            return await self.sign(agent.id)
        if action == "check":
            return await self.check(agent.id)
        return await self.start(agent.id, agent.name, force=action == "restart")

    async def start(self, agent_id: str, agent_name: str, force: bool = False) -> dict[str, Any]:
        existing = await self.agents.get_verification(agent_id)
        if existing is not None and existing.verified and not force:
            return {
                "status": "already_verified",
                "verified": True,
                "humanId": existing.human_id,
                "verifiedAt": existing.verified_at,
            }

        keypair = generate_keypair()
        data = await self.trust.start_verification(keypair.public_key, agent_name)
        app_config = data.get("selfApp")
        await self.agents.save_verification(
            agent_id,
            status="pending",
            public_key=keypair.public_key,
            encrypted_private_key=encrypt_secret(keypair.private_key),
            session_id=data.get("sessionId"),
            challenge=data.get("challenge"),
            app_config=app_config,
            verified=False,
            human_id=None,
            verified_at=None,
        )
        logger.info(f"Verification started for agent {agent_id}")
        return {
            "status": "pending",
            "sessionId": data.get("sessionId"),
            "signatureRequired": data.get("signatureRequired"),
            "selfAppConfig": app_config,
            "publicKey": keypair.public_key,
            "message": "Verification started. Next step: call with action 'sign' to sign the challenge.",
        }

    async def sign(self, agent_id: str) -> dict[str, Any]:
        record = await self.agents.get_verification(agent_id)
        if record is None:
            raise VerificationError("No verification session. Start verification first.")
        if record.verified:
            return {"status": "already_verified", "verified": True}
        if not record.session_id or not record.challenge:
            raise VerificationError("No active session. Restart verification.")

        signature = sign_challenge(decrypt_secret(record.encrypted_private_key), record.challenge)
        data = await self.trust.submit_signature(record.session_id, signature)
        app_config = data.get("selfApp") or record.app_config
        await self.agents.save_verification(agent_id, status="qr_ready", app_config=app_config)
        return {
            "status": "qr_ready",
            "message": "Challenge signed. Scan the QR code with the Self app to complete verification.",
            "selfAppConfig": app_config,
        }

    async def check(self, agent_id: str) -> dict[str, Any]:
        record = await self.agents.get_verification(agent_id)
        if record is None:
            return {"status": "not_started", "verified": False}
        if record.verified:
            return {
                "status": "verified",
                "verified": True,
                "humanId": record.human_id,
                "verifiedAt": record.verified_at,
            }

        try:
            data = await self.trust.agent_status(record.public_key)
        except ServiceUnavailable as e:
            logger.warning(f"Verification status poll failed for agent {agent_id}: {e}")
            return {"status": record.status, "verified": False, "message": "Waiting for verification to complete..."}

        if not data.get("verified"):
            return {
                "status": record.status,
                "verified": False,
                "message": "Verification not yet complete. Scan the QR code with the Self app.",
            }

        human_id = data.get("humanId")
        verified_at = utcnow()
        await self.agents.save_verification(
            agent_id, status="verified", verified=True, human_id=human_id, verified_at=verified_at
        )
        await self.agents.log_activity(
            agent_id,
            f"✅ Agent verified via SelfClaw (humanId: {human_id or 'unknown'})",
            metadata={"humanId": human_id, "swarm": data.get("swarm")},
        )
        logger.success(f"Agent {agent_id} verified (humanId: {human_id})")
        return {"status": "verified", "verified": True, "humanId": human_id, "verifiedAt": verified_at}
