"""
Trust Service client (human-backed agent verification).

Flow: start-verification with the agent's Ed25519 public key returns a
challenge; the challenge is signed locally and submitted; the caller then
polls the agent status until it reports verified.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Any, Optional

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from agenthaus.core.config import settings
from agenthaus.services.http import ServiceClient


@dataclass
class AgentKeypair:
    public_key: str  # SPKI DER, base64
    private_key: str  # PKCS8 DER, base64


def generate_keypair() -> AgentKeypair:
    key = Ed25519PrivateKey.generate()
    public_der = key.public_key().public_bytes(
        serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
    )
    private_der = key.private_bytes(
        serialization.Encoding.DER, serialization.PrivateFormat.PKCS8, serialization.NoEncryption()
    )
    return AgentKeypair(
        public_key=base64.b64encode(public_der).decode(),
        private_key=base64.b64encode(private_der).decode(),
    )


def sign_challenge(private_key_b64: str, challenge: str) -> str:
    """Hex Ed25519 signature over the exact challenge string."""
    key = serialization.load_der_private_key(base64.b64decode(private_key_b64), password=None)
    if not isinstance(key, Ed25519PrivateKey):
        raise ValueError("Agent signing key is not an Ed25519 key")
    return key.sign(challenge.encode("utf-8")).hex()


class TrustServiceClient(ServiceClient):
    service_name = "SelfClaw"

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or settings.TRUST_SERVICE_URL, **kwargs)

    async def start_verification(self, public_key: str, agent_name: Optional[str] = None) -> dict[str, Any]:
        payload = {"agentPublicKey": public_key}
        if agent_name:
            payload["agentName"] = agent_name
        return await self._request("POST", "/start-verification", json=payload)

    async def submit_signature(self, session_id: str, signature: str) -> dict[str, Any]:
        return await self._request("POST", "/sign-challenge", json={"sessionId": session_id, "signature": signature})

    async def agent_status(self, public_key: str) -> dict[str, Any]:
        """Verification status; an unknown key comes back as not verified."""
        data = await self._request("GET", "/agent", params={"publicKey": public_key}, allow_status=(404,))
        data.setdefault("verified", False)
        return data
