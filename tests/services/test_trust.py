import base64

import httpx
import pytest
from cryptography.hazmat.primitives import serialization

from agenthaus.errors import ServiceUnavailable
from agenthaus.services.http import describe_http_error
from agenthaus.services.identity import IdentityServiceClient
from agenthaus.services.trust import TrustServiceClient, generate_keypair, sign_challenge
from agenthaus.utils.crypto import decrypt_secret, encrypt_secret


def test_secret_roundtrip_and_wrong_key():
    blob = encrypt_secret("123456:bot-token", secret="correct-horse")

    assert blob != "123456:bot-token"
    assert decrypt_secret(blob, secret="correct-horse") == "123456:bot-token"
    with pytest.raises(ValueError, match="Decryption failed"):
        decrypt_secret(blob, secret="wrong")


def test_signature_verifies_with_public_key():
    keypair = generate_keypair()

    signature = sign_challenge(keypair.private_key, "challenge-123")

    public_key = serialization.load_der_public_key(base64.b64decode(keypair.public_key))
    public_key.verify(bytes.fromhex(signature), b"challenge-123")


async def test_unknown_agent_is_not_verified():
    def handler(request):
        assert request.url.params["publicKey"] == "pk"
        return httpx.Response(404, json={"error": "not found"})

    async with TrustServiceClient(base_url="https://trust.test", transport=httpx.MockTransport(handler)) as client:
        status = await client.agent_status("pk")

    assert status["verified"] is False


async def test_trust_error_message_is_surfaced():
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "Agent name taken"}))

    async with TrustServiceClient(base_url="https://trust.test", transport=transport) as client:
        with pytest.raises(ServiceUnavailable, match="Agent name taken"):
            await client.start_verification("pk", "Remi")


async def test_reputation_summary():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"id": 12, "score": 87, "feedbackCount": 4})
    )

    async with IdentityServiceClient(base_url="https://id.test", transport=transport) as client:
        summary = await client.reputation_summary("12")

    assert summary["registered"] is True
    assert summary["score"] == 87
    assert summary["feedbackCount"] == 4


@pytest.mark.parametrize(
    "exc, expected",
    [
        (httpx.ReadTimeout("slow"), "Request to SelfClaw timed out"),
        (httpx.ConnectError("[Errno -2] Name or service not known"), "Could not reach SelfClaw"),
        (httpx.ConnectError("connection refused"), "SelfClaw server unreachable"),
    ],
)
def test_describe_http_error(exc, expected):
    assert describe_http_error(exc, "SelfClaw").startswith(expected)
