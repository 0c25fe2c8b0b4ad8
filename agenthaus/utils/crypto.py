"""
At-rest secret encryption (AES-256-GCM).
Used for dedicated bot tokens and trust-service signing keys.
"""

import base64
import hashlib
import os
from typing import Optional

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from agenthaus.core.config import settings


def _key(secret: Optional[str]) -> bytes:
    return hashlib.sha256((secret or settings.ENCRYPTION_KEY).encode()).digest()


def encrypt_secret(plaintext: str, secret: Optional[str] = None) -> str:
    """
    Encrypt a string with the platform encryption key.

    Output: Base64(Nonce + Ciphertext)
    """
    aesgcm = AESGCM(_key(secret))
    nonce = os.urandom(12)
    ciphertext = aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
    return base64.b64encode(nonce + ciphertext).decode("utf-8")


def decrypt_secret(blob: str, secret: Optional[str] = None) -> str:
    """
    Decrypt a blob produced by encrypt_secret.

    Raises: ValueError if the key is wrong or the blob was tampered with.
    """
    try:
        raw = base64.b64decode(blob)
        nonce, ciphertext = raw[:12], raw[12:]
        plaintext = AESGCM(_key(secret)).decrypt(nonce, ciphertext, None)
        return plaintext.decode("utf-8")
    except Exception as e:
        raise ValueError(f"Decryption failed: {e}") from e
