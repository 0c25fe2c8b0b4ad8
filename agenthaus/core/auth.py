import hmac
from typing import Optional

from fastapi import Header, HTTPException, Query, Security, status
from fastapi.security import APIKeyHeader

from agenthaus.core.config import settings

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def _matches(provided: Optional[str], expected: Optional[str]) -> bool:
    return bool(provided and expected) and hmac.compare_digest(provided.encode(), expected.encode())


async def get_api_key(api_key: Optional[str] = Security(api_key_header)) -> str:
    if not _matches(api_key, settings.API_KEY):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Could not validate API key")
    return api_key


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return None


async def verify_cron_secret(
    authorization: Optional[str] = Header(default=None),
    secret: Optional[str] = Query(default=None),
) -> None:
    """Bearer CRON_SECRET (or ?secret=). Open when no secret is configured."""
    if not settings.CRON_SECRET:
        return
    if not _matches(bearer_token(authorization) or secret, settings.CRON_SECRET):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
