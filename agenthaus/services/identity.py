"""Identity / reputation service client (read-only)."""

from typing import Any, Optional

from agenthaus.core.config import settings
from agenthaus.services.http import ServiceClient


class IdentityServiceClient(ServiceClient):
    service_name = "8004scan"

    def __init__(self, base_url: Optional[str] = None, **kwargs):
        super().__init__(base_url or settings.IDENTITY_SERVICE_URL, **kwargs)

    async def reputation_summary(self, agent_id: str) -> dict[str, Any]:
        data = await self._request("GET", f"/agents/{agent_id}", allow_status=(404,))
        return {
            "agentId": agent_id,
            "registered": bool(data.get("id") or data.get("tokenId")),
            "score": data.get("score"),
            "feedbackCount": data.get("feedbackCount", 0),
            "raw": data,
        }
