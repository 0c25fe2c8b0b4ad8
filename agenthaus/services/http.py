"""Shared httpx plumbing for outbound service calls."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from agenthaus.core.config import settings
from agenthaus.errors import ServiceUnavailable


def describe_http_error(exc: Exception, service: str) -> str:
    """Turn a transport failure into a message that can be shown to a user."""
    if isinstance(exc, httpx.TimeoutException):
        return f"Request to {service} timed out. Try again or check your network."
    if isinstance(exc, httpx.ConnectError):
        text = str(exc).lower()
        if any(marker in text for marker in ("name or service not known", "nodename nor servname", "getaddrinfo", "name resolution")):
            return f"Could not reach {service}. Check your internet connection."
        return f"{service} server unreachable. The service may be down."
    if isinstance(exc, httpx.HTTPStatusError):
        return f"{service} returned HTTP {exc.response.status_code}."
    return f"{service} request failed: {exc}"


class ServiceClient:
    """Base for JSON-over-HTTP collaborators with an explicit timeout."""

    service_name = "service"

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = settings.HTTP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        self._get_client()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _request(self, method: str, path: str, allow_status: tuple[int, ...] = (), **kwargs: Any) -> Any:
        """Send a request and return the decoded JSON body.

        Transport failures and error statuses become ServiceUnavailable with a
        user-presentable message.
        """
        try:
            response = await self._get_client().request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise ServiceUnavailable(describe_http_error(e, self.service_name)) from e

        try:
            data = response.json() if response.content else {}
        except ValueError:
            raise ServiceUnavailable(
                f"{self.service_name} returned non-JSON response (status {response.status_code})"
            )

        if response.status_code >= 400 and response.status_code not in allow_status:
            detail = data.get("error") or data.get("message") if isinstance(data, dict) else None
            raise ServiceUnavailable(detail or f"{self.service_name} API error: {response.status_code}")
        return data
