"""Ledger Client: the wallet / chain collaborator consumed by the executor and skills."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx
from loguru import logger

from agenthaus.core.config import settings
from agenthaus.errors import LedgerConfirmationTimeout, LedgerSubmissionFailed, ServiceUnavailable
from agenthaus.services.http import ServiceClient, describe_http_error


@dataclass
class TokenBalance:
    symbol: str
    address: str
    balance: float


@dataclass
class Balance:
    address: str
    native: float
    tokens: list[TokenBalance] = field(default_factory=list)

    def token(self, symbol: str) -> Optional[TokenBalance]:
        for t in self.tokens:
            if t.symbol.upper() == symbol.upper() or t.address.lower() == symbol.lower():
                return t
        return None


@dataclass
class Confirmation:
    tx_hash: str
    status: str  # success | reverted
    block_number: Optional[int] = None
    fee_currency: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


class LedgerClient(Protocol):
    async def derive_address(self, index: int) -> str: ...

    async def get_balance(self, address: str) -> Balance: ...

    async def submit_transfer(self, index: int, to: str, amount: str, currency: str) -> str: ...

    async def wait_for_confirmation(self, tx_hash: str) -> Confirmation: ...


class HttpLedgerClient(ServiceClient):
    """Talks to a wallet-signer service that owns key derivation and chain RPC."""

    service_name = "Ledger"

    def __init__(self, base_url: str | None = None, api_key: str | None = None, **kwargs):
        super().__init__(base_url or settings.LEDGER_URL, api_key or settings.LEDGER_API_KEY, **kwargs)
        self.confirmation_timeout = settings.LEDGER_CONFIRMATION_TIMEOUT_SECONDS

    async def derive_address(self, index: int) -> str:
        data = await self._request("POST", "/wallets/derive", json={"index": index})
        return data["address"]

    async def get_balance(self, address: str) -> Balance:
        data = await self._request("GET", f"/wallets/{address}/balance")
        tokens = [
            TokenBalance(symbol=t["symbol"], address=t.get("address", ""), balance=float(t["balance"]))
            for t in data.get("tokens", [])
        ]
        return Balance(address=address, native=float(data.get("native", 0)), tokens=tokens)

    async def submit_transfer(self, index: int, to: str, amount: str, currency: str) -> str:
        payload = {"index": index, "to": to, "amount": amount, "currency": currency}
        try:
            response = await self._get_client().post("/transfers", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200] if e.response is not None else str(e)
            raise LedgerSubmissionFailed(f"Transfer rejected: {detail}") from e
        except httpx.HTTPError as e:
            raise LedgerSubmissionFailed(describe_http_error(e, self.service_name)) from e

        try:
            data = response.json()
        except ValueError:
            raise LedgerSubmissionFailed(f"Ledger returned non-JSON response (status {response.status_code})")
        tx_hash = data.get("txHash") if isinstance(data, dict) else None
        if not tx_hash:
            raise LedgerSubmissionFailed("Ledger returned no transaction hash")
        logger.info(f"Submitted {amount} {currency} to {to}: {tx_hash}")
        return tx_hash

    async def wait_for_confirmation(self, tx_hash: str) -> Confirmation:
        try:
            data = await asyncio.wait_for(
                self._request("GET", f"/transfers/{tx_hash}/receipt", params={"wait": "true"}),
                timeout=self.confirmation_timeout,
            )
        except asyncio.TimeoutError as e:
            raise LedgerConfirmationTimeout(f"No confirmation for {tx_hash} after {self.confirmation_timeout:.0f}s") from e
        except ServiceUnavailable as e:
            if isinstance(e.__cause__, httpx.TimeoutException):
                raise LedgerConfirmationTimeout(str(e)) from e
            raise LedgerSubmissionFailed(str(e)) from e

        return Confirmation(
            tx_hash=tx_hash,
            status=data.get("status", "success"),
            block_number=data.get("blockNumber"),
            fee_currency=data.get("feeCurrency"),
        )
