"""Token registry and accounting-currency conversion."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from agenthaus.core.config import settings

ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")

NATIVE_SYMBOL = "CELO"
NATIVE_ADDRESS = "0x0000000000000000000000000000000000000000"


@dataclass(frozen=True)
class Token:
    symbol: str
    name: str
    address: str
    decimals: int = 18
    usd_rate: Optional[float] = None  # None: priced from settings (native)

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_ADDRESS


TOKENS: dict[str, Token] = {
    "CELO": Token("CELO", "Celo", NATIVE_ADDRESS),
    "CUSD": Token("cUSD", "Celo Dollar", "0x874069Fa1Eb16D44d622F2e0Ca25eeA172369bC1", usd_rate=1.0),
    "CEUR": Token("cEUR", "Celo Euro", "0x10c892A6EC43a53E45D0B916B4b7D383B1b78C0F", usd_rate=1.08),
    "CREAL": Token("cREAL", "Celo Real", "0xE4D517785D091D3c54818832dB6094bcc2744545", usd_rate=0.2),
}


def is_address(value: str) -> bool:
    return bool(ADDRESS_RE.match(value.strip()))


def lookup_token(symbol: str) -> Optional[Token]:
    return TOKENS.get(symbol.strip().upper())


def supported_symbols() -> list[str]:
    return [t.symbol for t in TOKENS.values()]


class AccountingConverter:
    """Converts transfer amounts into the accounting currency (USD-equivalent)."""

    def __init__(self, native_usd_rate: Optional[float] = None):
        self.native_usd_rate = settings.NATIVE_USD_RATE if native_usd_rate is None else native_usd_rate

    def rate(self, currency: str) -> float:
        token = lookup_token(currency)
        if token is None:
            # Agent-deployed tokens and raw contract addresses carry no value
            return 0.0
        if token.is_native:
            return self.native_usd_rate
        return token.usd_rate or 0.0

    def to_accounting(self, amount: float, currency: str) -> float:
        return amount * self.rate(currency)
