"""Extraction and validation of transfer tags embedded in model output.

Grammar::

    [[SEND_NATIVE|<to_address>|<amount>]]
    [[SEND_TOKEN|<currency>|<to_address>|<amount>]]

Arguments may not contain ``|`` or ``]``. ``SEND_CELO`` is accepted as an
alias of ``SEND_NATIVE``.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from agenthaus.core.config import settings
from agenthaus.errors import InvalidAmount, InvalidRecipient, UnsupportedCurrency
from agenthaus.ledger.tokens import NATIVE_SYMBOL, is_address, lookup_token, supported_symbols

SEND_NATIVE = "send_native"
SEND_TOKEN = "send_token"

_ARG = r"([^|\]]+)"
TRANSFER_TAG_RE = re.compile(
    r"\[\[(?:"
    rf"(?:SEND_NATIVE|SEND_CELO)\|{_ARG}\|{_ARG}"
    r"|"
    rf"SEND_TOKEN\|{_ARG}\|{_ARG}\|{_ARG}"
    r")\]\]"
)

TRANSFER_TAGS = frozenset({"SEND_NATIVE", "SEND_CELO", "SEND_TOKEN"})


@dataclass
class TransactionIntent:
    action: str
    to: str
    amount: str
    currency: str
    raw: str
    # Filled by validate_intent
    value: Optional[float] = None
    token_address: Optional[str] = None

    @property
    def is_native(self) -> bool:
        return self.currency == NATIVE_SYMBOL


def parse_transaction_intents(text: str) -> list[TransactionIntent]:
    """Return every well-formed transfer tag in the order it appears in text."""
    intents = []
    for match in TRANSFER_TAG_RE.finditer(text):
        n_to, n_amount, t_currency, t_to, t_amount = match.groups()
        if n_to is not None:
            intents.append(
                TransactionIntent(
                    action=SEND_NATIVE,
                    to=n_to.strip(),
                    amount=n_amount.strip(),
                    currency=NATIVE_SYMBOL,
                    raw=match.group(0),
                )
            )
        else:
            currency = t_currency.strip()
            intents.append(
                TransactionIntent(
                    action=SEND_TOKEN,
                    to=t_to.strip(),
                    amount=t_amount.strip(),
                    currency=currency if is_address(currency) else currency.upper(),
                    raw=match.group(0),
                )
            )
    return intents


def parse_amount(amount: str, upper_bound: Optional[float] = None) -> float:
    bound = settings.MAX_TRANSFER_AMOUNT if upper_bound is None else upper_bound
    try:
        value = Decimal(amount)
    except (InvalidOperation, ValueError):
        raise InvalidAmount(f"Invalid amount: {amount}")
    if not value.is_finite() or value <= 0 or value >= Decimal(str(bound)):
        raise InvalidAmount(f"Invalid amount: {amount}")
    result = float(value)
    if not math.isfinite(result):
        raise InvalidAmount(f"Invalid amount: {amount}")
    return result


def validate_intent(
    intent: TransactionIntent,
    deployed_tokens: Iterable[str] = (),
    upper_bound: Optional[float] = None,
) -> TransactionIntent:
    """Check recipient, amount and currency in that order.

    Raises the matching IntentRejected subclass. On success the intent is
    normalized in place: value is set, native SEND_TOKENs become native
    transfers, and token_address is resolved.
    """
    # 1. Recipient
    if not is_address(intent.to):
        raise InvalidRecipient(f"Invalid recipient address: {intent.to}")

    # 2. Amount
    intent.value = parse_amount(intent.amount, upper_bound)

    # 3. Currency
    if intent.action == SEND_NATIVE:
        return intent

    if is_address(intent.currency):
        deployed = {addr.lower() for addr in deployed_tokens}
        if intent.currency.lower() not in deployed:
            raise UnsupportedCurrency(
                f"Unsupported currency: {intent.currency}. Supported: {', '.join(supported_symbols())}"
            )
        intent.token_address = intent.currency
        return intent

    token = lookup_token(intent.currency)
    if token is None:
        raise UnsupportedCurrency(
            f"Unsupported currency: {intent.currency}. Supported: {', '.join(supported_symbols())}"
        )
    if token.is_native:
        intent.action = SEND_NATIVE
        intent.currency = NATIVE_SYMBOL
    else:
        intent.currency = token.symbol
        intent.token_address = token.address
    return intent
