"""Turns transfer tags in model output into executed, recorded transfers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from agenthaus.agent.store import AgentStore
from agenthaus.core.config import settings
from agenthaus.errors import (
    InsufficientBalance,
    IntentRejected,
    LedgerError,
    ServiceUnavailable,
    SpendingLimitExceeded,
    WalletNotInitialized,
)
from agenthaus.ledger.client import Balance, LedgerClient
from agenthaus.ledger.parser import TransactionIntent, parse_transaction_intents, validate_intent
from agenthaus.ledger.tokens import NATIVE_SYMBOL, AccountingConverter
from agenthaus.models import Agent
from agenthaus.utils.locks import KeyedLock

WALLET_NOT_INITIALIZED = (
    "\n⚠️ **Cannot execute transaction** — this agent does not have a wallet initialized. "
    "Please initialize a wallet first."
)
WALLET_NOT_ALLOWED = (
    "\n⚠️ **Cannot execute transaction** — transactions can only be initiated by the agent owner."
)


@dataclass
class TransactionResult:
    intent: TransactionIntent
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    fee_currency: Optional[str] = None


@dataclass
class ExecutionResult:
    text: str
    executed_count: int = 0
    results: list[TransactionResult] = field(default_factory=list)


def format_amount(value: float) -> str:
    return ("%.8f" % value).rstrip("0").rstrip(".")


def format_receipt(result: TransactionResult, explorer_url: str) -> str:
    intent = result.intent
    if result.success and result.tx_hash:
        lines = [
            "\n✅ **Transaction Confirmed**",
            f"• Sent: {intent.amount} {intent.currency}",
            f"• To: {intent.to}",
            f"• TX Hash: `{result.tx_hash}`",
            f"• Explorer: {explorer_url.rstrip('/')}/tx/{result.tx_hash}",
        ]
        if result.fee_currency:
            lines.append(f"• Gas paid in: {result.fee_currency}")
        return "\n".join(lines)
    return "\n".join(
        [
            "\n❌ **Transaction Failed**",
            f"• Attempted: {intent.amount} {intent.currency} → {intent.to}",
            f"• Error: {result.error or 'Unknown error'}",
        ]
    )


def format_rejection(error: IntentRejected) -> str:
    if isinstance(error, (InsufficientBalance, SpendingLimitExceeded, WalletNotInitialized)):
        return str(error)
    return f"\n❌ **Transaction Rejected** — {error}"


def fee_currency_label(balance: Optional[Balance]) -> Optional[str]:
    if balance is None:
        return None
    if balance.native > 0:
        return f"{NATIVE_SYMBOL} (native)"
    for token in balance.tokens:
        if token.balance > 0:
            return f"{token.symbol} (fee abstraction)"
    return f"{NATIVE_SYMBOL} (native)"


class TransactionExecutor:
    """Validates, pre-flights and executes the transfer tags in a reply.

    Batches for the same agent are serialized with a per-agent lock, and
    spending_used is raised with an atomic UPDATE, so concurrent messages to
    one agent cannot both pass the spending-limit check on a stale counter.
    """

    def __init__(
        self,
        agents: AgentStore,
        ledger: LedgerClient,
        converter: Optional[AccountingConverter] = None,
        explorer_url: Optional[str] = None,
        max_amount: Optional[float] = None,
    ):
        self.agents = agents
        self.ledger = ledger
        self.converter = converter or AccountingConverter()
        self.explorer_url = explorer_url or settings.BLOCK_EXPLORER_URL
        self.max_amount = max_amount
        self._locks = KeyedLock()

    async def execute(self, text: str, agent_id: str, allow_wallet: bool = True) -> ExecutionResult:
        intents = parse_transaction_intents(text)
        if not intents:
            return ExecutionResult(text=text)

        async with self._locks.hold(agent_id):
            # Re-read under the lock so spending_used reflects earlier batches
            agent = await self.agents.require(agent_id)
            return await self._execute_batch(text, agent, intents, allow_wallet)

    async def _execute_batch(
        self,
        text: str,
        agent: Agent,
        intents: list[TransactionIntent],
        allow_wallet: bool,
    ) -> ExecutionResult:
        # 1. Wallet gate
        if not agent.has_wallet or not allow_wallet:
            notice = WALLET_NOT_INITIALIZED if not agent.has_wallet else WALLET_NOT_ALLOWED
            for intent in intents:
                text = text.replace(intent.raw, notice, 1)
            logger.warning(f"Agent {agent.id}: {len(intents)} transfer tag(s) blocked, wallet unavailable")
            return ExecutionResult(text=text)

        # 2. Per-intent validation
        pending: list[TransactionIntent] = []
        for intent in intents:
            try:
                pending.append(validate_intent(intent, agent.deployed_tokens or (), self.max_amount))
            except IntentRejected as e:
                logger.info(f"Agent {agent.id}: rejected transfer tag {intent.raw!r}: {e}")
                text = text.replace(intent.raw, format_rejection(e), 1)
        if not pending:
            return ExecutionResult(text=text)

        # 3. Pre-flight (a): native balance
        balance: Optional[Balance] = None
        try:
            balance = await self.ledger.get_balance(agent.wallet_address)
        except (LedgerError, ServiceUnavailable) as e:
            # Submission will surface a precise error if funds are really short
            logger.warning(f"Pre-execution balance check failed for {agent.id}: {e}")

        native_needed = sum(i.value for i in pending if i.is_native)
        if balance is not None and native_needed > balance.native:
            error = InsufficientBalance(
                f"\n⚠️ **Insufficient {NATIVE_SYMBOL} balance.** Wallet has {balance.native:.4f} {NATIVE_SYMBOL} "
                f"but needs {format_amount(native_needed)} {NATIVE_SYMBOL}. Please top up the agent wallet.",
                required=native_needed,
                available=balance.native,
            )
            for intent in pending:
                if intent.is_native:
                    text = text.replace(intent.raw, format_rejection(error), 1)
            pending = [i for i in pending if not i.is_native]
            if not pending:
                return ExecutionResult(text=text)

        # 4. Pre-flight (b): spending limit in the accounting currency
        total_spend = sum(self.converter.to_accounting(i.value, i.currency) for i in pending)
        if agent.spending_used + total_spend > agent.spending_limit:
            error = SpendingLimitExceeded(
                f"\n⚠️ **Spending limit reached.** Used: ${agent.spending_used:.2f} / Limit: ${agent.spending_limit:.2f}."
            )
            for intent in pending:
                text = text.replace(intent.raw, format_rejection(error), 1)
            logger.warning(
                f"Agent {agent.id}: spending limit would be exceeded "
                f"({agent.spending_used:.2f} + {total_spend:.2f} > {agent.spending_limit:.2f})"
            )
            return ExecutionResult(text=text)

        # 5. Sequential execution in text order
        fee_label = fee_currency_label(balance)
        results: list[TransactionResult] = []
        for intent in pending:
            result = await self._execute_intent(agent, intent, fee_label)
            results.append(result)
            text = text.replace(intent.raw, format_receipt(result, self.explorer_url), 1)
            if result.success:
                await self.agents.increment_spending(
                    agent.id, self.converter.to_accounting(intent.value, intent.currency)
                )

        # 6. Summary audit entry
        succeeded = sum(1 for r in results if r.success)
        await self.agents.log_activity(
            agent.id,
            f"Executed {succeeded}/{len(results)} transaction(s)",
            type="action" if succeeded == len(results) else "warning",
            metadata={
                "results": [
                    {
                        "to": r.intent.to,
                        "amount": r.intent.amount,
                        "currency": r.intent.currency,
                        "success": r.success,
                        "txHash": r.tx_hash,
                        "error": r.error,
                    }
                    for r in results
                ]
            },
        )
        return ExecutionResult(text=text, executed_count=succeeded, results=results)

    async def _execute_intent(
        self, agent: Agent, intent: TransactionIntent, fee_label: Optional[str]
    ) -> TransactionResult:
        tx_hash: Optional[str] = None
        try:
            tx_hash = await self.ledger.submit_transfer(
                agent.wallet_derivation_index, intent.to, intent.amount, intent.currency
            )
            confirmation = await self.ledger.wait_for_confirmation(tx_hash)
        except LedgerError as e:
            msg = str(e)
            logger.error(f"Transaction execution failed for {agent.id}: {msg}")
            await self.agents.record_transaction(
                agent_id=agent.id,
                tx_hash=tx_hash,
                type="send",
                status="failed",
                to_address=intent.to,
                amount=intent.value,
                currency=intent.currency,
                description=f"Failed: {msg[:200]}",
            )
            return TransactionResult(intent=intent, success=False, tx_hash=tx_hash, error=msg)

        fee = confirmation.fee_currency or fee_label
        await self.agents.record_transaction(
            agent_id=agent.id,
            tx_hash=tx_hash,
            type="send",
            status="confirmed" if confirmation.ok else "failed",
            to_address=intent.to,
            amount=intent.value,
            currency=intent.currency,
            block_number=confirmation.block_number,
            description=f"Sent {intent.amount} {intent.currency} to {intent.to} (gas: {fee or 'unknown'})",
        )
        if not confirmation.ok:
            return TransactionResult(
                intent=intent, success=False, tx_hash=tx_hash, error="Transaction reverted on-chain", fee_currency=fee
            )
        logger.info(f"Agent {agent.id}: sent {intent.amount} {intent.currency} to {intent.to} ({tx_hash})")
        return TransactionResult(intent=intent, success=True, tx_hash=tx_hash, fee_currency=fee)
