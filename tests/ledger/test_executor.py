import asyncio

import pytest

from agenthaus.errors import LedgerConfirmationTimeout, LedgerSubmissionFailed, ServiceUnavailable
from agenthaus.ledger.executor import WALLET_NOT_ALLOWED, WALLET_NOT_INITIALIZED, format_amount
from agenthaus.ledger.tokens import TOKENS
from conftest import RECIPIENT

TAG = f"[[SEND_NATIVE|{RECIPIENT}|2]]"


@pytest.fixture
def executor(platform):
    return platform.executor


async def test_native_transfer_executes_and_updates_spending(platform, executor, ledger, make_agent):
    """Balance 5, limit 100, used 10: one confirmed transfer, used becomes 12."""
    agent = await make_agent()

    result = await executor.execute(f"Sending 2 CELO now. {TAG}", agent.id)

    assert result.executed_count == 1
    assert TAG not in result.text
    assert "Transaction Confirmed" in result.text
    assert result.results[0].tx_hash in result.text
    assert f"/tx/{result.results[0].tx_hash}" in result.text
    assert ledger.submitted == [(agent.wallet_derivation_index, RECIPIENT, "2", "CELO")]

    txs = await platform.agents.list_transactions(agent.id)
    assert len(txs) == 1
    assert txs[0].status == "confirmed"
    assert txs[0].amount == 2.0
    assert (await platform.agents.get(agent.id)).spending_used == pytest.approx(12.0)


async def test_insufficient_native_balance_rejects_without_submitting(platform, executor, ledger, make_agent):
    ledger.native = 1.0
    agent = await make_agent()

    result = await executor.execute(f"Sending. {TAG}", agent.id)

    assert result.executed_count == 0
    assert "Insufficient CELO balance" in result.text
    assert "1.0000 CELO" in result.text
    assert "needs 2 CELO" in result.text
    assert ledger.submitted == []
    assert await platform.agents.list_transactions(agent.id) == []
    assert (await platform.agents.get(agent.id)).spending_used == pytest.approx(10.0)


async def test_insufficient_native_keeps_token_transfers(platform, executor, ledger, make_agent):
    ledger.native = 1.0
    agent = await make_agent()
    text = f"{TAG} and [[SEND_TOKEN|cUSD|{RECIPIENT}|3]]"

    result = await executor.execute(text, agent.id)

    assert result.executed_count == 1
    assert "Insufficient CELO balance" in result.text
    assert ledger.submitted == [(agent.wallet_derivation_index, RECIPIENT, "3", "cUSD")]


async def test_missing_wallet_blocks_every_tag(executor, ledger, make_agent):
    agent = await make_agent(wallet_address=None, wallet_derivation_index=None)

    result = await executor.execute(f"{TAG} {TAG}", agent.id)

    assert result.text.count(WALLET_NOT_INITIALIZED) == 2
    assert result.executed_count == 0
    assert ledger.submitted == []


async def test_external_caller_cannot_use_wallet(executor, ledger, make_agent):
    agent = await make_agent()

    result = await executor.execute(TAG, agent.id, allow_wallet=False)

    assert WALLET_NOT_ALLOWED in result.text
    assert ledger.submitted == []


async def test_spending_limit_rejects_whole_batch(platform, executor, ledger, make_agent):
    agent = await make_agent(spending_used=99.0)

    result = await executor.execute(TAG, agent.id)

    assert "Spending limit reached" in result.text
    assert "Used: $99.00 / Limit: $100.00" in result.text
    assert ledger.submitted == []
    assert await platform.agents.list_transactions(agent.id) == []


async def test_concurrent_batches_cannot_overspend(platform, executor, ledger, make_agent):
    agent = await make_agent(spending_used=0.0, spending_limit=100.0)
    ledger.native = 1000.0
    tag = f"[[SEND_NATIVE|{RECIPIENT}|60]]"

    first, second = await asyncio.gather(executor.execute(tag, agent.id), executor.execute(tag, agent.id))

    assert first.executed_count + second.executed_count == 1
    assert len(ledger.submitted) == 1
    assert (await platform.agents.get(agent.id)).spending_used == pytest.approx(60.0)
    assert len(executor._locks) == 0


@pytest.mark.parametrize(
    "tag, message",
    [
        ("[[SEND_NATIVE|not-an-address|2]]", "Invalid recipient address: not-an-address"),
        (f"[[SEND_NATIVE|{RECIPIENT}|two]]", "Invalid amount: two"),
        (f"[[SEND_NATIVE|{RECIPIENT}|-1]]", "Invalid amount: -1"),
        (f"[[SEND_TOKEN|DOGE|{RECIPIENT}|1]]", "Unsupported currency: DOGE"),
    ],
)
async def test_invalid_tags_are_replaced_with_rejection(executor, ledger, make_agent, tag, message):
    agent = await make_agent()

    result = await executor.execute(f"Working on it. {tag}", agent.id)

    assert "Transaction Rejected" in result.text
    assert message in result.text
    assert tag not in result.text
    assert ledger.submitted == []


async def test_malformed_tags_pass_through_untouched(executor, ledger, make_agent):
    agent = await make_agent()
    text = f"[[SEND_NATIVE|{RECIPIENT}|2] and [[SEND_NATIVE|{RECIPIENT}]]"

    result = await executor.execute(text, agent.id)

    assert result.text == text
    assert ledger.submitted == []


async def test_deployed_token_address_is_accepted(executor, ledger, make_agent):
    token = "0x2222222222222222222222222222222222222222"
    agent = await make_agent(deployed_tokens=[token])

    result = await executor.execute(f"[[SEND_TOKEN|{token}|{RECIPIENT}|5]]", agent.id)

    assert result.executed_count == 1
    assert ledger.submitted[0][3] == token


async def test_balance_lookup_failure_does_not_block_execution(executor, ledger, make_agent):
    ledger.balance_error = ServiceUnavailable("Ledger server unreachable. The service may be down.")
    agent = await make_agent()

    result = await executor.execute(TAG, agent.id)

    assert result.executed_count == 1


async def test_submission_failure_records_failed_transaction(platform, executor, ledger, make_agent):
    ledger.submit_error = LedgerSubmissionFailed("Transfer rejected: nonce too low")
    agent = await make_agent()

    result = await executor.execute(TAG, agent.id)

    assert result.executed_count == 0
    assert "Transaction Failed" in result.text
    assert "nonce too low" in result.text
    txs = await platform.agents.list_transactions(agent.id)
    assert [tx.status for tx in txs] == ["failed"]
    assert txs[0].description.startswith("Failed: Transfer rejected")
    assert (await platform.agents.get(agent.id)).spending_used == pytest.approx(10.0)


async def test_confirmation_timeout_keeps_hash_on_failed_record(platform, executor, ledger, make_agent):
    async def timeout(tx_hash):
        raise LedgerConfirmationTimeout(f"No confirmation for {tx_hash} after 30s")

    ledger.wait_for_confirmation = timeout
    agent = await make_agent()

    await executor.execute(TAG, agent.id)

    txs = await platform.agents.list_transactions(agent.id)
    assert txs[0].status == "failed"
    assert txs[0].tx_hash is not None


async def test_reverted_transfer_is_not_counted(platform, executor, ledger, make_agent):
    ledger.confirm_status = "reverted"
    agent = await make_agent()

    result = await executor.execute(TAG, agent.id)

    assert result.executed_count == 0
    assert "Transaction reverted on-chain" in result.text
    assert (await platform.agents.get(agent.id)).spending_used == pytest.approx(10.0)


async def test_summary_activity_is_logged(platform, executor, make_agent):
    agent = await make_agent()

    await executor.execute(TAG, agent.id)

    messages = [entry.message for entry in await platform.agents.list_activity(agent.id)]
    assert "Executed 1/1 transaction(s)" in messages


async def test_stablecoin_counts_toward_limit_at_its_rate(platform, executor, make_agent):
    agent = await make_agent(spending_used=0.0)

    await executor.execute(f"[[SEND_TOKEN|ceur|{RECIPIENT}|10]]", agent.id)

    used = (await platform.agents.get(agent.id)).spending_used
    assert used == pytest.approx(10 * TOKENS["CEUR"].usd_rate)


def test_format_amount_trims_trailing_zeros():
    assert format_amount(2.0) == "2"
    assert format_amount(0.125) == "0.125"
