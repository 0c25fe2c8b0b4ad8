import httpx
import pytest

from agenthaus.errors import LedgerConfirmationTimeout, LedgerSubmissionFailed, ServiceUnavailable
from agenthaus.ledger.client import HttpLedgerClient


def make_client(handler):
    return HttpLedgerClient(base_url="http://ledger.test", api_key="k", transport=httpx.MockTransport(handler))


async def test_balance_is_parsed():
    def handler(request):
        assert request.url.path == "/wallets/0xabc/balance"
        assert request.headers["Authorization"] == "Bearer k"
        return httpx.Response(200, json={"native": "1.5", "tokens": [{"symbol": "cUSD", "address": "0x1", "balance": 3}]})

    async with make_client(handler) as client:
        balance = await client.get_balance("0xabc")

    assert balance.native == 1.5
    assert balance.token("cusd").balance == 3.0


async def test_submit_returns_hash_and_confirmation_is_read():
    def handler(request):
        if request.url.path == "/transfers":
            return httpx.Response(200, json={"txHash": "0xfeed"})
        assert request.url.params["wait"] == "true"
        return httpx.Response(200, json={"status": "success", "blockNumber": 7, "feeCurrency": "cUSD"})

    async with make_client(handler) as client:
        tx_hash = await client.submit_transfer(0, "0xto", "1", "CELO")
        confirmation = await client.wait_for_confirmation(tx_hash)

    assert tx_hash == "0xfeed"
    assert confirmation.ok
    assert confirmation.block_number == 7
    assert confirmation.fee_currency == "cUSD"


async def test_rejected_submission_raises():
    async with make_client(lambda request: httpx.Response(400, text="insufficient funds")) as client:
        with pytest.raises(LedgerSubmissionFailed, match="insufficient funds"):
            await client.submit_transfer(0, "0xto", "1", "CELO")


async def test_confirmation_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with make_client(handler) as client:
        with pytest.raises(LedgerConfirmationTimeout):
            await client.wait_for_confirmation("0xfeed")


async def test_unreachable_service_has_readable_message():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with make_client(handler) as client:
        with pytest.raises(ServiceUnavailable, match="Ledger server unreachable"):
            await client.derive_address(3)


@pytest.mark.parametrize("response", [httpx.Response(200, text="accepted"), httpx.Response(200, json=["0xabc"])])
async def test_unreadable_submission_reply_raises(response):
    async with make_client(lambda request: response) as client:
        with pytest.raises(LedgerSubmissionFailed, match="non-JSON|no transaction hash"):
            await client.submit_transfer(0, "0xto", "1", "CELO")
