import itertools

import pytest

from agenthaus.agent.gateway import ChatResponse
from agenthaus.db.database import init_models, make_engine, make_session_factory
from agenthaus.ledger.client import Balance, Confirmation
from agenthaus.ledger.tokens import AccountingConverter
from agenthaus.services.container import build_platform

WALLET = "0x1111111111111111111111111111111111111111"
RECIPIENT = "0xABCDEF0123456789abcdef0123456789ABCDEF01"


class FakeLedger:
    """In-memory Ledger Client."""

    def __init__(self, native: float = 5.0, tokens=None):
        self.native = native
        self.tokens = tokens or []
        self.balance_error = None
        self.submit_error = None
        self.confirm_status = "success"
        self.submitted = []
        self.derived = []

    async def derive_address(self, index):
        self.derived.append(index)
        return "0x" + f"{index + 1:040x}"

    async def get_balance(self, address):
        if self.balance_error:
            raise self.balance_error
        return Balance(address=address, native=self.native, tokens=list(self.tokens))

    async def submit_transfer(self, index, to, amount, currency):
        if self.submit_error:
            raise self.submit_error
        self.submitted.append((index, to, amount, currency))
        return "0x" + f"{len(self.submitted):064x}"

    async def wait_for_confirmation(self, tx_hash):
        return Confirmation(tx_hash=tx_hash, status=self.confirm_status, block_number=42)


class FakeGateway:
    """Model Gateway returning canned replies; failures are keyed by model."""

    def __init__(self, replies=None, default="Hello from the agent."):
        self.replies = list(replies or [])
        self.default = default
        self.failures = {}
        self.calls = []

    async def complete(self, messages, provider, model):
        self.calls.append({"messages": messages, "provider": provider, "model": model})
        if model in self.failures:
            raise self.failures[model]
        text = self.replies.pop(0) if self.replies else self.default
        return ChatResponse(text=text, model_used=model, usage={"total_tokens": 10})


@pytest.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'agenthaus-test.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def platform(session_factory, gateway, ledger):
    return build_platform(
        session_factory,
        gateway=gateway,
        ledger=ledger,
        converter=AccountingConverter(native_usd_rate=1.0),
    )


@pytest.fixture
def make_agent(platform):
    indexes = itertools.count()

    async def _make(**fields):
        defaults = {
            "name": "Test Agent",
            "template_type": "payment",
            "status": "active",
            "wallet_address": WALLET,
            "wallet_derivation_index": next(indexes),
            "spending_limit": 100.0,
            "spending_used": 10.0,
        }
        defaults.update(fields)
        return await platform.agents.create(**defaults)

    return _make
