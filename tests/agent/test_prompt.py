from agenthaus.agent.prompt import DEFAULT_PERSONA, EXTERNAL_USER_NOTICE, build_system_prompt
from agenthaus.models import Agent
from agenthaus.skills.builtin import default_registry

WALLET = "0x1111111111111111111111111111111111111111"


def make(**fields):
    defaults = {"name": "Remi", "template_type": "trading", "system_prompt": "You trade FX."}
    defaults.update(fields)
    return Agent(**defaults)


def test_wallet_agent_gets_transfer_grammar():
    prompt = build_system_prompt(make(wallet_address=WALLET), default_registry(), network="Celo Sepolia testnet")

    assert prompt.startswith("You trade FX.")
    assert f"Your wallet address: {WALLET} (Celo Sepolia testnet)" in prompt
    assert "[[SEND_NATIVE|<recipient_0x_address>|<amount>]]" in prompt
    assert "[[SEND_TOKEN|<currency>|<recipient_0x_address>|<amount>]]" in prompt
    assert "[AVAILABLE SKILLS" in prompt
    assert "[[PORTFOLIO_STATUS]]" in prompt
    assert "Requires wallet (not initialized)" not in prompt


def test_external_caller_is_told_not_to_transact():
    prompt = build_system_prompt(make(wallet_address=WALLET), default_registry(), allow_wallet=False)

    assert EXTERNAL_USER_NOTICE in prompt
    assert WALLET not in prompt
    assert "Requires wallet (not initialized)" in prompt


def test_agent_without_wallet_cannot_transact():
    prompt = build_system_prompt(make(system_prompt=None), default_registry())

    assert prompt.startswith(DEFAULT_PERSONA)
    assert "cannot transact" in prompt
    assert "[[SEND_NATIVE|" not in prompt


def test_skills_follow_template():
    prompt = build_system_prompt(make(template_type="social"), default_registry())

    assert "[[CHECK_BALANCE|<address>|<token?>]]" in prompt
    assert "SUPPORTED_TOKENS" not in prompt
