import pytest

from agenthaus.agent.fallback import OPENROUTER_FREE_MODELS
from agenthaus.errors import ProviderRateLimited, ProviderUnauthorized
from conftest import RECIPIENT


async def test_prompt_history_and_user_turn_are_sent(platform, gateway, make_agent):
    agent = await make_agent(llm_provider="openrouter", llm_model=OPENROUTER_FREE_MODELS[0])
    history = [{"role": "user", "content": f"old {i}"} for i in range(30)]

    reply = await platform.runtime.process_message(agent.id, "hi there", history)

    assert reply == "Hello from the agent."
    messages = gateway.calls[0]["messages"]
    assert messages[0]["role"] == "system"
    assert messages[-1] == {"role": "user", "content": "hi there"}
    assert len(messages) == 1 + platform.runtime.history_window + 1
    assert messages[1]["content"] == "old 10"


async def test_falls_back_to_next_free_model(platform, gateway, make_agent):
    requested = OPENROUTER_FREE_MODELS[0]
    agent = await make_agent(llm_model=requested)
    gateway.failures[requested] = ProviderRateLimited("rate limited", 429)

    reply = await platform.runtime.process_message(agent.id, "hi")

    assert reply == "Hello from the agent."
    assert [c["model"] for c in gateway.calls] == [requested, OPENROUTER_FREE_MODELS[1]]
    [entry] = [a for a in await platform.agents.list_activity(agent.id) if a.message.startswith("Processed")]
    assert entry.meta["fallbackUsed"] == OPENROUTER_FREE_MODELS[1]
    assert entry.meta["requestedModel"] == requested


async def test_non_retryable_error_propagates_immediately(platform, gateway, make_agent):
    requested = OPENROUTER_FREE_MODELS[0]
    agent = await make_agent(llm_model=requested)
    gateway.failures[requested] = ProviderUnauthorized("bad key", 401)

    with pytest.raises(ProviderUnauthorized):
        await platform.runtime.process_message(agent.id, "hi")
    assert len(gateway.calls) == 1


async def test_exhausted_fallback_raises_last_error(platform, gateway, make_agent):
    agent = await make_agent(llm_model=OPENROUTER_FREE_MODELS[0])
    for model in OPENROUTER_FREE_MODELS:
        gateway.failures[model] = ProviderRateLimited(f"{model} busy", 429)

    with pytest.raises(ProviderRateLimited, match=OPENROUTER_FREE_MODELS[-1]):
        await platform.runtime.process_message(agent.id, "hi")
    assert len(gateway.calls) == len(OPENROUTER_FREE_MODELS)


async def test_other_providers_do_not_fall_back(platform, gateway, make_agent):
    agent = await make_agent(llm_provider="groq", llm_model="llama-3.3-70b-versatile")
    gateway.failures["llama-3.3-70b-versatile"] = ProviderRateLimited("busy", 429)

    with pytest.raises(ProviderRateLimited):
        await platform.runtime.process_message(agent.id, "hi")
    assert len(gateway.calls) == 1


async def test_skill_and_transfer_tags_are_executed(platform, gateway, ledger, make_agent):
    agent = await make_agent()
    gateway.replies = [f"Tokens: [[SUPPORTED_TOKENS]] Sending [[SEND_NATIVE|{RECIPIENT}|1]]"]

    reply = await platform.runtime.process_message(agent.id, "send 1 CELO")

    assert "Supported Tokens" in reply
    assert "Transaction Confirmed" in reply
    assert "[[" not in reply
    assert len(ledger.submitted) == 1
    messages = [a.message for a in await platform.agents.list_activity(agent.id)]
    assert "Executed 1 skill(s): payment template" in messages
    assert "Executed 1 on-chain transaction(s) from chat" in messages


async def test_channel_message_persists_history(platform, gateway, make_agent):
    agent = await make_agent()
    binding = await platform.sessions.create_binding(agent.id, "telegram", "9")
    await platform.runtime.process_channel_message(agent.id, binding.id, "first", {"channel": "telegram"})
    gateway.replies = ["second answer"]

    reply = await platform.runtime.process_channel_message(agent.id, binding.id, "second")

    assert reply == "second answer"
    sent = gateway.calls[1]["messages"]
    assert sent[1:3] == [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "Hello from the agent."},
    ]
    assert await platform.sessions.count_messages(binding.id) == 4
