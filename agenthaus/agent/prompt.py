"""System prompt composition: persona + wallet section + skill instructions."""

from typing import Optional

from agenthaus.core.config import settings
from agenthaus.models import Agent
from agenthaus.skills.registry import SkillRegistry

DEFAULT_PERSONA = "You are a helpful AI agent on the Celo blockchain."


def wallet_instructions(wallet_address: str, network: str) -> str:
    return f"""

[TRANSACTION EXECUTION — CRITICAL INSTRUCTIONS]
Your wallet address: {wallet_address} ({network}).

You MUST use the following command tags to execute REAL on-chain transactions.
DO NOT fabricate transaction hashes, block numbers, or receipts.
DO NOT pretend a transaction was executed — only the command tags below trigger real execution.

To send native CELO:
  [[SEND_NATIVE|<recipient_0x_address>|<amount>]]

To send ERC-20 tokens (cUSD, cEUR, cREAL, or a token address this agent deployed):
  [[SEND_TOKEN|<currency>|<recipient_0x_address>|<amount>]]

FEE ABSTRACTION:
- Gas fees are AUTOMATICALLY paid using the best available currency.
- If the wallet has CELO, gas is paid in CELO (default).
- If the wallet has NO CELO but has cUSD/cEUR/cREAL, gas is paid from that stablecoin.

RULES:
- The command tag MUST appear in your response text exactly as shown (with double square brackets).
- The recipient MUST be a valid 0x address (42 hex characters). If the user gives an ENS or non-0x name, ask for the real address.
- After you include the tag, the system will execute the transaction and replace the tag with a real receipt (tx hash, explorer link).
- Always ask the user to confirm before including the command tag for amounts over 10.
- Never reveal private keys.

Example — user says "send 2 CELO to 0xABC...123":
  Your response: "Sending 2 CELO now. [[SEND_NATIVE|0xABC...123|2]]"

Example — user says "send 5 cUSD to 0xDEF...456":
  Your response: "Sending 5 cUSD now. [[SEND_TOKEN|cUSD|0xDEF...456|5]]"
"""


EXTERNAL_USER_NOTICE = """

[TRANSACTION CONTEXT — EXTERNAL USER]
The connected user is NOT the agent owner. You CANNOT execute transactions from the agent's wallet.
- Do NOT use [[SEND_NATIVE]] or [[SEND_TOKEN]] — they will not execute.
- Instead: prepare transaction details (recipient, amount, currency) and tell the user they can sign with their own wallet, or the agent owner must connect to execute.
- You can still provide quotes, check public data, and advise."""

NO_WALLET_NOTICE = (
    "\n\n[WALLET CONTEXT] This agent does not have a wallet initialized yet. "
    "You CANNOT execute any transactions; this agent cannot transact until its owner initializes a wallet. "
    'Tell the user to click "Initialize Wallet" on the agent dashboard first.'
)


def build_system_prompt(
    agent: Agent,
    skills: SkillRegistry,
    allow_wallet: bool = True,
    network: Optional[str] = None,
) -> str:
    prompt = agent.system_prompt or DEFAULT_PERSONA

    if agent.wallet_address and allow_wallet:
        prompt += wallet_instructions(agent.wallet_address, network or settings.NETWORK_NAME)
    elif agent.wallet_address:
        prompt += EXTERNAL_USER_NOTICE
    else:
        prompt += NO_WALLET_NOTICE

    # External callers never see the agent wallet through skills either
    skill_prompt = skills.prompt_for(agent.template_type, agent.wallet_address if allow_wallet else None)
    if skill_prompt:
        prompt += skill_prompt
    return prompt
