"""Built-in skills backed by the Ledger Client."""

from agenthaus.ledger.tokens import NATIVE_SYMBOL, TOKENS, is_address
from agenthaus.skills.registry import SkillContext, SkillDefinition, SkillParam, SkillRegistry, SkillResult

CHECK_BALANCE = SkillDefinition(
    id="check_balance",
    name="Check Balance",
    description="Check the CELO and stablecoin balances of any address",
    command_tag="CHECK_BALANCE",
    params=[
        SkillParam("address", "0x address to check", example="0xABC...123"),
        SkillParam("token", "Only this token (symbol or address)", required=False, example="cUSD"),
    ],
    examples=[
        ("what's the balance of 0xABC...123?", "[[CHECK_BALANCE|0xABC...123]]"),
        ("how much cUSD does 0xABC...123 hold?", "[[CHECK_BALANCE|0xABC...123|cUSD]]"),
    ],
)

PORTFOLIO_STATUS = SkillDefinition(
    id="portfolio_status",
    name="Portfolio Status",
    description="Show the agent wallet holdings valued in USD",
    command_tag="PORTFOLIO_STATUS",
    examples=[("how is my portfolio doing?", "[[PORTFOLIO_STATUS]]")],
    requires_wallet=True,
)

SUPPORTED_TOKENS = SkillDefinition(
    id="supported_tokens",
    name="Supported Tokens",
    description="List the tokens this agent can send",
    command_tag="SUPPORTED_TOKENS",
    examples=[("which tokens can you send?", "[[SUPPORTED_TOKENS]]")],
)


async def check_balance(params: list[str], ctx: SkillContext) -> SkillResult:
    address = params[0] if params and params[0] else ctx.wallet_address
    if not address or not is_address(address):
        return SkillResult(False, f"❌ Invalid address: {address or '(none)'}")

    balance = await ctx.ledger.get_balance(address)
    symbol = params[1] if len(params) > 1 else ""
    if symbol and symbol.upper() != NATIVE_SYMBOL:
        token = balance.token(symbol)
        if token is None:
            return SkillResult(False, f"❌ No {symbol} balance found for `{address}`")
        return SkillResult(True, f"💰 `{address}` holds {token.balance:.4f} {token.symbol}", {token.symbol: token.balance})
    if symbol:
        return SkillResult(True, f"💰 `{address}` holds {balance.native:.4f} {NATIVE_SYMBOL}", {"native": balance.native})

    lines = [f"💰 **Balance for** `{address}`", f"• CELO: {balance.native:.4f}"]
    for token in balance.tokens:
        lines.append(f"• {token.symbol}: {token.balance:.4f}")
    return SkillResult(True, "\n".join(lines), {"native": balance.native})


async def portfolio_status(params: list[str], ctx: SkillContext) -> SkillResult:
    if not ctx.wallet_address:
        return SkillResult(False, "⚠️ Portfolio unavailable: wallet not initialized")

    balance = await ctx.ledger.get_balance(ctx.wallet_address)
    holdings = [("CELO", balance.native)] + [(t.symbol, t.balance) for t in balance.tokens]

    total = 0.0
    lines = ["📊 **Portfolio Status**"]
    for symbol, amount in holdings:
        value = ctx.converter.to_accounting(amount, symbol)
        total += value
        lines.append(f"• {symbol}: {amount:.4f} (≈ ${value:.2f})")
    lines.append(f"**Total:** ≈ ${total:.2f}")
    return SkillResult(True, "\n".join(lines), {"total_usd": total})


async def supported_tokens(params: list[str], ctx: SkillContext) -> SkillResult:
    lines = ["🪙 **Supported Tokens**"]
    for token in TOKENS.values():
        kind = "native" if token.is_native else token.address
        lines.append(f"• {token.symbol} ({token.name}): {kind}")
    return SkillResult(True, "\n".join(lines))


def default_registry() -> SkillRegistry:
    registry = SkillRegistry()
    registry.register(CHECK_BALANCE, check_balance)
    registry.register(PORTFOLIO_STATUS, portfolio_status)
    registry.register(SUPPORTED_TOKENS, supported_tokens)
    return registry
