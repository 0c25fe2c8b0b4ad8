"""AgentHaus - multi-channel agents with on-chain wallets."""

__version__ = "0.1.0"
