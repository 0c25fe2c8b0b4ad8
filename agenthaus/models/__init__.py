from agenthaus.models.activity import ActivityLog
from agenthaus.models.agent import AGENT_STATUSES, Agent
from agenthaus.models.channel import ChannelBinding, SessionMessage
from agenthaus.models.cron import CronJob
from agenthaus.models.ledger import Transaction
from agenthaus.models.verification import AgentVerification

__all__ = [
    "AGENT_STATUSES",
    "ActivityLog",
    "Agent",
    "AgentVerification",
    "ChannelBinding",
    "CronJob",
    "SessionMessage",
    "Transaction",
]
