"""Session Store: channel bindings and rolling per-binding conversation history."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from agenthaus.models import ChannelBinding, SessionMessage
from agenthaus.utils.clock import utcnow

MAX_MESSAGES_PER_BINDING = 100


class SessionStore:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_messages: int = MAX_MESSAGES_PER_BINDING,
    ):
        self._sessions = session_factory
        self.max_messages = max_messages

    # --- Bindings ---

    async def get_binding(self, binding_id: str) -> Optional[ChannelBinding]:
        async with self._sessions() as db:
            return await db.get(ChannelBinding, binding_id)

    async def find_active_binding(self, channel_type: str, sender_id: str) -> Optional[ChannelBinding]:
        stmt = (
            select(ChannelBinding)
            .where(
                ChannelBinding.channel_type == channel_type,
                ChannelBinding.sender_identifier == sender_id,
                ChannelBinding.is_active.is_(True),
            )
            .order_by(ChannelBinding.last_message_at.desc())
        )
        async with self._sessions() as db:
            return (await db.execute(stmt)).scalars().first()

    async def find_agent_binding(
        self, agent_id: str, channel_type: str, sender_id: str
    ) -> Optional[ChannelBinding]:
        """Most recent binding (active or not) between this sender and agent."""
        stmt = (
            select(ChannelBinding)
            .where(
                ChannelBinding.agent_id == agent_id,
                ChannelBinding.channel_type == channel_type,
                ChannelBinding.sender_identifier == sender_id,
            )
            .order_by(ChannelBinding.is_active.desc(), ChannelBinding.last_message_at.desc())
        )
        async with self._sessions() as db:
            return (await db.execute(stmt)).scalars().first()

    async def create_binding(
        self,
        agent_id: str,
        channel_type: str,
        sender_id: str,
        chat_id: Optional[str] = None,
        sender_name: Optional[str] = None,
        binding_type: str = "pairing",
        pairing_code: Optional[str] = None,
    ) -> ChannelBinding:
        """Deactivate the sender's active bindings and insert the new one in one transaction."""
        now = utcnow()
        async with self._sessions() as db:
            async with db.begin():
                await db.execute(
                    update(ChannelBinding)
                    .where(
                        ChannelBinding.channel_type == channel_type,
                        ChannelBinding.sender_identifier == sender_id,
                        ChannelBinding.is_active.is_(True),
                    )
                    .values(is_active=False)
                )
                binding = ChannelBinding(
                    agent_id=agent_id,
                    channel_type=channel_type,
                    sender_identifier=sender_id,
                    sender_name=sender_name,
                    chat_identifier=chat_id,
                    binding_type=binding_type,
                    pairing_code=pairing_code,
                    is_active=True,
                    paired_at=now,
                    last_message_at=now,
                )
                db.add(binding)
            return binding

    async def reactivate_binding(
        self, binding_id: str, chat_id: Optional[str] = None, sender_name: Optional[str] = None
    ) -> Optional[ChannelBinding]:
        """Make an existing binding the sender's only active one again."""
        async with self._sessions() as db:
            async with db.begin():
                binding = await db.get(ChannelBinding, binding_id)
                if binding is None:
                    return None
                await db.execute(
                    update(ChannelBinding)
                    .where(
                        ChannelBinding.channel_type == binding.channel_type,
                        ChannelBinding.sender_identifier == binding.sender_identifier,
                        ChannelBinding.is_active.is_(True),
                        ChannelBinding.id != binding_id,
                    )
                    .values(is_active=False)
                )
                binding.is_active = True
                binding.last_message_at = utcnow()
                if chat_id:
                    binding.chat_identifier = chat_id
                if sender_name:
                    binding.sender_name = sender_name
            return binding

    async def touch_binding(self, binding_id: str) -> None:
        async with self._sessions() as db:
            await db.execute(
                update(ChannelBinding).where(ChannelBinding.id == binding_id).values(last_message_at=utcnow())
            )
            await db.commit()

    async def deactivate_binding(self, binding_id: str) -> None:
        async with self._sessions() as db:
            await db.execute(
                update(ChannelBinding).where(ChannelBinding.id == binding_id).values(is_active=False)
            )
            await db.commit()

    async def list_agent_bindings(self, agent_id: str, active_only: bool = False) -> list[ChannelBinding]:
        stmt = (
            select(ChannelBinding)
            .where(ChannelBinding.agent_id == agent_id)
            .order_by(ChannelBinding.last_message_at.desc())
        )
        if active_only:
            stmt = stmt.where(ChannelBinding.is_active.is_(True))
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    # --- History ---

    async def load_history(self, binding_id: str, limit: int = 20) -> list[dict]:
        """Most recent turns as chat messages, oldest first."""
        stmt = (
            select(SessionMessage)
            .where(
                SessionMessage.binding_id == binding_id,
                SessionMessage.role.in_(("user", "assistant")),
            )
            .order_by(SessionMessage.id.desc())
            .limit(limit)
        )
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).scalars().all()
        return [{"role": m.role, "content": m.content} for m in reversed(rows)]

    async def append_exchange(
        self,
        binding_id: str,
        user_text: str,
        reply: str,
        metadata: Optional[dict] = None,
    ) -> int:
        """Persist a user turn and the reply, then prune. Returns the number of pruned rows."""
        async with self._sessions() as db:
            async with db.begin():
                db.add(SessionMessage(binding_id=binding_id, role="user", content=user_text))
                db.add(SessionMessage(binding_id=binding_id, role="assistant", content=reply, meta=metadata))
        return await self.prune_binding(binding_id)

    async def prune_binding(self, binding_id: str) -> int:
        async with self._sessions() as db:
            keep = (
                select(SessionMessage.id)
                .where(SessionMessage.binding_id == binding_id)
                .order_by(SessionMessage.id.desc())
                .limit(self.max_messages)
            )
            result = await db.execute(
                delete(SessionMessage).where(
                    SessionMessage.binding_id == binding_id,
                    SessionMessage.id.not_in(keep.scalar_subquery()),
                )
            )
            await db.commit()
            return result.rowcount or 0

    async def count_messages(self, binding_id: str) -> int:
        async with self._sessions() as db:
            stmt = select(func.count()).select_from(SessionMessage).where(SessionMessage.binding_id == binding_id)
            return (await db.execute(stmt)).scalar_one()

    async def prune_expired(self, retention_days: int) -> int:
        """Delete messages older than the retention window. 0 disables."""
        if retention_days <= 0:
            return 0
        cutoff = utcnow() - timedelta(days=retention_days)
        async with self._sessions() as db:
            result = await db.execute(delete(SessionMessage).where(SessionMessage.created_at < cutoff))
            await db.commit()
        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Pruned {deleted} session message(s) older than {retention_days} days")
        return deleted
