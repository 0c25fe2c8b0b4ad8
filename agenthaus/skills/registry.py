"""Skill registry: command tags the model may emit to query data or act."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from loguru import logger

from agenthaus.ledger.client import LedgerClient
from agenthaus.ledger.parser import TRANSFER_TAGS
from agenthaus.ledger.tokens import AccountingConverter

SKILL_TAG_RE = re.compile(r"\[\[([A-Z_]+?)(?:\|([^\]]*))?\]\]")


@dataclass
class SkillParam:
    name: str
    description: str
    required: bool = True
    example: str = ""


@dataclass
class SkillDefinition:
    id: str
    name: str
    description: str
    command_tag: str
    params: list[SkillParam] = field(default_factory=list)
    examples: list[tuple[str, str]] = field(default_factory=list)
    requires_wallet: bool = False


@dataclass
class SkillContext:
    agent_id: str
    wallet_address: Optional[str]
    ledger: LedgerClient
    converter: AccountingConverter


@dataclass
class SkillResult:
    success: bool
    display: str
    data: Optional[dict] = None


@dataclass
class SkillCommand:
    tag: str
    params: list[str]
    raw: str


SkillHandler = Callable[[list[str], SkillContext], Awaitable[SkillResult]]

TEMPLATE_SKILLS: dict[str, list[str]] = {
    "payment": ["check_balance", "supported_tokens"],
    "trading": ["check_balance", "portfolio_status", "supported_tokens"],
    "forex": ["check_balance", "portfolio_status", "supported_tokens"],
    "social": ["check_balance"],
    "custom": ["check_balance", "supported_tokens"],
}


class SkillRegistry:
    def __init__(self, template_skills: Optional[dict[str, list[str]]] = None):
        self._skills: dict[str, tuple[SkillDefinition, SkillHandler]] = {}
        self.template_skills = template_skills or TEMPLATE_SKILLS

    def register(self, definition: SkillDefinition, handler: SkillHandler) -> None:
        self._skills[definition.command_tag] = (definition, handler)

    def get(self, tag: str) -> Optional[SkillDefinition]:
        entry = self._skills.get(tag)
        return entry[0] if entry else None

    @property
    def definitions(self) -> list[SkillDefinition]:
        return [definition for definition, _ in self._skills.values()]

    def for_template(self, template: Optional[str]) -> list[SkillDefinition]:
        ids = self.template_skills.get(template or "custom") or self.template_skills["custom"]
        return [d for d in self.definitions if d.id in ids]

    def parse(self, text: str) -> list[SkillCommand]:
        """Registered skill tags in text order. Transfer and unknown tags are skipped."""
        commands = []
        for match in SKILL_TAG_RE.finditer(text):
            tag = match.group(1)
            if tag in TRANSFER_TAGS or tag not in self._skills:
                continue
            raw_params = match.group(2) or ""
            params = [p.strip() for p in raw_params.split("|")] if raw_params else []
            commands.append(SkillCommand(tag=tag, params=params, raw=match.group(0)))
        return commands

    async def execute(self, text: str, ctx: SkillContext) -> tuple[str, int]:
        """Run every skill tag and replace it with its display text."""
        commands = self.parse(text)
        executed = 0
        for cmd in commands:
            _, handler = self._skills[cmd.tag]
            try:
                result = await handler(cmd.params, ctx)
            except Exception as e:
                logger.warning(f"Skill {cmd.tag} failed for {ctx.agent_id}: {e}")
                text = text.replace(cmd.raw, f"\n❌ Skill `{cmd.tag}` failed: {e}\n", 1)
                continue
            text = text.replace(cmd.raw, f"\n{result.display}\n", 1)
            if result.success:
                executed += 1
        return text, executed

    def prompt_for(self, template: Optional[str], wallet_address: Optional[str]) -> str:
        skills = self.for_template(template)
        if not skills:
            return ""

        lines = ["", "[AVAILABLE SKILLS — Use these command tags to query data and execute actions]", ""]
        for skill in skills:
            params = "|".join(f"<{p.name}>" if p.required else f"<{p.name}?>" for p in skill.params)
            tag = f"[[{skill.command_tag}|{params}]]" if params else f"[[{skill.command_tag}]]"
            lines.append(f"**{skill.name}**: {skill.description}")
            lines.append(f"  Tag: {tag}")
            for said, emitted in skill.examples:
                lines.append(f'  Example — user says "{said}":')
                lines.append(f"    Your response includes: {emitted}")
            if skill.requires_wallet and not wallet_address:
                lines.append("  ⚠️ Requires wallet (not initialized)")
            lines.append("")

        lines.append("RULES:")
        lines.append("- Include the command tag in your response exactly as shown.")
        lines.append("- The system will execute the skill and replace the tag with real data.")
        lines.append("- DO NOT fabricate data — always use the command tags to get real information.")
        lines.append("- You can use multiple skill tags in one response.")
        return "\n".join(lines)
