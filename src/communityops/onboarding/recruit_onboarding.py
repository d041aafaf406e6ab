"""
Recruit onboarding in the main guild.

``/rec-onboard`` grants the recruit role after an allocation request was
filed, reading the applicant's Teamspeak UID, Website ID and Steam Hex from
the linked review message when the link points into the same guild.
``/onboard`` then turns a recruit into a department member: it sets the
roleplay nickname, removes the recruit role and adds the department role.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from urllib.parse import urlparse

import discord

from communityops.configuration.bot_settings import BotSettings
from communityops.moderation.exceptions import AllocationReviewError, CommandUnavailableError
from communityops.onboarding.allocation_review import (
    FIELD_STEAM_HEX,
    FIELD_TS3,
    FIELD_WEBSITE_ID,
    embed_field_lookup,
)
from communityops.util.discord_utils import describe_exception, fetch_member_or_none
from communityops.util.logger import get_logger

logger = get_logger("recruit_onboarding")

# (choice label, department value matched against role names)
DEPARTMENTS: tuple[tuple[str, str], ...] = (
    ("Baton Rouge Police Department", "Police Department"),
    ("East Baton Rouge Parish Sheriff's Office", "Sheriffs Office"),
    ("Louisiana State Police", "State Police"),
    ("Baton Rouge Fire Department", "Fire Rescue"),
    ("Civilian Operations", "Civilian Operations"),
    ("Communications", "Communications"),
)

DETAIL_LABELS = (
    (FIELD_TS3, "TS3"),
    (FIELD_WEBSITE_ID, "Web ID"),
    (FIELD_STEAM_HEX, "Steam Hex"),
)


@dataclass(frozen=True, slots=True)
class MessageLink:
    guild_id: int
    channel_id: int
    message_id: int


@dataclass(slots=True)
class RecruitAssignment:
    member: discord.Member
    already_recruit: bool = False
    details: dict[str, str] = field(default_factory=dict)

    def summary(self) -> str:
        if self.already_recruit:
            return f"<@{self.member.id}> already has the Recruit role."
        parts = [f"{label}: {self.details[name]}" for name, label in DETAIL_LABELS if self.details.get(name)]
        text = f"Recruit role assigned to <@{self.member.id}>."
        if parts:
            text = f"{text} {' • '.join(parts)}"
        return text


@dataclass(slots=True)
class OnboardingResult:
    member: discord.Member
    department: str
    department_role: discord.Role
    failures: List[str] = field(default_factory=list)


def parse_message_link(link: str) -> Optional[MessageLink]:
    """Decode ``https://discord.com/channels/<guild>/<channel>/<message>``; None when malformed."""
    try:
        path = urlparse((link or "").strip()).path
    except ValueError:
        return None
    parts = [part for part in path.split("/") if part]
    if "channels" not in parts:
        return None
    idx = parts.index("channels")
    ids = parts[idx + 1: idx + 4]
    if len(ids) != 3 or not all(part.isdigit() for part in ids):
        return None
    return MessageLink(int(ids[0]), int(ids[1]), int(ids[2]))


def find_department_role(roles: Iterable[discord.Role], department: str) -> Optional[discord.Role]:
    """First role whose name equals or contains the department, case-insensitively."""
    needle = department.lower()
    for role in roles:
        name = role.name.lower()
        if name == needle or needle in name:
            return role
    return None


def department_label(department: str) -> str:
    for label, value in DEPARTMENTS:
        if value == department:
            return label
    return department


def has_role(member: discord.Member, role_id: int) -> bool:
    return any(role.id == role_id for role in member.roles)


class RecruitOnboarding:
    """Grant the recruit role and onboard recruits into departments."""

    def __init__(self, settings: BotSettings) -> None:
        self._settings = settings

    async def _require_member(self, guild: discord.Guild, user_id: int) -> discord.Member:
        member = await fetch_member_or_none(guild, user_id)
        if member is None:
            raise AllocationReviewError("Not Found", "The specified user is not in this guild.")
        return member

    async def read_allocation_details(self, guild: discord.Guild, link: str) -> dict[str, str]:
        """Fields of the review embed behind ``link``; empty when it cannot be read.

        Only links into ``guild`` are followed.
        """
        parsed = parse_message_link(link)
        if parsed is None or parsed.guild_id != guild.id:
            return {}
        channel = guild.get_channel(parsed.channel_id)
        if not isinstance(channel, discord.TextChannel):
            return {}
        try:
            message = await channel.fetch_message(parsed.message_id)
        except discord.HTTPException as exc:
            logger.debug("[ONBOARDING] Allocation message %s unreadable: %s", parsed.message_id, exc)
            return {}
        fields = embed_field_lookup(message.embeds[0] if message.embeds else None)
        return {name: fields[name.lower()] for name, _ in DETAIL_LABELS if fields.get(name.lower())}

    async def assign_recruit(
        self,
        guild: discord.Guild,
        user_id: int,
        allocation_link: str,
        moderator: discord.abc.User,
    ) -> RecruitAssignment:
        recruit_role_id = self._settings.require_recruit_role_id()
        member = await self._require_member(guild, user_id)
        if has_role(member, recruit_role_id):
            return RecruitAssignment(member=member, already_recruit=True)

        details = await self.read_allocation_details(guild, allocation_link)
        try:
            await member.add_roles(discord.Object(id=recruit_role_id), reason=f"Recruit assigned by {moderator}")
        except Exception as exc:
            raise AllocationReviewError("Failed", describe_exception(exc)) from exc

        logger.info("[ONBOARDING] Recruit role assigned to %s by %s", user_id, moderator.id)
        return RecruitAssignment(member=member, details=details)

    async def onboard(
        self,
        guild: discord.Guild,
        user_id: int,
        roleplay_name: str,
        department: str,
        moderator: discord.abc.User,
    ) -> OnboardingResult:
        """Set nickname, drop the recruit role and add the department role.

        Individual step failures are collected in ``failures`` rather than raised.

        Raises
        ------
        ConfigurationError
            No recruit role configured.
        AllocationReviewError
            Target not in the guild, or no matching department role.
        CommandUnavailableError
            Target does not hold the recruit role.
        """
        recruit_role_id = self._settings.require_recruit_role_id()
        member = await self._require_member(guild, user_id)
        if not has_role(member, recruit_role_id):
            raise CommandUnavailableError(
                "The target does not have the Recruit role. Assign it with /rec-onboard first.",
                title="Invalid State",
            )

        department_role = find_department_role(guild.roles, department)
        if department_role is None:
            raise AllocationReviewError(
                "Role Missing",
                f'Could not find a role matching "{department}". Please create or rename the role to match.',
            )

        result = OnboardingResult(member=member, department=department, department_role=department_role)
        reason = f"Onboarded by {moderator}"
        steps = (
            ("nickname", member.edit(nick=roleplay_name, reason=reason)),
            ("remove recruit", member.remove_roles(discord.Object(id=recruit_role_id), reason=reason)),
            ("add department", member.add_roles(department_role, reason=reason)),
        )
        for label, step in steps:
            try:
                await step
            except Exception as exc:
                result.failures.append(f"{label}: {describe_exception(exc)}")
                logger.warning("[ONBOARDING] %s failed for %s: %s", label, user_id, describe_exception(exc))

        logger.info("[ONBOARDING] %s onboarded into %s by %s", user_id, department, moderator.id)
        return result
