"""
Cross-guild action coordinator.

Applies one moderation action (ban, unban, kick, nickname change) to a user in
every guild the bot belongs to. Guilds are processed concurrently and
independently: a failure in one guild is recorded as a failed
:class:`CrossGuildOutcome` and never stops the others. The returned list holds
exactly one outcome per guild, in no particular order.

Targeting the invoking user or the bot itself is rejected up front with
:class:`InvalidTargetError`, before any guild is touched.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence

import discord

from communityops.datatypes.action_datatypes import CrossGuildOutcome, GuildAction, GuildActionType
from communityops.moderation.exceptions import InvalidTargetError
from communityops.util.discord_utils import describe_exception, ensure_guild_available, fetch_member_or_none
from communityops.util.logger import get_logger

logger = get_logger("cross_guild_coordinator")

NOT_A_MEMBER = "User is not a member"


class CrossGuildCoordinator:
    """Fan a :class:`GuildAction` out across every guild of the bot."""

    def __init__(self, bot: discord.Bot) -> None:
        self._bot = bot

    @property
    def bot(self) -> discord.Bot:
        return self._bot

    @property
    def guilds(self) -> Sequence[discord.Guild]:
        return list(self._bot.guilds)

    def check_target(self, target_user_id: int, invoker_id: Optional[int]) -> None:
        """Reject actions aimed at the invoker or at the bot.

        Raises
        ------
        InvalidTargetError
            If the target is the invoking user or the bot's own account.
        """
        if invoker_id is not None and target_user_id == invoker_id:
            raise InvalidTargetError("You cannot target yourself with this action.")
        bot_user = self._bot.user
        if bot_user is not None and target_user_id == bot_user.id:
            raise InvalidTargetError("You cannot target the bot with this action.")

    async def apply_across_guilds(
        self,
        target_user_id: int,
        action: GuildAction,
        invoker_id: Optional[int] = None,
        guilds: Optional[Sequence[discord.Guild]] = None,
    ) -> List[CrossGuildOutcome]:
        """Run ``action`` against ``target_user_id`` in every guild.

        Parameters
        ----------
        target_user_id:
            Snowflake of the user to act on.
        action:
            What to do and the audit reason to attach.
        invoker_id:
            Staff member issuing the action; used for the self-target guard.
        guilds:
            Guilds to fan out over. Defaults to every guild the bot is in.

        Returns
        -------
        list[CrossGuildOutcome]
            One outcome per guild.
        """
        self.check_target(target_user_id, invoker_id)
        targets = list(guilds) if guilds is not None else self.guilds

        logger.info(
            "[CROSS GUILD] %s on user %s across %d guild(s) requested by %s",
            action.action.value,
            target_user_id,
            len(targets),
            invoker_id,
        )

        results = await asyncio.gather(
            *(self._apply_in_guild(guild, target_user_id, action) for guild in targets),
            return_exceptions=True,
        )

        outcomes: List[CrossGuildOutcome] = []
        for guild, result in zip(targets, results):
            if isinstance(result, CrossGuildOutcome):
                outcomes.append(result)
            else:
                # Only reachable for errors raised outside the per-guild guard (e.g. cancellation)
                outcomes.append(CrossGuildOutcome.failure(guild.id, describe_exception(result)))

        failed = sum(1 for outcome in outcomes if not outcome.ok)
        logger.info(
            "[CROSS GUILD] %s on user %s finished: %d succeeded, %d failed",
            action.action.value,
            target_user_id,
            len(outcomes) - failed,
            failed,
        )
        return outcomes

    async def _apply_in_guild(
        self,
        guild: discord.Guild,
        target_user_id: int,
        action: GuildAction,
    ) -> CrossGuildOutcome:
        try:
            guild = await ensure_guild_available(self._bot, guild)

            if action.action.requires_membership:
                member = await fetch_member_or_none(guild, target_user_id)
                if member is None:
                    return CrossGuildOutcome.failure(guild.id, NOT_A_MEMBER)
                await _MEMBER_HANDLERS[action.action](member, action)
            else:
                await _USER_HANDLERS[action.action](guild, discord.Object(id=target_user_id), action)
        except Exception as exc:
            message = describe_exception(exc)
            logger.warning(
                "[CROSS GUILD] %s failed for user %s in guild %s: %s",
                action.action.value,
                target_user_id,
                guild.id,
                message,
            )
            return CrossGuildOutcome.failure(guild.id, message)

        logger.debug("[CROSS GUILD] %s applied to user %s in guild %s", action.action.value, target_user_id, guild.id)
        return CrossGuildOutcome.success(guild.id)


async def _ban(guild: discord.Guild, user: discord.abc.Snowflake, action: GuildAction) -> None:
    await guild.ban(user, reason=action.reason)


async def _unban(guild: discord.Guild, user: discord.abc.Snowflake, action: GuildAction) -> None:
    await guild.unban(user, reason=action.reason)


async def _kick(member: discord.Member, action: GuildAction) -> None:
    await member.kick(reason=action.reason)


async def _set_nickname(member: discord.Member, action: GuildAction) -> None:
    await member.edit(nick=action.nickname, reason=action.reason)


_USER_HANDLERS: dict[GuildActionType, Callable[[discord.Guild, discord.abc.Snowflake, GuildAction], Awaitable[None]]] = {
    GuildActionType.BAN: _ban,
    GuildActionType.UNBAN: _unban,
}

_MEMBER_HANDLERS: dict[GuildActionType, Callable[[discord.Member, GuildAction], Awaitable[None]]] = {
    GuildActionType.KICK: _kick,
    GuildActionType.SET_NICKNAME: _set_nickname,
}
