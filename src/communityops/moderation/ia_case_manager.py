"""
Internal Affairs case lifecycle.

Opening a case strips every editable role from the user in every guild the bot
is in, records exactly which role ids were removed per guild, creates a
private case channel in the primary guild and persists the case. Closing a
case re-adds the recorded roles, tears the channel down and marks the case
closed.

Design notes
- The role snapshot taken on open is the only input to restoration. Roles are
  identified by id; nothing is recomputed on close.
- Role removal is not rolled back if a later step (channel creation, notice)
  fails. The failure is reported in the result for an operator to fix.
- Per-guild work runs concurrently and fails independently.
- Open and close for the same user are serialised by an in-process lock so
  two overlapping ``/ia open`` calls cannot both pass the "no open case" check.
  The lock does not span processes.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional, Tuple

import discord

from communityops.configuration.bot_settings import BotSettings
from communityops.database.ia_case_store import IACaseStore
from communityops.datatypes.action_datatypes import CrossGuildOutcome
from communityops.datatypes.ia_case_datatypes import (
    CaseClosureUpdate,
    GuildRoleRestore,
    IACase,
    IACaseCloseResult,
    IACaseOpenResult,
    utc_now,
)
from communityops.moderation.exceptions import CaseExistsError, ConfigurationError, NoActiveCaseError
from communityops.ui.embeds import ia_closed_notice, ia_opened_notice
from communityops.util.discord_utils import (
    describe_exception,
    fetch_channel_or_none,
    fetch_member_or_none,
    role_is_editable,
)
from communityops.util.logger import get_logger

logger = get_logger("ia_case_manager")

STRIP_REASON = "[IA] Temporarily removed for IA case"
RESTORE_REASON = "[IA] Restored role upon case closure"
CHANNEL_REASON = "[IA] Private case channel"
CHANNEL_CLOSE_REASON = "[IA] Case closed"
DEFAULT_CLOSE_NOTES = "No additional notes"

NOT_A_MEMBER = "User is not a member"
GUILD_UNREACHABLE = "Guild is no longer reachable"


@dataclass(slots=True)
class _GuildStrip:
    guild_id: int
    member_found: bool = False
    attempted: List[int] = field(default_factory=list)
    removed: List[int] = field(default_factory=list)
    error: Optional[str] = None


class IACaseManager:
    """Open and close IA cases across every guild of the bot."""

    def __init__(
        self,
        bot: discord.Bot,
        store: IACaseStore,
        settings: BotSettings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._bot = bot
        self._store = store
        self._settings = settings
        self._clock = clock
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @asynccontextmanager
    async def _user_lock(self, user_id: int) -> AsyncIterator[None]:
        async with self._locks[user_id]:
            yield

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    async def open_case(
        self,
        target_user_id: int,
        opener_id: int,
        reason: str,
        fallback_guild: Optional[discord.Guild] = None,
    ) -> IACaseOpenResult:
        """Open an IA case for ``target_user_id``.

        Parameters
        ----------
        target_user_id:
            User placed under investigation.
        opener_id:
            Staff member opening the case.
        reason:
            Free-text reason stored with the case.
        fallback_guild:
            Guild used for the case channel when no main guild is configured
            or the bot is not in it (normally the guild the command ran in).

        Raises
        ------
        CaseExistsError
            The user already has an open case. Nothing was changed.
        ConfigurationError
            No guild is available to host the case channel. Nothing was changed.
        """
        async with self._user_lock(target_user_id):
            if await self._store.get_open_case(target_user_id) is not None:
                logger.info("[IA CASES] Refusing to open a second case for user %s", target_user_id)
                raise CaseExistsError(target_user_id)

            primary_guild = self._resolve_primary_guild(fallback_guild)

            strips = await asyncio.gather(
                *(self._strip_roles_in_guild(guild, target_user_id) for guild in self._bot.guilds)
            )

            snapshot: Dict[int, List[int]] = {}
            outcomes: List[CrossGuildOutcome] = []
            affected = 0
            errors = 0
            for strip in strips:
                if strip.member_found:
                    snapshot[strip.guild_id] = list(strip.attempted)
                if strip.removed:
                    affected += 1
                if strip.error is not None:
                    errors += 1
                    outcomes.append(CrossGuildOutcome.failure(strip.guild_id, strip.error))
                elif not strip.member_found:
                    outcomes.append(CrossGuildOutcome(strip.guild_id, True, NOT_A_MEMBER))
                else:
                    outcomes.append(CrossGuildOutcome.success(strip.guild_id))

            channel, channel_error = await self._create_case_channel(primary_guild, target_user_id)

            case = IACase(
                user_id=target_user_id,
                opened_by=opener_id,
                opened_at=self._clock(),
                reason=reason,
                channel_id=channel.id if channel is not None else None,
                guild_roles=snapshot,
            )
            try:
                case = await self._store.create_case(case)
            except Exception:
                logger.critical(
                    "[IA CASES] Roles were stripped from user %s but the case could not be saved; "
                    "manual restore needed. Snapshot: %s",
                    target_user_id,
                    snapshot,
                    exc_info=True,
                )
                raise

            if channel is not None:
                try:
                    await channel.send(embed=ia_opened_notice(target_user_id, channel.id))
                except Exception as exc:
                    channel_error = f"Case notice could not be posted: {describe_exception(exc)}"
                    logger.warning("[IA CASES] %s (channel %s)", channel_error, channel.id)

        logger.info(
            "[IA CASES] Opened case for user %s by %s: %d guild(s) affected, %d error(s)%s",
            target_user_id,
            opener_id,
            affected,
            errors,
            f", channel problem: {channel_error}" if channel_error else "",
        )
        return IACaseOpenResult(
            case=case,
            affected_guilds=affected,
            errors=errors,
            outcomes=outcomes,
            channel_error=channel_error,
        )

    def _resolve_primary_guild(self, fallback_guild: Optional[discord.Guild]) -> discord.Guild:
        main_guild_id = self._settings.main_guild_id
        if main_guild_id is not None:
            guild = self._bot.get_guild(main_guild_id)
            if guild is not None:
                return guild
            logger.warning("[IA CASES] Main guild %s is not reachable; using the invoking guild", main_guild_id)
        if fallback_guild is not None:
            return fallback_guild
        raise ConfigurationError("No guild is available to host the IA case channel.")

    async def _strip_roles_in_guild(self, guild: discord.Guild, user_id: int) -> _GuildStrip:
        strip = _GuildStrip(guild_id=guild.id)
        try:
            member = await fetch_member_or_none(guild, user_id)
            if member is None:
                return strip
            strip.member_found = True

            removable = [role for role in member.roles if role_is_editable(role)]
            strip.attempted = [role.id for role in removable]

            failures: List[str] = []
            for role in removable:
                try:
                    await member.remove_roles(role, reason=STRIP_REASON)
                    strip.removed.append(role.id)
                except Exception as exc:
                    failures.append(f"{role.id}: {describe_exception(exc)}")

            if failures:
                strip.error = "Could not remove role(s) " + "; ".join(failures)
                logger.warning("[IA CASES] Partial role removal for user %s in guild %s: %s", user_id, guild.id, strip.error)
        except Exception as exc:
            strip.error = describe_exception(exc)
            logger.warning("[IA CASES] Role removal failed for user %s in guild %s: %s", user_id, guild.id, strip.error)
        return strip

    async def _create_case_channel(
        self,
        guild: discord.Guild,
        user_id: int,
    ) -> Tuple[Optional[discord.TextChannel], Optional[str]]:
        allow = discord.PermissionOverwrite(view_channel=True, send_messages=True, read_message_history=True)
        overwrites: Dict[object, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            discord.Object(id=user_id): allow,
        }
        for role_id in self._settings.ia_oversight_role_ids:
            role = guild.get_role(role_id)
            if role is None:
                logger.warning("[IA CASES] Oversight role %s not found in guild %s", role_id, guild.id)
                continue
            overwrites[role] = allow

        try:
            channel = await guild.create_text_channel(
                name=f"ia-{user_id}",
                overwrites=overwrites,
                reason=CHANNEL_REASON,
            )
        except Exception as exc:
            message = f"Case channel could not be created: {describe_exception(exc)}"
            logger.error("[IA CASES] %s (guild %s, user %s)", message, guild.id, user_id)
            return None, message
        return channel, None

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    async def close_case(
        self,
        target_user_id: int,
        closer_id: int,
        notes: Optional[str] = None,
    ) -> IACaseCloseResult:
        """Close the open IA case for ``target_user_id`` and restore its roles.

        Raises
        ------
        NoActiveCaseError
            The user has no open case.
        """
        notes = (notes or "").strip() or DEFAULT_CLOSE_NOTES

        async with self._user_lock(target_user_id):
            case = await self._store.get_open_case(target_user_id)
            if case is None:
                raise NoActiveCaseError(target_user_id)

            results = await asyncio.gather(
                *(
                    self._restore_roles_in_guild(guild_id, target_user_id, role_ids)
                    for guild_id, role_ids in case.guild_roles.items()
                )
            )

            restores: List[GuildRoleRestore] = []
            outcomes: List[CrossGuildOutcome] = []
            restored_guilds = 0
            errors = 0
            for restore, outcome, reached in results:
                restores.append(restore)
                outcomes.append(outcome)
                if reached:
                    restored_guilds += 1
                if not outcome.ok:
                    errors += 1

            channel_error = await self._teardown_case_channel(case, notes)

            closed = await self._store.close_case(
                target_user_id,
                CaseClosureUpdate(closed_by=closer_id, closed_at=self._clock(), close_reason=notes),
            )
            if closed is None:
                raise NoActiveCaseError(target_user_id)

        logger.info(
            "[IA CASES] Closed case for user %s by %s: roles restored in %d guild(s), %d error(s)",
            target_user_id,
            closer_id,
            restored_guilds,
            errors,
        )
        return IACaseCloseResult(
            case=closed,
            restored_guilds=restored_guilds,
            errors=errors,
            restores=restores,
            outcomes=outcomes,
            channel_error=channel_error,
        )

    async def _restore_roles_in_guild(
        self,
        guild_id: int,
        user_id: int,
        role_ids: List[int],
    ) -> Tuple[GuildRoleRestore, CrossGuildOutcome, bool]:
        restore = GuildRoleRestore(guild_id=guild_id)

        guild = self._bot.get_guild(guild_id)
        if guild is None:
            restore.skipped = list(role_ids)
            logger.info("[IA CASES] Guild %s unreachable; skipping restore for user %s", guild_id, user_id)
            return restore, CrossGuildOutcome(guild_id, True, GUILD_UNREACHABLE), False

        try:
            member = await fetch_member_or_none(guild, user_id)
            if member is None:
                restore.skipped = list(role_ids)
                return restore, CrossGuildOutcome(guild_id, True, NOT_A_MEMBER), False

            for role_id in role_ids:
                role = guild.get_role(role_id)
                if role is None or not role_is_editable(role):
                    restore.skipped.append(role_id)
                    logger.info(
                        "[IA CASES] Role %s in guild %s no longer exists or is not editable; skipped",
                        role_id,
                        guild_id,
                    )
                    continue
                try:
                    await member.add_roles(role, reason=RESTORE_REASON)
                    restore.restored.append(role_id)
                except Exception as exc:
                    restore.failed.append(role_id)
                    logger.warning(
                        "[IA CASES] Could not restore role %s to user %s in guild %s: %s",
                        role_id,
                        user_id,
                        guild_id,
                        describe_exception(exc),
                    )
        except Exception as exc:
            pending = set(restore.restored) | set(restore.skipped) | set(restore.failed)
            restore.failed.extend(role_id for role_id in role_ids if role_id not in pending)
            message = describe_exception(exc)
            logger.warning("[IA CASES] Restore failed for user %s in guild %s: %s", user_id, guild_id, message)
            return restore, CrossGuildOutcome.failure(guild_id, message), False

        if restore.failed:
            outcome = CrossGuildOutcome.failure(
                guild_id, "Could not restore role(s) " + ", ".join(str(r) for r in restore.failed)
            )
        else:
            outcome = CrossGuildOutcome.success(guild_id)
        return restore, outcome, True

    async def _teardown_case_channel(self, case: IACase, notes: str) -> Optional[str]:
        if case.channel_id is None:
            return None

        channel = await fetch_channel_or_none(self._bot, case.channel_id)
        if channel is None:
            logger.info("[IA CASES] Case channel %s already gone", case.channel_id)
            return None

        problems: List[str] = []
        try:
            await channel.send(embed=ia_closed_notice(notes))
        except Exception as exc:
            problems.append(f"closure notice not posted: {describe_exception(exc)}")
        try:
            await channel.delete(reason=CHANNEL_CLOSE_REASON)
        except Exception as exc:
            problems.append(f"channel not deleted: {describe_exception(exc)}")

        if problems:
            message = "Case channel " + "; ".join(problems)
            logger.warning("[IA CASES] %s (channel %s)", message, case.channel_id)
            return message
        return None

    async def case_history(self, user_id: int) -> List[IACase]:
        """Every case ever recorded for a user, newest first."""
        return await self._store.list_cases(user_id)
