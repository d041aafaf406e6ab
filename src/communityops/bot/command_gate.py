"""
Shared pre-checks run by every command before it does any work.

The gate enforces the main-guild restriction from the command registry and
the permission level required by a command, and renders typed core errors as
ephemeral error embeds.
"""

from __future__ import annotations

from typing import Optional

import discord

from communityops.bot.command_registry import CommandRegistry
from communityops.configuration.bot_settings import BotSettings
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import CommandUnavailableError, CommunityOpsError, PermissionDeniedError
from communityops.permissions.permission_resolver import PermissionResolver
from communityops.ui.embeds import error_embed
from communityops.util.discord_utils import fetch_member_or_none
from communityops.util.logger import get_logger

logger = get_logger("command_gate")


class CommandGate:
    """Guild restriction and permission checks for slash commands."""

    def __init__(self, settings: BotSettings, resolver: PermissionResolver, registry: CommandRegistry) -> None:
        self.settings = settings
        self.resolver = resolver
        self.registry = registry

    def in_main_guild(self, guild_id: Optional[int]) -> bool:
        main_guild_id = self.settings.main_guild_id
        if main_guild_id is None or guild_id is None:
            return True
        return guild_id == main_guild_id

    def ensure_allowed_here(self, command_name: str, guild_id: Optional[int]) -> None:
        """Raise when a main-guild-only command is used in another guild."""
        spec = self.registry.get(command_name)
        if not spec.allow_all_guilds and not self.in_main_guild(guild_id):
            raise CommandUnavailableError(
                "This command is restricted to the main Discord server.",
                title="Unavailable Here",
            )

    def ensure_level(
        self,
        member: Optional[discord.Member],
        required: PermissionLevel,
        message: Optional[str] = None,
    ) -> None:
        if not self.resolver.satisfies(member, required):
            raise PermissionDeniedError(message or "You lack the required role to use this command.")

    async def invoking_member(self, ctx: discord.ApplicationContext) -> discord.Member:
        """Return the invoker as a guild member; commands only run inside guilds."""
        if ctx.guild is None:
            raise CommandUnavailableError("This command must be used in a server.")
        if isinstance(ctx.author, discord.Member):
            return ctx.author
        member = await fetch_member_or_none(ctx.guild, ctx.author.id)
        if member is None:
            raise CommandUnavailableError("Could not resolve your membership in this server.")
        return member

    async def authorize(
        self,
        ctx: discord.ApplicationContext,
        command_name: str,
        required: Optional[PermissionLevel] = None,
        message: Optional[str] = None,
    ) -> discord.Member:
        """Run the guild restriction and the level check for ``command_name``.

        ``required`` overrides the level from the registry, for commands whose
        requirement depends on their arguments.
        """
        member = await self.invoking_member(ctx)
        self.ensure_allowed_here(command_name, ctx.guild.id)
        level = required if required is not None else self.registry.get(command_name).required_level
        if level is not None:
            self.ensure_level(member, level, message)
        return member


async def respond_with_error(ctx: discord.ApplicationContext, error: CommunityOpsError) -> None:
    """Render a typed core error as an ephemeral error embed."""
    command_name = getattr(ctx.command, "qualified_name", None) or getattr(ctx.command, "name", "<unknown>")
    logger.info("[COMMAND GATE] /%s rejected for user %s: %s", command_name, ctx.author.id, error)
    await ctx.respond(embed=error_embed(error.title, str(error)), ephemeral=True)
