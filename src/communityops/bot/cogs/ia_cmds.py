"""
Internal Affairs cog: ``/ia open`` and ``/ia close``.

Both subcommands require Senior Staff or higher and delegate to the IA case
manager. The reply is a summary with affected/restored guild and error
counts; degraded outcomes such as a missing case channel are spelled out so
an operator can follow up by hand.
"""

import discord
from discord import Option
from discord.ext import commands

from communityops.bot.bot_services import BotServices
from communityops.bot.command_gate import respond_with_error
from communityops.datatypes.ia_case_datatypes import IACaseCloseResult, IACaseOpenResult
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import CommunityOpsError, InvalidTargetError
from communityops.moderation.ia_case_manager import DEFAULT_CLOSE_NOTES
from communityops.ui.embeds import success_embed, warning_embed
from communityops.util.logger import get_logger

logger = get_logger("ia_cog")

IA_PERMISSION_MESSAGE = "Senior Staff or higher is required to manage IA cases."


def render_open_result(result: IACaseOpenResult) -> discord.Embed:
    description = f"Affected guilds: {result.affected_guilds}. Errors: {result.errors}."
    if result.channel_error:
        return warning_embed("IA Case Opened", f"{description}\n{result.channel_error}")
    return success_embed("IA Case Opened", description)


def render_close_result(result: IACaseCloseResult) -> discord.Embed:
    description = f"Roles restored in {result.restored_guilds} guild(s). Errors: {result.errors}."
    skipped = sum(len(restore.skipped) for restore in result.restores)
    if skipped:
        description += f" Skipped role(s): {skipped}."
    if result.channel_error:
        return warning_embed("IA Case Closed", f"{description}\n{result.channel_error}")
    return success_embed("IA Case Closed", description)


class InternalAffairsCog(commands.Cog):
    """Cog containing the ``/ia`` command group."""

    ia = discord.SlashCommandGroup("ia", "Open or close an Internal Affairs case.")

    def __init__(self, discord_bot_instance, services: BotServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Internal Affairs cog loaded")

    async def authorize(self, ctx: discord.ApplicationContext, target: discord.abc.User) -> None:
        await self.services.gate.authorize(ctx, "ia", PermissionLevel.SENIOR_STAFF, IA_PERMISSION_MESSAGE)
        bot_user = self.discord_bot_instance.user
        if bot_user is not None and target.id == bot_user.id:
            raise InvalidTargetError("The bot cannot be placed under an IA case.")

    @ia.command(name="open", description="Open an IA case: temporarily remove roles and create a private channel.")
    async def ia_open(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "User to place under IA case", required=True),  # type: ignore
        reason: Option(str, "Reason for IA case", required=True),  # type: ignore
    ) -> None:
        """Strip the user's roles everywhere and open a private case channel."""
        try:
            await self.authorize(ctx, user)
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.defer(ephemeral=True)
        try:
            result = await self.services.ia_cases.open_case(
                target_user_id=user.id,
                opener_id=ctx.author.id,
                reason=reason,
                fallback_guild=ctx.guild,
            )
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.respond(embed=render_open_result(result), ephemeral=True)

    @ia.command(name="close", description="Close an IA case: restore roles and remove private channel.")
    async def ia_close(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "User to release", required=True),  # type: ignore
        reason: Option(str, "Closure notes (optional)", required=False, default=DEFAULT_CLOSE_NOTES),  # type: ignore
    ) -> None:
        """Restore the user's recorded roles and close the case."""
        try:
            await self.authorize(ctx, user)
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.defer(ephemeral=True)
        try:
            result = await self.services.ia_cases.close_case(
                target_user_id=user.id,
                closer_id=ctx.author.id,
                notes=reason,
            )
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.respond(embed=render_close_result(result), ephemeral=True)


def setup(discord_bot_instance, services: BotServices):
    """Register the cog with the running bot instance."""
    discord_bot_instance.add_cog(InternalAffairsCog(discord_bot_instance, services))
