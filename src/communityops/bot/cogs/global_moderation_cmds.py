"""
Global moderation cog: ban, unban and kick a user in every guild at once.

Each command checks the invoker's permission level, rejects targeting the
invoker or the bot, then hands the action to the cross-guild coordinator and
reports how many guilds succeeded and failed. Per-guild failures never abort
the command.

Quick usage example
    from communityops.bot.cogs.global_moderation_cmds import GlobalModerationCog
    bot.add_cog(GlobalModerationCog(bot, services))
"""

import discord
from discord import Option
from discord.ext import commands

from communityops.bot.bot_services import BotServices
from communityops.bot.command_gate import respond_with_error
from communityops.datatypes.action_datatypes import DEFAULT_REASON, GuildAction, GuildActionType, OutcomeSummary
from communityops.moderation.exceptions import CommunityOpsError, InvalidTargetError
from communityops.ui.embeds import outcome_embed
from communityops.util.logger import get_logger

logger = get_logger("global_moderation_cog")

_ACTION_LABELS = {
    GuildActionType.BAN: "Ban",
    GuildActionType.UNBAN: "Unban",
    GuildActionType.KICK: "Kick",
}


def parse_user_id(raw: str) -> int:
    """Parse a raw user id option, accepting a bare id or a ``<@id>`` mention."""
    text = (raw or "").strip().removeprefix("<@").removeprefix("!").removesuffix(">")
    if not text.isdigit():
        raise InvalidTargetError("The user ID must be a numeric Discord ID.")
    return int(text)


class GlobalModerationCog(commands.Cog):
    """Cog containing the global ban, unban and kick commands."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Global moderation cog loaded")

    async def run_global_action(
        self,
        ctx: discord.ApplicationContext,
        command_name: str,
        action_type: GuildActionType,
        raw_user_id: str,
        reason: str,
    ) -> None:
        """Authorize, validate the target, fan out, and report the summary."""
        label = _ACTION_LABELS[action_type]
        try:
            await self.services.gate.authorize(ctx, command_name)
            user_id = parse_user_id(raw_user_id)
            self.services.coordinator.check_target(user_id, ctx.author.id)
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        reason = (reason or "").strip() or DEFAULT_REASON
        await ctx.defer()

        action = GuildAction(
            action=action_type,
            reason=f"Global {label} by {ctx.author}: {reason}",
        )
        outcomes = await self.services.coordinator.apply_across_guilds(user_id, action, invoker_id=ctx.author.id)
        summary = OutcomeSummary.from_outcomes(outcomes)

        logger.info(
            "[GLOBAL MODERATION] /%s on %s by %s: %d ok, %d failed",
            command_name,
            user_id,
            ctx.author.id,
            summary.succeeded,
            summary.failed,
        )
        await ctx.respond(embed=outcome_embed(f"Global {label} Result", summary))

    @commands.slash_command(name="gban", description="Globally bans a user from all guilds the bot is in.")
    async def gban(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "The user ID to ban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the ban.", required=False, default=DEFAULT_REASON),  # type: ignore
    ) -> None:
        """Ban a user from every guild the bot is in."""
        await self.run_global_action(ctx, "gban", GuildActionType.BAN, user_id, reason)

    @commands.slash_command(name="guban", description="Globally unbans a user from all guilds the bot is in.")
    async def guban(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "The user ID to unban.", required=True),  # type: ignore
        reason: Option(str, "Reason for the unban.", required=False, default=DEFAULT_REASON),  # type: ignore
    ) -> None:
        """Lift a ban in every guild the bot is in."""
        await self.run_global_action(ctx, "guban", GuildActionType.UNBAN, user_id, reason)

    @commands.slash_command(name="gkick", description="Globally kicks a user from all guilds the bot is in.")
    async def gkick(
        self,
        ctx: discord.ApplicationContext,
        user_id: Option(str, "The user ID to kick.", required=True),  # type: ignore
        reason: Option(str, "Reason for the kick.", required=False, default=DEFAULT_REASON),  # type: ignore
    ) -> None:
        """Kick a user from every guild where they are a member."""
        await self.run_global_action(ctx, "gkick", GuildActionType.KICK, user_id, reason)


def setup(discord_bot_instance, services: BotServices):
    """Register the cog with the running bot instance."""
    discord_bot_instance.add_cog(GlobalModerationCog(discord_bot_instance, services))
