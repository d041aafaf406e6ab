"""
Utility cog: community-wide nickname changes and command help.

``/mnick`` renames the invoker (Member+) or another user (Staff In Training+)
in every guild the bot is in. ``/help`` lists the commands the invoker may
run, based on the static command registry.
"""

import discord
from discord import Option
from discord.ext import commands

from communityops.bot.bot_services import BotServices
from communityops.bot.command_gate import respond_with_error
from communityops.datatypes.action_datatypes import MAX_NICKNAME_LENGTH, GuildAction, GuildActionType, OutcomeSummary
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import CommunityOpsError, InvalidTargetError
from communityops.ui.embeds import info_embed, outcome_embed
from communityops.util.logger import get_logger

logger = get_logger("utility_cog")


def format_command_list(names: list[str]) -> str:
    if not names:
        return "None"
    return "\n".join(f"• /{name}" for name in names)


class UtilityCog(commands.Cog):
    """Cog containing /mnick and /help."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Utility cog loaded")

    @commands.slash_command(name="mnick", description="Updates a nickname across all Magonila Project guilds.")
    async def mnick(
        self,
        ctx: discord.ApplicationContext,
        nickname: Option(str, f"The nickname to set (max {MAX_NICKNAME_LENGTH} characters).", required=True),  # type: ignore
        user: Option(discord.User, "Target user to rename (Staff In Training+ only).", required=False, default=None),  # type: ignore
    ) -> None:
        """Set a nickname everywhere the target is a member."""
        nickname = (nickname or "").strip()
        is_self = user is None or user.id == ctx.author.id

        try:
            if not 1 <= len(nickname) <= MAX_NICKNAME_LENGTH:
                raise InvalidTargetError(f"Nickname must be between 1 and {MAX_NICKNAME_LENGTH} characters.")

            if is_self:
                await self.services.gate.authorize(
                    ctx,
                    "mnick",
                    PermissionLevel.MEMBER,
                    "You must be Member or higher to change your nickname.",
                )
            else:
                await self.services.gate.authorize(
                    ctx,
                    "mnick",
                    PermissionLevel.STAFF_IN_TRAINING,
                    "You must be Staff In Training or higher to change another user's nickname.",
                )

            target_id = ctx.author.id if is_self else user.id
            bot_user = self.discord_bot_instance.user
            if bot_user is not None and target_id == bot_user.id:
                raise InvalidTargetError("You cannot modify the bot's nickname.")
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.defer()

        action = GuildAction(
            action=GuildActionType.SET_NICKNAME,
            reason=f"Nickname set by {ctx.author}",
            nickname=nickname,
        )
        # Renaming yourself is allowed, so the self-target guard is not applied here
        outcomes = await self.services.coordinator.apply_across_guilds(target_id, action)
        summary = OutcomeSummary.from_outcomes(outcomes)
        await ctx.respond(embed=outcome_embed("Nickname Update Result", summary))

    @commands.slash_command(name="help", description="Show commands available to you based on your permission level.")
    async def help_command(self, ctx: discord.ApplicationContext) -> None:
        """List the commands the invoker can run."""
        await ctx.defer(ephemeral=True)

        gate = self.services.gate
        registry = self.services.registry
        in_main_guild = gate.in_main_guild(ctx.guild.id if ctx.guild else None)

        everyone = registry.everyone_commands(in_main_guild)
        if ctx.guild is not None:
            try:
                member = await gate.invoking_member(ctx)
            except CommunityOpsError:
                member = None
            accessible = registry.accessible_commands(
                in_main_guild,
                lambda level: self.services.resolver.satisfies(member, level),
            )
        else:
            accessible = list(everyone)

        embed = info_embed("Command Help", "Below are commands available to you based on your current permission level.")
        embed.add_field(name="Your Commands", value=format_command_list(accessible), inline=False)
        embed.add_field(name="Everyone Commands", value=format_command_list(everyone), inline=False)
        await ctx.respond(embed=embed, ephemeral=True)


def setup(discord_bot_instance, services: BotServices):
    """Register the cog with the running bot instance."""
    discord_bot_instance.add_cog(UtilityCog(discord_bot_instance, services))
