"""Channel moderation cog: lock/unlock a channel and purge recent messages."""

import discord
from discord import Option
from discord.ext import commands

from communityops.bot.bot_services import BotServices
from communityops.bot.command_gate import respond_with_error
from communityops.moderation.exceptions import CommandUnavailableError, CommunityOpsError
from communityops.ui.embeds import error_embed, success_embed
from communityops.util.discord_utils import describe_exception
from communityops.util.logger import get_logger

logger = get_logger("channel_cog")

MAX_PURGE = 100
STAFF_IN_TRAINING_MESSAGE = "You must be Staff In Training or higher to use this command."


class ChannelCog(commands.Cog):
    """Cog containing /lockchannel and /purge."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Channel cog loaded")

    @commands.slash_command(name="lockchannel", description="Lock or unlock the current channel for @everyone (Staff In Training+).")
    async def lockchannel(
        self,
        ctx: discord.ApplicationContext,
        action: Option(  # type: ignore
            str,
            "Choose whether to lock or unlock this channel",
            required=True,
            choices=[discord.OptionChoice(name="Lock", value="lock"), discord.OptionChoice(name="Unlock", value="unlock")],
        ),
    ) -> None:
        """Deny or restore send_messages for @everyone in this channel."""
        channel = ctx.channel
        try:
            await self.services.gate.authorize(ctx, "lockchannel", message=STAFF_IN_TRAINING_MESSAGE)
            # Announcement channels are TextChannel instances in py-cord
            if not isinstance(channel, discord.TextChannel):
                raise CommandUnavailableError(
                    "Only standard text or announcement channels can be locked with this command.",
                    title="Unsupported",
                )
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.defer(ephemeral=True)
        locking = action == "lock"
        everyone = ctx.guild.default_role
        overwrite = channel.overwrites_for(everyone)
        overwrite.send_messages = False if locking else None
        try:
            await channel.set_permissions(everyone, overwrite=overwrite, reason=f"/lockchannel by {ctx.author}")
        except discord.HTTPException as exc:
            await ctx.respond(embed=error_embed("Action Failed", describe_exception(exc)), ephemeral=True)
            return

        logger.info("[CHANNEL] %s %s channel %s", ctx.author.id, "locked" if locking else "unlocked", channel.id)
        if locking:
            await ctx.respond(embed=success_embed("Channel Locked", "This channel has been locked for @everyone."), ephemeral=True)
        else:
            await ctx.respond(embed=success_embed("Channel Unlocked", "This channel has been unlocked for @everyone."), ephemeral=True)

    @commands.slash_command(name="purge", description="Bulk delete a number of recent messages in this channel (<= 100, < 14 days).")
    async def purge(
        self,
        ctx: discord.ApplicationContext,
        amount: Option(int, "Number of messages to delete (1-100).", required=True, min_value=1, max_value=MAX_PURGE),  # type: ignore
    ) -> None:
        """Bulk delete recent messages."""
        channel = ctx.channel
        try:
            await self.services.gate.authorize(ctx, "purge", message=STAFF_IN_TRAINING_MESSAGE)
            if not isinstance(channel, (discord.TextChannel, discord.Thread)):
                raise CommandUnavailableError("This channel type does not support bulk deletion.", title="Unsupported")
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        await ctx.defer(ephemeral=True)
        try:
            deleted = await channel.purge(limit=max(1, min(amount, MAX_PURGE)), bulk=True, reason=f"/purge by {ctx.author}")
        except discord.HTTPException as exc:
            await ctx.respond(embed=error_embed("Failed to Purge", describe_exception(exc)), ephemeral=True)
            return

        logger.info("[CHANNEL] %s purged %d message(s) in %s", ctx.author.id, len(deleted), channel.id)
        await ctx.respond(embed=success_embed("Purge Complete", f"{len(deleted)} message(s) were deleted."), ephemeral=True)


def setup(discord_bot_instance, services: BotServices):
    """Register the cog with the running bot instance."""
    discord_bot_instance.add_cog(ChannelCog(discord_bot_instance, services))
