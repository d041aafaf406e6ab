"""Event listener cog: presence on startup and command error handling."""

import discord
from discord.ext import commands

from communityops.bot.bot_services import BotServices
from communityops.ui.embeds import error_embed
from communityops.util.logger import get_logger

logger = get_logger("events_listener_cog")

DEVELOPMENT_ACTIVITY = "Currently in Development State"
PRODUCTION_ACTIVITY = "Overwatching Magnolia Project"


class EventsListenerCog(commands.Cog):
    """Cog containing bot lifecycle and command error handlers."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.bot = discord_bot_instance
        self.services = services
        logger.info("Events listener cog loaded")

    @commands.Cog.listener(name="on_ready")
    async def on_ready(self):
        """Set presence and log the startup summary."""
        if self.bot.user:
            await self._update_presence()
            logger.info(f"Bot connected as {self.bot.user} (ID: {self.bot.user.id})")
        else:
            logger.warning("Bot partially connected, but user information not yet available.")

        mode = "Development (Guild Commands)" if self.services.settings.is_development else "Production (Global Commands)"
        logger.info(f"Mode: {mode}. Commands: {len(self.services.registry)}. Guilds: {len(self.bot.guilds)}")
        logger.info("--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--==--")

    async def _update_presence(self) -> None:
        if self.services.settings.is_development:
            status = discord.Status.dnd
            activity_name = DEVELOPMENT_ACTIVITY
        else:
            status = discord.Status.online
            activity_name = PRODUCTION_ACTIVITY

        try:
            await self.bot.change_presence(
                status=status,
                activity=discord.Activity(type=discord.ActivityType.watching, name=activity_name),
            )
        except Exception as exc:
            logger.warning(f"Could not update presence: {exc}")

    @commands.Cog.listener(name="on_application_command_error")
    async def on_application_command_error(self, application_context: discord.ApplicationContext, error: Exception):
        """Log unexpected command errors and tell the user something went wrong."""
        if isinstance(error, commands.CommandNotFound):
            return

        command_name = getattr(application_context.command, "qualified_name", None) or "<unknown>"
        logger.error(f"Error in command '{command_name}': {error}", exc_info=error)

        embed = error_embed("Internal Error", "An unexpected error occurred while executing this command.")
        try:
            await application_context.respond(embed=embed, ephemeral=True)
        except discord.InteractionResponded:
            await application_context.followup.send(embed=embed, ephemeral=True)


def setup(discord_bot_instance, services: BotServices):
    """Register the cog with the running bot instance."""
    discord_bot_instance.add_cog(EventsListenerCog(discord_bot_instance, services))
