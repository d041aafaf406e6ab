"""
Community Operations Bot
========================

A Discord bot that coordinates moderation across every guild of a community:
global bans, unbans, kicks and nicknames, Internal Affairs cases that strip and
later restore a member's roles everywhere, and the allocation/onboarding flow
for new recruits.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. COMMUNITYOPS_HOME environment variable, if set.
    2. If running in a frozen/compiled context, use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("COMMUNITYOPS_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from communityops.bot.bot_services import BotServices, build_services
from communityops.configuration.app_configuration import AppConfig
from communityops.configuration.bot_settings import BotSettings, load_bot_settings
from communityops.database.db_connection import db_connection
from communityops.database.ia_case_store import IACaseStore
from communityops.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> BotSettings:
    """Load ``.env`` and ``config/app_config.yml`` into a settings object.

    Returns
    -------
    BotSettings
        Settings built from the environment, with YAML values as fallback.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    app_config = AppConfig(BASE_DIR / "config" / "app_config.yml")
    return load_bot_settings(os.environ, app_config)


def build_intents() -> discord.Intents:
    """Construct the Discord intents the bot needs.

    Returns
    -------
    discord.Intents
        Intents enabling guild and member events.
    """
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, services: BotServices) -> None:
    """Register all cogs with the provided Discord bot instance.

    Parameters
    ----------
    discord_bot_instance:
        Py-Cord bot object that should receive the cogs.
    services:
        Shared services handed to every cog.
    """
    from communityops.bot.cogs import (
        channel_cmds,
        events_listener,
        global_moderation_cmds,
        ia_cmds,
        onboarding_cmds,
        utility_cmds,
    )

    events_listener.setup(discord_bot_instance, services)
    global_moderation_cmds.setup(discord_bot_instance, services)
    ia_cmds.setup(discord_bot_instance, services)
    onboarding_cmds.setup(discord_bot_instance, services)
    channel_cmds.setup(discord_bot_instance, services)
    utility_cmds.setup(discord_bot_instance, services)

    logger.info("All cogs loaded successfully.")


def create_bot(settings: BotSettings) -> discord.Bot:
    """Instantiate the Discord bot; development mode registers commands in the dev guild only."""
    debug_guilds = None
    if settings.is_development:
        if settings.dev_guild_id is None:
            logger.warning("MODE is development but DEV_GUILD_ID is not set; registering global commands.")
        else:
            debug_guilds = [settings.dev_guild_id]
    return discord.Bot(intents=build_intents(), debug_guilds=debug_guilds)


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Start the Discord bot and log around the connection."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None = None) -> None:
    """Close the Discord client and the database connection."""
    if bot is not None and not bot.is_closed():
        try:
            await bot.close()
        except Exception as exc:
            logger.exception("Error while closing the Discord client: %s", exc)

    try:
        await db_connection.close()
    except Exception as exc:
        logger.exception("Error while closing the database: %s", exc)

    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap settings, storage and the bot, returning an exit code.

    Returns
    -------
    int
        Process exit code reflecting success or failure of initialization.
    """
    settings = load_environment()
    if not settings.token:
        logger.critical("'DISCORD_TOKEN' environment variable not set. Bot cannot start.")
        return 1

    store = IACaseStore(db_connection)
    try:
        logger.info("Initializing database at %s...", settings.database_path)
        await db_connection.open(settings.database_path)
        await store.initialize()
    except Exception as exc:
        logger.critical("Failed to initialize database: %s", exc)
        await shutdown_runtime()
        return 1

    bot = None
    try:
        bot = create_bot(settings)
        services = build_services(bot, settings, store)
        load_cogs(bot, services)
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        await shutdown_runtime(bot)
        return 1

    exit_code = 0
    try:
        await start_bot(bot, settings.token)
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot)

    return exit_code


def main() -> int:
    """Entrypoint that runs the async runtime and returns the process code."""
    sys.excepthook = handle_exception
    logger.info("Starting Community Operations Bot…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
