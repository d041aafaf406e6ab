"""
discord_utils.py
================

Low-level Discord utility functions shared by the moderation core.

Stateless helpers for fetching members and channels without raising, deciding
whether the bot may edit a role, and turning Discord errors into short
messages for outcome records.
"""

from typing import Optional

import discord

from communityops.util.logger import get_logger

logger = get_logger("discord_utils")


def describe_exception(exc: BaseException) -> str:
    """
    Produce a short human-readable description of a failed Discord call.

    Args:
        exc (BaseException): The exception raised by the API call.

    Returns:
        str: The API error text when present, otherwise the exception message or class name.
    """
    if isinstance(exc, discord.HTTPException):
        text = getattr(exc, "text", "") or ""
        if text:
            return text
    return str(exc) or type(exc).__name__ or "Unknown error"


async def ensure_guild_available(bot: discord.Bot, guild: discord.Guild) -> discord.Guild:
    """
    Return a usable guild object, refetching it when the gateway marks it unavailable.

    Args:
        bot (discord.Bot): Client used to refetch the guild.
        guild (discord.Guild): Cached guild object.

    Returns:
        discord.Guild: The cached guild, or a freshly fetched copy.
    """
    if getattr(guild, "unavailable", False):
        logger.debug("[DISCORD UTILS] Guild %s unavailable; refetching", guild.id)
        return await bot.fetch_guild(guild.id)
    return guild


async def fetch_member_or_none(guild: discord.Guild, user_id: int) -> Optional[discord.Member]:
    """
    Resolve a user as a member of a guild, from cache first and then the API.

    Args:
        guild (discord.Guild): Guild to look in.
        user_id (int): Snowflake of the user.

    Returns:
        discord.Member | None: The member, or None if the user is not in the guild
        or the lookup failed.
    """
    member = guild.get_member(user_id)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(user_id)
    except discord.HTTPException as exc:
        logger.debug("[DISCORD UTILS] Member %s not resolvable in guild %s: %s", user_id, guild.id, exc)
        return None


async def fetch_channel_or_none(bot: discord.Bot, channel_id: int):
    """Return a channel by id from cache or API, or None if it no longer exists."""
    channel = bot.get_channel(channel_id)
    if channel is not None:
        return channel
    try:
        return await bot.fetch_channel(channel_id)
    except discord.HTTPException as exc:
        logger.debug("[DISCORD UTILS] Channel %s not resolvable: %s", channel_id, exc)
        return None


def role_is_editable(role: discord.Role) -> bool:
    """
    Check whether the bot may add or remove a role.

    The guild's @everyone role and roles managed by integrations or sitting
    above the bot's top role are not editable.

    Args:
        role (discord.Role): The role to check.

    Returns:
        bool: True if the bot can assign or remove the role.
    """
    if role.is_default():
        return False
    return role.is_assignable()
