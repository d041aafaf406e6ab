"""
Embed builders shared by every command.

Fixed colours are used across the bot: blue for information, green for
success, red for errors and amber for degraded results.
"""

from __future__ import annotations

import discord

from communityops.datatypes.action_datatypes import OutcomeSummary

INFO_COLOR = 0x2B6CB0
SUCCESS_COLOR = 0x2F855A
ERROR_COLOR = 0xC53030
WARNING_COLOR = 0xB7791F


def info_embed(title: str, description: str) -> discord.Embed:
    return discord.Embed(title=title, description=description, color=INFO_COLOR)


def success_embed(title: str, description: str) -> discord.Embed:
    return discord.Embed(title=title, description=description, color=SUCCESS_COLOR)


def error_embed(title: str, description: str) -> discord.Embed:
    return discord.Embed(title=title, description=description, color=ERROR_COLOR)


def warning_embed(title: str, description: str) -> discord.Embed:
    return discord.Embed(title=title, description=description, color=WARNING_COLOR)


def outcome_embed(title: str, summary: OutcomeSummary) -> discord.Embed:
    """Render a cross-guild summary, e.g. ``Operation complete. Success: 2. Failed: 1.``"""
    return success_embed(title, summary.describe())


def ia_opened_notice(user_id: int, channel_id: int) -> discord.Embed:
    return info_embed(
        "Internal Affairs Notice",
        f"An IA case has been opened for <@{user_id}>. A private channel has been created: <#{channel_id}>.",
    )


def ia_closed_notice(notes: str) -> discord.Embed:
    return info_embed("Internal Affairs Case Closed", f"Notes: {notes}")
