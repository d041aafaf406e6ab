"""
UI components for allocation review messages.

The review message carries two buttons whose custom ids encode the decision
and the applicant. Button presses are routed by custom id from the onboarding
cog's interaction listener, so a review posted before a restart can still be
decided afterwards.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

import discord

from communityops.onboarding.allocation_review import (
    FIELD_APPLICANT,
    FIELD_NAME,
    FIELD_ONBOARDER,
    FIELD_REQUESTED_DATE,
    FIELD_STEAM_HEX,
    FIELD_TS3,
    FIELD_WEBSITE_ID,
    AllocationRequest,
    field_value,
)
from communityops.ui.embeds import ERROR_COLOR, INFO_COLOR, SUCCESS_COLOR

REVIEW_DESCRIPTION = (
    "A new allocation request has been submitted and is pending review by Senior Staff or higher.\n\n"
    "Reviewer Instruction: Prior to approval, please run `/rec-onboard [user]` to assign the Recruit role. "
    "Approval should proceed only after the user has the Recruit role."
)


class AllocationReviewView(discord.ui.View):
    """Approve/Deny buttons for one allocation request."""

    def __init__(self, request: AllocationRequest):
        super().__init__(timeout=None)
        approve_key, deny_key = request.review_keys()
        self.add_item(
            discord.ui.Button(
                label="Approve",
                style=discord.ButtonStyle.success,
                custom_id=approve_key.to_custom_id(),
            )
        )
        self.add_item(
            discord.ui.Button(
                label="Deny",
                style=discord.ButtonStyle.danger,
                custom_id=deny_key.to_custom_id(),
            )
        )


def _timestamp(moment: Optional[datetime]) -> str:
    if moment is None:
        return "Unknown"
    return f"<t:{int(moment.timestamp())}:F>"


def build_review_embed(request: AllocationRequest, applicant: discord.Member) -> discord.Embed:
    """Embed posted to the review channel for a new request."""
    roles = ", ".join(role.mention for role in applicant.roles if not role.is_default()) or "None"
    avatar = applicant.display_avatar.url

    embed = discord.Embed(title="Allocation Request", description=REVIEW_DESCRIPTION, color=INFO_COLOR)
    embed.set_author(name=f"{applicant} ({applicant.id})", icon_url=avatar)
    embed.set_thumbnail(url=avatar)
    embed.add_field(name=FIELD_APPLICANT, value=applicant.mention, inline=False)
    embed.add_field(name=FIELD_NAME, value=request.name, inline=True)
    embed.add_field(name=FIELD_ONBOARDER, value=f"<@{request.onboarder_id}>", inline=True)
    embed.add_field(name=FIELD_REQUESTED_DATE, value=request.requested_date, inline=True)
    embed.add_field(name=FIELD_TS3, value=request.ts3_uid, inline=True)
    embed.add_field(name=FIELD_WEBSITE_ID, value=request.website_id, inline=True)
    embed.add_field(name=FIELD_STEAM_HEX, value=request.steam_hex, inline=True)
    embed.add_field(name="Account Created", value=_timestamp(applicant.created_at), inline=True)
    embed.add_field(name="Member Since", value=_timestamp(applicant.joined_at), inline=True)
    embed.add_field(name="Current Roles", value=roles[:1024], inline=False)
    embed.set_footer(text=f"Applicant ID: {request.applicant_id} • Onboarder ID: {request.onboarder_id}")
    embed.timestamp = datetime.now(timezone.utc)
    return embed


def build_approval_dm(
    guild_name: str,
    applicant: discord.abc.User,
    reviewer: discord.abc.User,
    fields: Mapping[str, str],
) -> discord.Embed:
    """Direct message sent to an applicant whose request was approved."""
    embed = discord.Embed(
        title="Allocation Approved",
        description=(
            "Your allocation request has been reviewed and approved. You have been granted Recruit tags "
            "in the Discord. Please review the details below and contact your onboarder if you have any questions."
        ),
        color=SUCCESS_COLOR,
    )
    embed.add_field(name="Server", value=guild_name, inline=False)
    embed.add_field(name=FIELD_APPLICANT, value=f"{applicant} ({applicant.id})", inline=False)
    embed.add_field(name=FIELD_NAME, value=field_value(fields, FIELD_NAME), inline=True)
    embed.add_field(name=FIELD_ONBOARDER, value=field_value(fields, FIELD_ONBOARDER), inline=True)
    embed.add_field(name=FIELD_REQUESTED_DATE, value=field_value(fields, FIELD_REQUESTED_DATE), inline=False)
    embed.add_field(name="Reviewer", value=f"{reviewer} ({reviewer.id})", inline=False)
    embed.add_field(name="Timestamp", value=datetime.now(timezone.utc).isoformat(), inline=False)
    return embed


def build_approved_embed(reviewer: discord.abc.User) -> discord.Embed:
    return discord.Embed(
        title="Allocation Request — Approved",
        description=f"Approved by {reviewer}. Recruit role assigned.",
        color=SUCCESS_COLOR,
    )


def build_denied_embed(reviewer: discord.abc.User) -> discord.Embed:
    return discord.Embed(
        title="Allocation Request — Denied",
        description=f"Denied by {reviewer}.",
        color=ERROR_COLOR,
    )
