"""
Onboarding cog: allocation requests, their review buttons, and recruit onboarding.

``/allocation-request`` posts a review message with Approve/Deny buttons to the
configured review channel. Button presses are handled by :meth:`on_interaction`
by custom id, which keeps them working for messages posted before a restart.
"""

import discord
from discord import Option
from discord.ext import commands

from communityops.bot.bot_services import BotServices
from communityops.bot.command_gate import respond_with_error
from communityops.moderation.exceptions import CommandUnavailableError, CommunityOpsError, ConfigurationError
from communityops.onboarding.allocation_review import (
    AllocationDecision,
    AllocationRequest,
    AllocationReviewKey,
    embed_field_lookup,
)
from communityops.onboarding.recruit_onboarding import DEPARTMENTS, OnboardingResult, department_label
from communityops.ui.allocation_review_ui import (
    AllocationReviewView,
    build_approval_dm,
    build_approved_embed,
    build_denied_embed,
    build_review_embed,
)
from communityops.ui.embeds import error_embed, info_embed, success_embed, warning_embed
from communityops.util.discord_utils import describe_exception
from communityops.util.logger import get_logger

logger = get_logger("onboarding_cog")

NOT_PROVIDED = "Not Provided"


def build_onboarding_log(
    result: OnboardingResult,
    roleplay_name: str,
    webid: str,
    ts3: str,
    steamhex: str,
    moderator_id: int,
) -> discord.Embed:
    embed = info_embed("User Onboarded", "")
    user = result.member
    embed.add_field(name="User", value=f"<@{user.id}> ({user.id})", inline=False)
    embed.add_field(name="Roleplay Name", value=roleplay_name, inline=True)
    embed.add_field(name="Department", value=result.department, inline=True)
    embed.add_field(name="Website ID", value=webid or NOT_PROVIDED, inline=True)
    embed.add_field(name="Teamspeak UID", value=ts3 or NOT_PROVIDED, inline=True)
    embed.add_field(name="Steam Hex", value=steamhex or NOT_PROVIDED, inline=True)
    embed.add_field(name="Moderator", value=f"<@{moderator_id}>", inline=False)
    embed.timestamp = discord.utils.utcnow()
    return embed


async def send_ephemeral(interaction: discord.Interaction, embed: discord.Embed) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=True)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=True)


class OnboardingCog(commands.Cog):
    """Cog containing allocation and onboarding commands."""

    def __init__(self, discord_bot_instance, services: BotServices):
        self.discord_bot_instance = discord_bot_instance
        self.services = services
        logger.info("Onboarding cog loaded")

    @commands.slash_command(name="allocation-request", description="Submits an allocation request for review by Senior Staff+.")
    async def allocation_request(
        self,
        ctx: discord.ApplicationContext,
        name: Option(str, "Your full name.", required=True),  # type: ignore
        onboarder: Option(discord.User, "Your onboarder.", required=True),  # type: ignore
        date: Option(str, "Requested allocation date (e.g., 2025-11-07).", required=True),  # type: ignore
        ts3: Option(str, "Your Teamspeak UID", required=True),  # type: ignore
        webid: Option(str, "Your Website ID", required=True),  # type: ignore
        steamhex: Option(str, "Your Steam Hex", required=True),  # type: ignore
    ) -> None:
        """Post an allocation request to the review channel."""
        try:
            applicant = await self.services.gate.authorize(ctx, "allocation-request")
            channel_id = self.services.settings.require_allocation_review_channel_id()
            channel = ctx.guild.get_channel(channel_id)
            if not isinstance(channel, discord.TextChannel):
                raise ConfigurationError("The configured review channel is invalid or not a text channel.")
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        request = AllocationRequest(
            applicant_id=applicant.id,
            name=name.strip(),
            onboarder_id=onboarder.id,
            requested_date=date.strip(),
            ts3_uid=ts3.strip(),
            website_id=webid.strip(),
            steam_hex=steamhex.strip(),
        )
        await channel.send(embed=build_review_embed(request, applicant), view=AllocationReviewView(request))
        logger.info("[ALLOCATION] Request submitted by %s (onboarder %s)", applicant.id, onboarder.id)
        await ctx.respond(
            embed=success_embed(
                "Request Submitted",
                "Your allocation request has been submitted for review. You will be notified upon a decision.",
            ),
            ephemeral=True,
        )

    @commands.Cog.listener(name="on_interaction")
    async def on_interaction(self, interaction: discord.Interaction):
        """Route presses of allocation review buttons."""
        if interaction.type is not discord.InteractionType.component:
            return
        key = AllocationReviewKey.parse((interaction.data or {}).get("custom_id"))
        if key is None:
            return
        try:
            await self.handle_review(interaction, key)
        except CommunityOpsError as exc:
            await send_ephemeral(interaction, error_embed(exc.title, str(exc)))

    async def handle_review(self, interaction: discord.Interaction, key: AllocationReviewKey) -> None:
        guild = interaction.guild
        if guild is None:
            raise CommandUnavailableError("This action must be performed in a server.")
        message = interaction.message
        if message is not None and not message.components:
            raise CommandUnavailableError("This allocation request has already been reviewed.", title="Already Reviewed")

        reviewer = interaction.user if isinstance(interaction.user, discord.Member) else guild.get_member(interaction.user.id)

        approval_dm = None
        if key.decision is AllocationDecision.APPROVE and message is not None:
            fields = embed_field_lookup(message.embeds[0] if message.embeds else None)
            applicant = guild.get_member(key.applicant_id)
            approval_dm = build_approval_dm(
                guild.name,
                applicant if applicant is not None else discord.Object(id=key.applicant_id),
                interaction.user,
                fields,
            )

        result = await self.services.allocation_reviews.decide(guild, reviewer, key, approval_dm=approval_dm)

        if result.decision is AllocationDecision.APPROVE:
            resolved = build_approved_embed(interaction.user)
            fallback = success_embed("Approved", "Recruit role assigned and applicant notified.")
        else:
            resolved = build_denied_embed(interaction.user)
            fallback = error_embed("Denied", "The request has been marked as denied.")

        try:
            await interaction.response.edit_message(embed=resolved, view=None)
        except discord.HTTPException as exc:
            logger.warning("[ALLOCATION] Could not update review message: %s", describe_exception(exc))
            await send_ephemeral(interaction, fallback)

    @commands.slash_command(name="rec-onboard", description="Assign the Recruit role to a user (Staff+).")
    async def rec_onboard(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "User to tag as Recruit", required=True),  # type: ignore
        allocation_link: Option(str, "Message link to the user's allocation request", required=True),  # type: ignore
    ) -> None:
        """Grant the recruit role after an allocation request."""
        try:
            await self.services.gate.authorize(ctx, "rec-onboard", message="You must be Staff or higher to use this command.")
            await ctx.defer(ephemeral=True)
            assignment = await self.services.onboarding.assign_recruit(ctx.guild, user.id, allocation_link, ctx.author)
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        title = "No Changes" if assignment.already_recruit else "Recruit Assigned"
        await ctx.respond(embed=success_embed(title, assignment.summary()), ephemeral=True)

    @commands.slash_command(
        name="onboard",
        description="Onboard a Recruit into the community (sets nickname, removes Recruit, assigns department).",
    )
    async def onboard(
        self,
        ctx: discord.ApplicationContext,
        user: Option(discord.User, "User to onboard (must currently have Recruit)", required=True),  # type: ignore
        name: Option(str, "User's roleplay name (nickname will be set)", required=True),  # type: ignore
        department: Option(  # type: ignore
            str,
            "Department to assign",
            required=True,
            choices=[discord.OptionChoice(name=label, value=value) for label, value in DEPARTMENTS],
        ),
        webid: Option(str, "Website ID (used only for logging)", required=True),  # type: ignore
        ts3: Option(str, "Teamspeak UID (used only for logging)", required=True),  # type: ignore
        steamhex: Option(str, "Steam Hex (used only for logging)", required=True),  # type: ignore
    ) -> None:
        """Move a recruit into their department."""
        try:
            await self.services.gate.authorize(ctx, "onboard", message="You must be Staff or higher to use this command.")
            await ctx.defer(ephemeral=True)
            result = await self.services.onboarding.onboard(ctx.guild, user.id, name.strip(), department, ctx.author)
        except CommunityOpsError as exc:
            await respond_with_error(ctx, exc)
            return

        description = f"Successfully onboarded <@{user.id}> into {department_label(department)}."
        if result.failures:
            await ctx.respond(
                embed=warning_embed("Onboarding Incomplete", f"{description}\nFailed steps: {'; '.join(result.failures)}"),
                ephemeral=True,
            )
        else:
            await ctx.respond(embed=success_embed("Onboarding Complete", description), ephemeral=True)

        channel = ctx.channel
        if isinstance(channel, discord.TextChannel):
            try:
                await channel.send(embed=build_onboarding_log(result, name.strip(), webid, ts3, steamhex, ctx.author.id))
            except discord.HTTPException as exc:
                logger.info("[ONBOARDING] Could not post onboarding log: %s", describe_exception(exc))


def setup(discord_bot_instance, services: BotServices):
    """Register the cog with the running bot instance."""
    discord_bot_instance.add_cog(OnboardingCog(discord_bot_instance, services))
