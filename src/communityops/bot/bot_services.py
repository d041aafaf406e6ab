"""Container for the services constructed once at startup and handed to every cog."""

from __future__ import annotations

from dataclasses import dataclass

import discord

from communityops.bot.command_gate import CommandGate
from communityops.bot.command_registry import COMMAND_REGISTRY, CommandRegistry
from communityops.configuration.bot_settings import BotSettings
from communityops.database.ia_case_store import IACaseStore
from communityops.moderation.cross_guild_coordinator import CrossGuildCoordinator
from communityops.moderation.ia_case_manager import IACaseManager
from communityops.onboarding.allocation_review import AllocationReviewService
from communityops.onboarding.recruit_onboarding import RecruitOnboarding
from communityops.permissions.permission_resolver import PermissionResolver


@dataclass(frozen=True)
class BotServices:
    settings: BotSettings
    resolver: PermissionResolver
    registry: CommandRegistry
    gate: CommandGate
    coordinator: CrossGuildCoordinator
    ia_cases: IACaseManager
    allocation_reviews: AllocationReviewService
    onboarding: RecruitOnboarding


def build_services(
    bot: discord.Bot,
    settings: BotSettings,
    store: IACaseStore,
    registry: CommandRegistry = COMMAND_REGISTRY,
) -> BotServices:
    """Wire every service from the shared settings."""
    resolver = PermissionResolver(settings)
    return BotServices(
        settings=settings,
        resolver=resolver,
        registry=registry,
        gate=CommandGate(settings, resolver, registry),
        coordinator=CrossGuildCoordinator(bot),
        ia_cases=IACaseManager(bot, store, settings),
        allocation_reviews=AllocationReviewService(settings, resolver),
        onboarding=RecruitOnboarding(settings),
    )
