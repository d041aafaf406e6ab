from types import MappingProxyType, SimpleNamespace
from unittest.mock import AsyncMock

import discord
import pytest

from discord_fakes import FakeBot, FakeGuild, MemoryCaseStore, http_error

from communityops.bot.bot_services import build_services
from communityops.bot.cogs import (
    channel_cmds,
    events_listener,
    global_moderation_cmds,
    ia_cmds,
    onboarding_cmds,
    utility_cmds,
)
from communityops.bot.cogs.global_moderation_cmds import parse_user_id
from communityops.configuration.bot_settings import BotSettings
from communityops.datatypes.ia_case_datatypes import IACase, IACaseCloseResult, IACaseOpenResult, GuildRoleRestore
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import InvalidTargetError
from communityops.ui.embeds import SUCCESS_COLOR, WARNING_COLOR

MAIN = 1
ADMIN_ROLE = 10
SENIOR_STAFF_ROLE = 11
MEMBER_ROLE = 12
ADMIN_ID = 5
TARGET = 42


def build_world(guild_count=3):
    guilds = [FakeGuild(guild_id) for guild_id in range(MAIN, MAIN + guild_count)]
    main = guilds[0]
    main.add_role(ADMIN_ROLE, "admins")
    main.add_role(SENIOR_STAFF_ROLE, "senior")
    main.add_role(MEMBER_ROLE, "members")
    main.add_member(ADMIN_ID, [ADMIN_ROLE])
    bot = FakeBot(guilds)
    settings = BotSettings(
        main_guild_id=MAIN,
        default_role_ids=MappingProxyType({
            PermissionLevel.ADMINISTRATION: ADMIN_ROLE,
            PermissionLevel.SENIOR_STAFF: SENIOR_STAFF_ROLE,
            PermissionLevel.MEMBER: MEMBER_ROLE,
        }),
    )
    services = build_services(bot, settings, MemoryCaseStore())
    return bot, services


def make_ctx(guild, author_id=ADMIN_ID):
    return SimpleNamespace(
        guild=guild,
        author=SimpleNamespace(id=author_id),
        channel=SimpleNamespace(id=77),
        command=SimpleNamespace(qualified_name="test"),
        defer=AsyncMock(),
        respond=AsyncMock(),
    )


def sent_embed(ctx):
    return ctx.respond.await_args.kwargs["embed"]


def test_setup_functions_register_cogs():
    bot, services = build_world()
    for module in (channel_cmds, events_listener, global_moderation_cmds, ia_cmds, onboarding_cmds, utility_cmds):
        module.setup(bot, services)

    assert [type(cog).__name__ for cog in bot.added_cogs] == [
        "ChannelCog",
        "EventsListenerCog",
        "GlobalModerationCog",
        "InternalAffairsCog",
        "OnboardingCog",
        "UtilityCog",
    ]


@pytest.mark.parametrize("raw, expected", [("42", 42), (" <@42> ", 42), ("<@!42>", 42)])
def test_parse_user_id(raw, expected):
    assert parse_user_id(raw) == expected


def test_parse_user_id_rejects_garbage():
    with pytest.raises(InvalidTargetError):
        parse_user_id("someone")


@pytest.mark.asyncio
async def test_gban_reports_summary():
    bot, services = build_world()
    bot.guilds[2].ban_error = http_error(text="Missing Permissions")
    cog = global_moderation_cmds.GlobalModerationCog(bot, services)
    ctx = make_ctx(bot.guilds[0])

    await global_moderation_cmds.GlobalModerationCog.gban.callback(cog, ctx, str(TARGET), "spam")

    ctx.defer.assert_awaited_once()
    embed = sent_embed(ctx)
    assert embed.title == "Global Ban Result"
    assert embed.description == "Operation complete. Success: 2. Failed: 1."
    assert bot.guilds[0].audit_reasons == [f"Global Ban by {ctx.author}: spam"]


@pytest.mark.asyncio
async def test_gban_denied_below_administration():
    bot, services = build_world()
    bot.guilds[0].add_member(6, [SENIOR_STAFF_ROLE])
    cog = global_moderation_cmds.GlobalModerationCog(bot, services)
    ctx = make_ctx(bot.guilds[0], author_id=6)

    await global_moderation_cmds.GlobalModerationCog.gban.callback(cog, ctx, str(TARGET), "spam")

    ctx.defer.assert_not_awaited()
    assert sent_embed(ctx).title == "Insufficient Permission"
    assert all(guild.bans == [] for guild in bot.guilds)


@pytest.mark.asyncio
async def test_gkick_refuses_self_target():
    bot, services = build_world()
    cog = global_moderation_cmds.GlobalModerationCog(bot, services)
    ctx = make_ctx(bot.guilds[0])

    await global_moderation_cmds.GlobalModerationCog.gkick.callback(cog, ctx, str(ADMIN_ID), "test")

    assert sent_embed(ctx).title == "Invalid Target"
    assert ADMIN_ID in bot.guilds[0].members


@pytest.mark.asyncio
async def test_mnick_self_rename_requires_member_level():
    bot, services = build_world(2)
    member = bot.guilds[0].add_member(6, [MEMBER_ROLE])
    cog = utility_cmds.UtilityCog(bot, services)
    ctx = make_ctx(bot.guilds[0], author_id=6)

    await utility_cmds.UtilityCog.mnick.callback(cog, ctx, "  New Name  ", None)

    assert member.nick == "New Name"
    # Not a member of the second guild
    assert sent_embed(ctx).description == "Operation complete. Success: 1. Failed: 1."


@pytest.mark.asyncio
async def test_mnick_rejects_long_nickname_and_renaming_others_without_level():
    bot, services = build_world(1)
    bot.guilds[0].add_member(6, [MEMBER_ROLE])
    cog = utility_cmds.UtilityCog(bot, services)

    ctx = make_ctx(bot.guilds[0], author_id=6)
    await utility_cmds.UtilityCog.mnick.callback(cog, ctx, "x" * 33, None)
    assert sent_embed(ctx).title == "Invalid Target"

    ctx = make_ctx(bot.guilds[0], author_id=6)
    await utility_cmds.UtilityCog.mnick.callback(cog, ctx, "Name", SimpleNamespace(id=ADMIN_ID))
    assert sent_embed(ctx).title == "Insufficient Permission"


@pytest.mark.asyncio
async def test_help_lists_accessible_commands():
    bot, services = build_world(1)
    bot.guilds[0].add_member(6, [MEMBER_ROLE])
    cog = utility_cmds.UtilityCog(bot, services)
    ctx = make_ctx(bot.guilds[0], author_id=6)

    await utility_cmds.UtilityCog.help_command.callback(cog, ctx)

    fields = {field.name: field.value for field in sent_embed(ctx).fields}
    assert fields["Your Commands"] == "• /allocation-request\n• /help\n• /mnick"
    assert fields["Everyone Commands"] == "• /allocation-request\n• /help"


def test_render_ia_results():
    case = IACase(user_id=TARGET, opened_by=ADMIN_ID, opened_at=None, reason="r", channel_id=None)

    opened = ia_cmds.render_open_result(IACaseOpenResult(case=case, affected_guilds=2, errors=1))
    assert opened.title == "IA Case Opened"
    assert opened.description == "Affected guilds: 2. Errors: 1."
    assert opened.colour.value == SUCCESS_COLOR

    degraded = ia_cmds.render_open_result(
        IACaseOpenResult(case=case, affected_guilds=2, errors=0, channel_error="Case channel could not be created")
    )
    assert degraded.colour.value == WARNING_COLOR
    assert "Case channel could not be created" in degraded.description

    closed = ia_cmds.render_close_result(
        IACaseCloseResult(
            case=case,
            restored_guilds=3,
            errors=0,
            restores=[GuildRoleRestore(guild_id=1, restored=[1], skipped=[2])],
        )
    )
    assert closed.description == "Roles restored in 3 guild(s). Errors: 0. Skipped role(s): 1."


@pytest.mark.asyncio
async def test_ia_open_then_close_through_cog():
    bot, services = build_world(2)
    bot.guilds[0].add_member(TARGET, [MEMBER_ROLE])
    cog = ia_cmds.InternalAffairsCog(bot, services)

    ctx = make_ctx(bot.guilds[0])
    await ia_cmds.InternalAffairsCog.ia_open.callback(cog, ctx, SimpleNamespace(id=TARGET), "investigation")
    assert sent_embed(ctx).description == "Affected guilds: 1. Errors: 0."
    assert bot.guilds[0].members[TARGET].role_ids == []

    ctx = make_ctx(bot.guilds[0])
    await ia_cmds.InternalAffairsCog.ia_open.callback(cog, ctx, SimpleNamespace(id=TARGET), "again")
    assert sent_embed(ctx).title == "Case Exists"

    ctx = make_ctx(bot.guilds[0])
    await ia_cmds.InternalAffairsCog.ia_close.callback(cog, ctx, SimpleNamespace(id=TARGET), "done")
    assert sent_embed(ctx).description == "Roles restored in 1 guild(s). Errors: 0."
    assert bot.guilds[0].members[TARGET].role_ids == [MEMBER_ROLE]

    ctx = make_ctx(bot.guilds[0])
    await ia_cmds.InternalAffairsCog.ia_close.callback(cog, ctx, SimpleNamespace(id=TARGET), "done")
    assert sent_embed(ctx).title == "No Active Case"


class FakeInteraction:
    def __init__(self, guild, user, custom_id, message):
        self.type = discord.InteractionType.component
        self.data = {"custom_id": custom_id}
        self.guild = guild
        self.user = user
        self.message = message
        self.response = SimpleNamespace(
            is_done=lambda: False,
            edit_message=AsyncMock(),
            send_message=AsyncMock(),
        )
        self.followup = SimpleNamespace(send=AsyncMock())


def review_message():
    embed = discord.Embed(title="Allocation Request")
    embed.add_field(name="Name", value="John Doe")
    return SimpleNamespace(embeds=[embed], components=["row"])


@pytest.mark.asyncio
async def test_allocation_button_approve_updates_message():
    bot, services = build_world(1)
    guild = bot.guilds[0]
    guild.add_role(70, "Recruit")
    services = build_services(bot, BotSettings(
        main_guild_id=MAIN,
        recruit_role_id=70,
        default_role_ids=MappingProxyType({PermissionLevel.SENIOR_STAFF: SENIOR_STAFF_ROLE}),
    ), MemoryCaseStore())
    reviewer = guild.add_member(6, [SENIOR_STAFF_ROLE])
    applicant = guild.add_member(TARGET)
    cog = onboarding_cmds.OnboardingCog(bot, services)
    interaction = FakeInteraction(guild, reviewer, f"alloc:approve:{TARGET}", review_message())

    await cog.on_interaction(interaction)

    assert 70 in applicant.role_ids
    assert applicant.dms[0]["embed"].title == "Allocation Approved"
    kwargs = interaction.response.edit_message.await_args.kwargs
    assert kwargs["view"] is None
    assert kwargs["embed"].title == "Allocation Request — Approved"


@pytest.mark.asyncio
async def test_allocation_button_rejects_low_level_reviewer():
    bot, services = build_world(1)
    guild = bot.guilds[0]
    reviewer = guild.add_member(6, [MEMBER_ROLE])
    cog = onboarding_cmds.OnboardingCog(bot, services)
    interaction = FakeInteraction(guild, reviewer, f"alloc:deny:{TARGET}", review_message())

    await cog.on_interaction(interaction)

    interaction.response.edit_message.assert_not_awaited()
    embed = interaction.response.send_message.await_args.kwargs["embed"]
    assert embed.title == "Insufficient Permission"


@pytest.mark.asyncio
async def test_allocation_button_on_reviewed_message_is_ignored():
    bot, services = build_world(1)
    guild = bot.guilds[0]
    reviewer = guild.add_member(6, [SENIOR_STAFF_ROLE])
    cog = onboarding_cmds.OnboardingCog(bot, services)
    message = review_message()
    message.components = []
    interaction = FakeInteraction(guild, reviewer, f"alloc:deny:{TARGET}", message)

    await cog.on_interaction(interaction)

    interaction.response.edit_message.assert_not_awaited()
    assert interaction.response.send_message.await_args.kwargs["embed"].title == "Already Reviewed"


@pytest.mark.asyncio
async def test_unrelated_interactions_are_ignored():
    bot, services = build_world(1)
    cog = onboarding_cmds.OnboardingCog(bot, services)
    interaction = FakeInteraction(bot.guilds[0], SimpleNamespace(id=6), "settings:open", review_message())

    await cog.on_interaction(interaction)

    interaction.response.send_message.assert_not_awaited()
    interaction.response.edit_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_on_ready_sets_development_presence():
    bot, _ = build_world(1)
    bot.change_presence = AsyncMock()
    services = build_services(bot, BotSettings(mode="development"), MemoryCaseStore())
    cog = events_listener.EventsListenerCog(bot, services)

    await cog.on_ready()

    kwargs = bot.change_presence.await_args.kwargs
    assert kwargs["status"] is discord.Status.dnd
    assert kwargs["activity"].name == events_listener.DEVELOPMENT_ACTIVITY


@pytest.mark.asyncio
async def test_command_error_replies_with_internal_error():
    bot, services = build_world(1)
    cog = events_listener.EventsListenerCog(bot, services)
    ctx = make_ctx(bot.guilds[0])

    await cog.on_application_command_error(ctx, RuntimeError("boom"))

    assert sent_embed(ctx).title == "Internal Error"
