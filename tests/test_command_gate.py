from types import MappingProxyType, SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from discord_fakes import FakeGuild

from communityops.bot.command_gate import CommandGate, respond_with_error
from communityops.bot.command_registry import COMMAND_REGISTRY, CommandRegistry, CommandSpec
from communityops.configuration.bot_settings import BotSettings
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import CommandUnavailableError, PermissionDeniedError
from communityops.permissions.permission_resolver import PermissionResolver
from communityops.ui.embeds import ERROR_COLOR

MAIN_GUILD = 1
OTHER_GUILD = 2
STAFF_ROLE = 50


def build_gate(main_guild_id=MAIN_GUILD):
    settings = BotSettings(
        main_guild_id=main_guild_id,
        default_role_ids=MappingProxyType({PermissionLevel.STAFF: STAFF_ROLE}),
    )
    return CommandGate(settings, PermissionResolver(settings), COMMAND_REGISTRY)


def make_ctx(guild, author_id):
    return SimpleNamespace(
        guild=guild,
        author=SimpleNamespace(id=author_id),
        command=SimpleNamespace(qualified_name="test"),
        respond=AsyncMock(),
    )


def test_registry_covers_every_command():
    expected = {
        "gban", "guban", "gkick", "mnick", "ia", "allocation-request",
        "rec-onboard", "onboard", "lockchannel", "purge", "help",
    }
    assert {spec.name for spec in COMMAND_REGISTRY.all()} == expected
    assert COMMAND_REGISTRY.get("gban").required_level is PermissionLevel.ADMINISTRATION
    assert COMMAND_REGISTRY.get("guban").required_level is PermissionLevel.JUNIOR_ADMINISTRATION
    assert COMMAND_REGISTRY.get("gkick").required_level is PermissionLevel.SENIOR_STAFF


def test_registry_rejects_duplicates():
    with pytest.raises(ValueError):
        CommandRegistry([CommandSpec("a", "x"), CommandSpec("a", "y")])


def test_only_help_is_available_outside_main_guild():
    assert [spec.name for spec in COMMAND_REGISTRY.available(in_main_guild=False)] == ["help"]
    assert COMMAND_REGISTRY.everyone_commands(in_main_guild=True) == ["allocation-request", "help"]


def test_accessible_commands_follow_levels():
    allows_staff = lambda level: PermissionLevel.STAFF.at_least(level)

    accessible = COMMAND_REGISTRY.accessible_commands(True, allows_staff)

    assert "onboard" in accessible
    assert "purge" in accessible
    assert "gkick" not in accessible
    assert "gban" not in accessible


@pytest.mark.asyncio
async def test_authorize_allows_staff_in_main_guild():
    guild = FakeGuild(MAIN_GUILD)
    guild.add_role(STAFF_ROLE, "staff")
    member = guild.add_member(5, [STAFF_ROLE])

    resolved = await build_gate().authorize(make_ctx(guild, 5), "purge")

    assert resolved is member


@pytest.mark.asyncio
async def test_authorize_denies_insufficient_level_with_custom_message():
    guild = FakeGuild(MAIN_GUILD)
    guild.add_member(5)

    with pytest.raises(PermissionDeniedError, match="Staff or higher"):
        await build_gate().authorize(make_ctx(guild, 5), "onboard", message="You must be Staff or higher.")


@pytest.mark.asyncio
async def test_authorize_refuses_other_guilds_except_help():
    guild = FakeGuild(OTHER_GUILD)
    guild.add_member(5)
    gate = build_gate()

    with pytest.raises(CommandUnavailableError) as excinfo:
        await gate.authorize(make_ctx(guild, 5), "allocation-request")
    assert excinfo.value.title == "Unavailable Here"

    await gate.authorize(make_ctx(guild, 5), "help")


@pytest.mark.asyncio
async def test_no_main_guild_means_every_guild_allowed():
    guild = FakeGuild(OTHER_GUILD)
    guild.add_member(5)

    await build_gate(main_guild_id=None).authorize(make_ctx(guild, 5), "allocation-request")


@pytest.mark.asyncio
async def test_authorize_outside_a_guild():
    with pytest.raises(CommandUnavailableError):
        await build_gate().authorize(make_ctx(None, 5), "help")


@pytest.mark.asyncio
async def test_respond_with_error_sends_ephemeral_embed():
    ctx = make_ctx(None, 5)

    await respond_with_error(ctx, PermissionDeniedError("nope"))

    embed = ctx.respond.await_args.kwargs["embed"]
    assert ctx.respond.await_args.kwargs["ephemeral"] is True
    assert embed.title == "Insufficient Permission"
    assert embed.description == "nope"
    assert embed.colour.value == ERROR_COLOR
