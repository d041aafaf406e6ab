from types import SimpleNamespace

import discord
import pytest

from discord_fakes import FakeGuild, http_error

from communityops.configuration.bot_settings import BotSettings
from communityops.moderation.exceptions import AllocationReviewError, CommandUnavailableError, ConfigurationError
from communityops.onboarding import recruit_onboarding
from communityops.onboarding.recruit_onboarding import (
    MessageLink,
    RecruitOnboarding,
    find_department_role,
    parse_message_link,
)

RECRUIT_ROLE = 70
TARGET = 42
MODERATOR = SimpleNamespace(id=7)


def build(recruit_role_id=RECRUIT_ROLE):
    guild = FakeGuild(1, "Main")
    guild.add_role(RECRUIT_ROLE, "Recruit")
    guild.add_role(90, "BRPD | Police Department")
    guild.add_role(91, "Fire Rescue")
    return guild, RecruitOnboarding(BotSettings(recruit_role_id=recruit_role_id))


@pytest.mark.parametrize(
    "link, expected",
    [
        ("https://discord.com/channels/1/2/3", MessageLink(1, 2, 3)),
        ("https://ptb.discord.com/channels/10/20/30/", MessageLink(10, 20, 30)),
        ("https://discord.com/channels/1/2", None),
        ("https://discord.com/channels/@me/2/3", None),
        ("not a link", None),
        ("", None),
    ],
)
def test_parse_message_link(link, expected):
    assert parse_message_link(link) == expected


def test_find_department_role_matches_exact_or_substring():
    guild, _ = build()

    assert find_department_role(guild.roles, "Police Department").id == 90
    assert find_department_role(guild.roles, "fire rescue").id == 91
    assert find_department_role(guild.roles, "Communications") is None


@pytest.mark.asyncio
async def test_assign_recruit_reads_details_from_linked_review(monkeypatch):
    guild, service = build()
    member = guild.add_member(TARGET)

    class FakeTextChannel:
        async def fetch_message(self, message_id):
            embed = discord.Embed(title="Allocation Request")
            embed.add_field(name="Teamspeak UID", value="ts3uid=")
            embed.add_field(name="Steam Hex", value="110000100000000")
            return SimpleNamespace(embeds=[embed])

    monkeypatch.setattr(recruit_onboarding.discord, "TextChannel", FakeTextChannel)
    guild.channels[5] = FakeTextChannel()

    assignment = await service.assign_recruit(guild, TARGET, "https://discord.com/channels/1/5/9", MODERATOR)

    assert RECRUIT_ROLE in member.role_ids
    assert assignment.summary() == (
        f"Recruit role assigned to <@{TARGET}>. TS3: ts3uid= • Steam Hex: 110000100000000"
    )


@pytest.mark.asyncio
async def test_assign_recruit_ignores_links_into_other_guilds():
    guild, service = build()
    guild.add_member(TARGET)

    assignment = await service.assign_recruit(guild, TARGET, "https://discord.com/channels/2/5/9", MODERATOR)

    assert assignment.details == {}
    assert assignment.summary() == f"Recruit role assigned to <@{TARGET}>."


@pytest.mark.asyncio
async def test_assign_recruit_when_already_recruit():
    guild, service = build()
    guild.add_member(TARGET, [RECRUIT_ROLE])

    assignment = await service.assign_recruit(guild, TARGET, "", MODERATOR)

    assert assignment.already_recruit
    assert "already has the Recruit role" in assignment.summary()


@pytest.mark.asyncio
async def test_assign_recruit_errors():
    guild, service = build()
    with pytest.raises(AllocationReviewError):
        await service.assign_recruit(guild, TARGET, "", MODERATOR)

    _, unconfigured = build(recruit_role_id=None)
    with pytest.raises(ConfigurationError):
        await unconfigured.assign_recruit(guild, TARGET, "", MODERATOR)

    member = guild.add_member(TARGET)
    member.role_errors[RECRUIT_ROLE] = http_error(text="Missing Permissions")
    with pytest.raises(AllocationReviewError) as excinfo:
        await service.assign_recruit(guild, TARGET, "", MODERATOR)
    assert str(excinfo.value) == "Missing Permissions"


@pytest.mark.asyncio
async def test_onboard_moves_recruit_into_department():
    guild, service = build()
    member = guild.add_member(TARGET, [RECRUIT_ROLE])

    result = await service.onboard(guild, TARGET, "John Doe", "Police Department", MODERATOR)

    assert member.nick == "John Doe"
    assert member.role_ids == [90]
    assert result.department_role.id == 90
    assert result.failures == []


@pytest.mark.asyncio
async def test_onboard_requires_recruit_role():
    guild, service = build()
    guild.add_member(TARGET)

    with pytest.raises(CommandUnavailableError) as excinfo:
        await service.onboard(guild, TARGET, "John Doe", "Police Department", MODERATOR)
    assert excinfo.value.title == "Invalid State"


@pytest.mark.asyncio
async def test_onboard_missing_department_role():
    guild, service = build()
    member = guild.add_member(TARGET, [RECRUIT_ROLE])

    with pytest.raises(AllocationReviewError) as excinfo:
        await service.onboard(guild, TARGET, "John Doe", "Communications", MODERATOR)

    assert excinfo.value.title == "Role Missing"
    assert member.role_ids == [RECRUIT_ROLE]


@pytest.mark.asyncio
async def test_onboard_collects_step_failures():
    guild, service = build()
    member = guild.add_member(TARGET, [RECRUIT_ROLE])
    member.edit_error = http_error(text="Missing Permissions")

    result = await service.onboard(guild, TARGET, "John Doe", "Fire Rescue", MODERATOR)

    assert result.failures == ["nickname: Missing Permissions"]
    assert member.role_ids == [91]
