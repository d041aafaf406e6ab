import sys
from types import MappingProxyType
from unittest.mock import AsyncMock, MagicMock

import pytest

from discord_fakes import FakeBot, FakeGuild, MemoryCaseStore

from communityops import main
from communityops.bot.bot_services import build_services
from communityops.configuration.bot_settings import BotSettings


def test_resolve_base_dir_env_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("COMMUNITYOPS_HOME", str(tmp_path))

    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_compiled(tmp_path, monkeypatch):
    monkeypatch.delenv("COMMUNITYOPS_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", True, raising=False)
    monkeypatch.setattr(sys, "argv", [str(tmp_path / "communityops.exe")])

    assert main.resolve_base_dir() == tmp_path.resolve()


def test_resolve_base_dir_source(monkeypatch):
    monkeypatch.delenv("COMMUNITYOPS_HOME", raising=False)
    monkeypatch.setattr(sys, "frozen", False, raising=False)
    monkeypatch.setattr(sys, "compiled", False, raising=False)

    assert main.resolve_base_dir() == main.Path(main.__file__).resolve().parents[2]


def test_build_intents_enables_members():
    intents = main.build_intents()

    assert intents.guilds
    assert intents.members


@pytest.mark.parametrize(
    "settings, expected",
    [
        (BotSettings(mode="development", dev_guild_id=123), [123]),
        (BotSettings(mode="development"), None),
        (BotSettings(mode="production", dev_guild_id=123), None),
    ],
)
def test_create_bot_uses_dev_guild_only_in_development(monkeypatch, settings, expected):
    fake_bot_class = MagicMock()
    monkeypatch.setattr(main.discord, "Bot", fake_bot_class)

    main.create_bot(settings)

    assert fake_bot_class.call_args.kwargs["debug_guilds"] == expected


def test_load_cogs_registers_every_cog():
    bot = FakeBot([FakeGuild(1)])
    services = build_services(bot, BotSettings(default_role_ids=MappingProxyType({})), MemoryCaseStore())

    main.load_cogs(bot, services)

    assert len(bot.added_cogs) == 6


@pytest.mark.asyncio
async def test_async_main_without_token_exits_with_error(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: BotSettings(token=None))
    create_bot = MagicMock()
    monkeypatch.setattr(main, "create_bot", create_bot)

    assert await main.async_main() == 1
    create_bot.assert_not_called()


@pytest.mark.asyncio
async def test_async_main_database_failure_shuts_down(monkeypatch):
    monkeypatch.setattr(main, "load_environment", lambda: BotSettings(token="token"))
    fake_db = MagicMock()
    fake_db.open = AsyncMock(side_effect=OSError("read-only file system"))
    fake_db.close = AsyncMock()
    monkeypatch.setattr(main, "db_connection", fake_db)

    assert await main.async_main() == 1
    fake_db.close.assert_awaited_once()


@pytest.mark.asyncio
async def test_shutdown_runtime_closes_bot_and_database(monkeypatch):
    fake_db = MagicMock()
    fake_db.close = AsyncMock()
    monkeypatch.setattr(main, "db_connection", fake_db)
    bot = MagicMock()
    bot.is_closed.return_value = False
    bot.close = AsyncMock()

    await main.shutdown_runtime(bot)

    bot.close.assert_awaited_once()
    fake_db.close.assert_awaited_once()


def test_main_returns_async_exit_code(monkeypatch):
    monkeypatch.setattr(main, "async_main", AsyncMock(return_value=3))

    assert main.main() == 3
    assert sys.excepthook is main.handle_exception
    sys.excepthook = sys.__excepthook__
