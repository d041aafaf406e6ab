from pathlib import Path

import pytest

from communityops.configuration.app_configuration import AppConfig


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_path.write_text(
        "\n".join([
            "bot:",
            "  mode: development",
            "  main_guild_id: 123",
            "permissions:",
            "  defaults:",
            "    Staff: 50",
            "internal_affairs:",
            "  oversight_role_ids: [7, 8]",
            "onboarding:",
            "  recruit_role_id: 70",
            "database:",
            "  path: ./data/test.db",
        ]),
        encoding="utf-8",
    )

    config = AppConfig(config_path)

    assert config.bot == {"mode": "development", "main_guild_id": 123}
    assert config.permissions["defaults"] == {"Staff": 50}
    assert config.internal_affairs["oversight_role_ids"] == [7, 8]
    assert config.onboarding["recruit_role_id"] == 70
    assert config.database["path"] == "./data/test.db"
    assert config.get("missing", "fallback") == "fallback"


def test_app_config_missing_file_returns_empty(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.bot == {}
    assert config.permissions == {}


def test_app_config_ignores_non_mapping_documents(config_path: Path) -> None:
    config_path.write_text("- just\n- a\n- list\n", encoding="utf-8")

    assert AppConfig(config_path).data == {}


def test_section_ignores_malformed_values(config_path: Path) -> None:
    config_path.write_text("bot: not-a-mapping\nonboarding:\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.bot == {}
    assert config.onboarding == {}


def test_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text("bot:\n  mode: production\n", encoding="utf-8")
    config = AppConfig(config_path)

    config_path.write_text("bot:\n  mode: development\n", encoding="utf-8")
    reloaded = config.reload()

    assert reloaded["bot"]["mode"] == "development"
    assert config.bot["mode"] == "development"
