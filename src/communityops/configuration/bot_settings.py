"""
Immutable runtime settings assembled once at startup.

``load_bot_settings`` merges the process environment (normally populated from
``.env`` by python-dotenv) with ``config/app_config.yml``. Environment values
win over YAML values. The resulting :class:`BotSettings` is passed explicitly
to every service; nothing else in the bot reads the environment.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Tuple

from communityops.configuration.app_configuration import AppConfig
from communityops.datatypes.permission_datatypes import PermissionLevel
from communityops.moderation.exceptions import ConfigurationError
from communityops.util.logger import get_logger

logger = get_logger("bot_settings")

DEFAULT_DB_PATH = Path("./data/app.db")

# Accepted environment variable names for each level's default role id
DEFAULT_ROLE_ENV_KEYS: Mapping[PermissionLevel, Tuple[str, ...]] = MappingProxyType({
    PermissionLevel.HEAD_ADMINISTRATION: ("HeadAdmin", "HEAD_ADMIN", "HEADADMIN"),
    PermissionLevel.SENIOR_ADMINISTRATION: ("SeniorAdmin", "SENIOR_ADMIN", "SENIORADMIN"),
    PermissionLevel.ADMINISTRATION: ("Administration", "ADMINISTRATION"),
    PermissionLevel.JUNIOR_ADMINISTRATION: ("JuniorAdmin", "JUNIOR_ADMIN", "JUNIORADMIN"),
    PermissionLevel.SENIOR_STAFF: ("SeniorStaff", "SENIOR_STAFF", "SENIORSTAFF"),
    PermissionLevel.STAFF: ("Staff",),
    PermissionLevel.STAFF_IN_TRAINING: ("StaffInTraining", "STAFF_IN_TRAINING", "STAFFINTRAINING"),
    PermissionLevel.MEMBER: ("Member",),
})

IA_OVERSIGHT_ENV_KEYS: Tuple[str, ...] = (
    "IA_ROLE_SENIOR_STAFF",
    "IA_ROLE_JUNIOR_ADMIN",
    "IA_ROLE_ADMIN",
    "IA_ROLE_INTERNAL_AFFAIRS",
    "IA_ROLE_COMMUNITY_COORDINATOR",
    "IA_ROLE_COMMUNITY_LEADERSHIP",
)

LevelRoleMap = Mapping[PermissionLevel, int]


@dataclass(frozen=True)
class BotSettings:
    """Every configurable value the bot needs, read-only after startup."""

    token: Optional[str] = None
    mode: str = "production"
    dev_guild_id: Optional[int] = None
    main_guild_id: Optional[int] = None
    recruit_role_id: Optional[int] = None
    allocation_review_channel_id: Optional[int] = None
    permission_role_ids: Mapping[int, LevelRoleMap] = field(default_factory=dict)
    default_role_ids: LevelRoleMap = field(default_factory=dict)
    ia_oversight_role_ids: Tuple[int, ...] = ()
    database_path: Path = DEFAULT_DB_PATH

    @property
    def is_development(self) -> bool:
        return self.mode == "development"

    def require_recruit_role_id(self) -> int:
        if self.recruit_role_id is None:
            raise ConfigurationError("RECRUIT_ROLE_ID is not configured.")
        return self.recruit_role_id

    def require_allocation_review_channel_id(self) -> int:
        if self.allocation_review_channel_id is None:
            raise ConfigurationError("Review channel is not configured.")
        return self.allocation_review_channel_id


# --------------------------
# Parsing helpers
# --------------------------
def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_snowflake(value: Any, source: str) -> Optional[int]:
    """Parse a Discord id, logging and returning None when it is malformed."""
    text = _clean(value)
    if text is None:
        return None
    try:
        snowflake = int(text)
    except ValueError:
        logger.warning("[SETTINGS] Ignoring non-numeric id %r from %s", text, source)
        return None
    if snowflake <= 0:
        logger.warning("[SETTINGS] Ignoring non-positive id %r from %s", text, source)
        return None
    return snowflake


def _first_env(environ: Mapping[str, str], keys: Iterable[str]) -> Optional[str]:
    for key in keys:
        value = _clean(environ.get(key))
        if value is not None:
            return value
    return None


def parse_level_map(raw: Any, source: str) -> dict[PermissionLevel, int]:
    """Turn ``{"Senior Staff": "123", ...}`` into ``{PermissionLevel.SENIOR_STAFF: 123}``."""
    if not isinstance(raw, Mapping):
        if raw not in (None, {}):
            logger.warning("[SETTINGS] Expected a mapping of level -> role id in %s", source)
        return {}

    levels: dict[PermissionLevel, int] = {}
    for label, role_id in raw.items():
        level = PermissionLevel.from_label(str(label))
        if level is None:
            logger.warning("[SETTINGS] Unknown permission level %r in %s", label, source)
            continue
        parsed = parse_snowflake(role_id, f"{source}[{label}]")
        if parsed is not None:
            levels[level] = parsed
    return levels


def parse_guild_overrides(raw: Any, source: str) -> dict[int, dict[PermissionLevel, int]]:
    """Parse the per-guild override table (guild id -> level -> role id).

    ``raw`` may be a mapping or a JSON string. Malformed input yields no
    overrides for the malformed part, never an exception.
    """
    if isinstance(raw, str):
        if not raw.strip():
            return {}
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.warning("[SETTINGS] %s is not valid JSON (%s); ignoring overrides", source, exc)
            return {}

    if not isinstance(raw, Mapping):
        if raw is not None:
            logger.warning("[SETTINGS] %s must be an object keyed by guild id; ignoring overrides", source)
        return {}

    overrides: dict[int, dict[PermissionLevel, int]] = {}
    for guild_key, level_map in raw.items():
        guild_id = parse_snowflake(guild_key, source)
        if guild_id is None:
            continue
        overrides[guild_id] = parse_level_map(level_map, f"{source}[{guild_key}]")
    return overrides


def _freeze_overrides(overrides: Mapping[int, Mapping[PermissionLevel, int]]) -> Mapping[int, LevelRoleMap]:
    return MappingProxyType({
        guild_id: MappingProxyType(dict(levels)) for guild_id, levels in overrides.items()
    })


# --------------------------
# Assembly
# --------------------------
def load_bot_settings(environ: Mapping[str, str], app_config: AppConfig | None = None) -> BotSettings:
    """Build the settings object from the environment and the YAML config.

    Parameters
    ----------
    environ:
        Environment mapping, normally ``os.environ`` after ``load_dotenv``.
    app_config:
        Parsed YAML configuration; ``None`` means environment only.

    Returns
    -------
    BotSettings
        Frozen settings shared by every service.
    """
    bot_section = app_config.bot if app_config else {}
    permission_section = app_config.permissions if app_config else {}
    ia_section = app_config.internal_affairs if app_config else {}
    onboarding_section = app_config.onboarding if app_config else {}
    database_section = app_config.database if app_config else {}

    mode = (_clean(environ.get("MODE")) or _clean(bot_section.get("mode")) or "production").lower()
    if mode not in ("development", "production"):
        logger.warning("[SETTINGS] Unknown MODE %r; falling back to production", mode)
        mode = "production"

    def pick_id(env_key: str, yaml_section: Mapping[str, Any], yaml_key: str) -> Optional[int]:
        env_value = _clean(environ.get(env_key))
        if env_value is not None:
            return parse_snowflake(env_value, env_key)
        return parse_snowflake(yaml_section.get(yaml_key), f"app_config.yml {yaml_key}")

    overrides = parse_guild_overrides(permission_section.get("guild_overrides"), "app_config.yml permissions.guild_overrides")
    env_overrides = environ.get("PERMISSION_ROLE_IDS")
    if _clean(env_overrides) is not None:
        overrides = parse_guild_overrides(env_overrides, "PERMISSION_ROLE_IDS")

    defaults = parse_level_map(permission_section.get("defaults"), "app_config.yml permissions.defaults")
    for level, keys in DEFAULT_ROLE_ENV_KEYS.items():
        role_id = parse_snowflake(_first_env(environ, keys), keys[0])
        if role_id is not None:
            defaults[level] = role_id

    oversight: list[int] = []
    for key in IA_OVERSIGHT_ENV_KEYS:
        role_id = parse_snowflake(environ.get(key), key)
        if role_id is not None and role_id not in oversight:
            oversight.append(role_id)
    if not oversight:
        for index, raw_id in enumerate(ia_section.get("oversight_role_ids") or []):
            role_id = parse_snowflake(raw_id, f"app_config.yml internal_affairs.oversight_role_ids[{index}]")
            if role_id is not None and role_id not in oversight:
                oversight.append(role_id)

    db_path = _clean(environ.get("COMMUNITYOPS_DB_PATH")) or _clean(database_section.get("path"))

    settings = BotSettings(
        token=_clean(environ.get("DISCORD_TOKEN")) or _clean(environ.get("DISCORD_BOT_TOKEN")),
        mode=mode,
        dev_guild_id=pick_id("DEV_GUILD_ID", bot_section, "dev_guild_id"),
        main_guild_id=pick_id("MAIN_GUILD_ID", bot_section, "main_guild_id"),
        recruit_role_id=pick_id("RECRUIT_ROLE_ID", onboarding_section, "recruit_role_id"),
        allocation_review_channel_id=pick_id(
            "ALLOCATION_REVIEW_CHANNEL_ID", onboarding_section, "review_channel_id"
        ),
        permission_role_ids=_freeze_overrides(overrides),
        default_role_ids=MappingProxyType(defaults),
        ia_oversight_role_ids=tuple(oversight),
        database_path=Path(db_path) if db_path else DEFAULT_DB_PATH,
    )

    logger.info(
        "[SETTINGS] Loaded settings: mode=%s, main guild=%s, %d guild override table(s), %d default role(s)",
        settings.mode,
        settings.main_guild_id,
        len(settings.permission_role_ids),
        len(settings.default_role_ids),
    )
    return settings
